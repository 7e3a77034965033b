"""
Recognition adapter: image bytes in, raw text out.

Each call owns exactly one engine: it is acquired, loaded, given its
language model, initialized and asked to recognize, in that order, and
it is terminated on every way out of ``recognize`` (success, failure or
cancellation).  Engine exceptions never escape; they are converted to
:class:`RecognitionError`.

Progress ticks produced on the worker thread are handed to the event
loop and forwarded to the caller's callback there, clamped to [0, 1]
and never decreasing.  Once ``recognize`` returns or raises, the
callback is not called again.
"""

import asyncio
import enum
import logging
import threading
from typing import Callable, Optional

import config
from ocr.engine import RecognitionEngine, TesseractEngine

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class RecognitionErrorKind(enum.Enum):
    ENGINE_UNAVAILABLE = "engine unavailable"
    ENGINE_FAILURE = "engine failure"
    CANCELLED = "cancelled"


class RecognitionError(Exception):
    def __init__(self, kind: RecognitionErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"Recognition {self.kind.value}: {self.detail}"
        return f"Recognition {self.kind.value}"


class _ProgressGate:
    """Forward monotonic progress to *callback* until closed."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = 0.0
        self._open = True

    def report(self, fraction: float) -> None:
        if not self._open or self._callback is None:
            return
        fraction = min(1.0, max(0.0, float(fraction)))
        if fraction < self._last:
            return
        self._last = fraction
        self._callback(fraction)

    def close(self) -> None:
        self._open = False


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise RecognitionError(RecognitionErrorKind.CANCELLED)


def _retrieve(job: "asyncio.Future") -> None:
    # Retrieve the outcome of a worker whose result is no longer wanted.
    if not job.cancelled() and job.exception() is not None:
        logger.debug("Abandoned recognition step finished with %r", job.exception())


class _EngineSession:
    """One engine plus the worker-thread call currently running on it.

    Engine calls are shielded from task cancellation, so ``job`` is only
    done once the worker thread has returned.  ``release`` terminates the
    engine exactly once, after that job has finished.
    """

    def __init__(self, engine: RecognitionEngine) -> None:
        self.engine = engine
        self.job: Optional[asyncio.Future] = None

    def start(self, fn, *args) -> asyncio.Future:
        self.job = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        return self.job

    async def release(self) -> None:
        job = self.job
        if job is not None and not job.done():
            try:
                await asyncio.wait({job})
            except asyncio.CancelledError:
                job.add_done_callback(self._terminate)
                raise
        self._terminate(job)

    def _terminate(self, job: Optional[asyncio.Future]) -> None:
        if job is not None and job.done():
            _retrieve(job)
        try:
            self.engine.terminate()
        except Exception:
            logger.warning("Recognition engine did not terminate cleanly", exc_info=True)


class Recognizer:
    def __init__(self,
                 engine_factory: Callable[[], RecognitionEngine] = TesseractEngine,
                 language: str = config.OCR_LANGUAGE) -> None:
        self.engine_factory = engine_factory
        self.language = language

    async def recognize(self, image: bytes,
                        on_progress: Optional[ProgressCallback] = None,
                        cancel: Optional[threading.Event] = None) -> str:
        gate = _ProgressGate(on_progress)
        _check_cancel(cancel)
        try:
            engine = self.engine_factory()
        except Exception as exc:
            logger.warning("Recognition engine unavailable: %s", exc)
            raise RecognitionError(RecognitionErrorKind.ENGINE_UNAVAILABLE, str(exc)) from exc

        session = _EngineSession(engine)
        try:
            await self._step(session, "load", engine.load)
            _check_cancel(cancel)
            await self._step(session, "load language", engine.load_language, self.language)
            _check_cancel(cancel)
            await self._step(session, "initialize", engine.initialize, self.language)
            _check_cancel(cancel)
            text = await self._recognize(session, image, gate, cancel)
        finally:
            gate.close()
            await session.release()
        return text or ""

    async def _step(self, session: _EngineSession, label: str, fn, *args) -> None:
        try:
            await asyncio.shield(session.start(fn, *args))
        except Exception as exc:
            logger.warning("Recognition step '%s' failed: %s", label, exc)
            raise RecognitionError(RecognitionErrorKind.ENGINE_FAILURE,
                                   f"{label} failed: {exc}") from exc

    async def _recognize(self, session: _EngineSession, image: bytes,
                         gate: _ProgressGate,
                         cancel: Optional[threading.Event]) -> str:
        loop = asyncio.get_running_loop()
        ticks: asyncio.Queue = asyncio.Queue()

        def _tick(fraction: float) -> None:
            loop.call_soon_threadsafe(ticks.put_nowait, fraction)

        job = session.start(session.engine.recognize, image, _tick)
        getter = None
        try:
            while not job.done():
                getter = asyncio.ensure_future(ticks.get())
                done, _ = await asyncio.wait({job, getter},
                                             return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    _check_cancel(cancel)
                    gate.report(getter.result())
                else:
                    getter.cancel()
                getter = None
            while not ticks.empty():
                _check_cancel(cancel)
                gate.report(ticks.get_nowait())
            # A cancel set after the last tick still wins over the result.
            _check_cancel(cancel)
            try:
                return job.result()
            except Exception as exc:
                logger.warning("Recognition failed: %s", exc)
                raise RecognitionError(RecognitionErrorKind.ENGINE_FAILURE, str(exc)) from exc
        finally:
            if getter is not None:
                getter.cancel()
