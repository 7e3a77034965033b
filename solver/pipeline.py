"""
Recognize → extract → solve, as one asynchronous run with one outcome.

``SolvePipeline.run`` walks the states

    IDLE → RECOGNIZING → EXTRACTING → SOLVING → SUCCEEDED

and leaves through FAILED from any working state, or CANCELLED from
RECOGNIZING.  Progress is forwarded from the recognition phase only.
Every failure is terminal and raised as a :class:`PipelineError`; no
phase is retried.

The pipeline owns no storage.  A successful run reports, through
``SolveOutcome.consume_free_use``, whether the caller should charge one
free use to the account.
"""

import asyncio
import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from accounts.entitlement import is_subscribed
from accounts.models import AccountRecord
from ocr.recognizer import (
    ProgressCallback, RecognitionError, RecognitionErrorKind, Recognizer
)
from solver.engine import SolutionDescription, SolveError, solve_equation
from solver.extract import ExtractedEquation, ExtractionError, extract

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    IDLE = "idle"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    SOLVING = "solving"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {PipelineState.SUCCEEDED, PipelineState.FAILED, PipelineState.CANCELLED}


class PipelineErrorKind(enum.Enum):
    RECOGNITION = "recognition failed"
    NO_TEXT_FOUND = "no text found"
    UNSOLVABLE = "unsolvable"


class PipelineError(Exception):
    def __init__(self, kind: PipelineErrorKind, detail: str = "",
                 cause: Optional[Exception] = None) -> None:
        self.kind = kind
        self.detail = detail
        self.cause = cause
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.kind.value.capitalize()}: {self.detail}"
        return self.kind.value.capitalize()

    @property
    def cancelled(self) -> bool:
        return (isinstance(self.cause, RecognitionError)
                and self.cause.kind is RecognitionErrorKind.CANCELLED)


@dataclass(frozen=True)
class SolveOutcome:
    recognized_line: str
    variable: str
    solution_text: str
    consume_free_use: bool

    def summary(self) -> str:
        return f"OCR: {self.recognized_line}\nSolution ({self.variable}): {self.solution_text}"


class SolvePipeline:
    def __init__(self,
                 recognizer: Optional[Recognizer] = None,
                 extractor: Callable[[str], ExtractedEquation] = extract,
                 solver: Callable[[str, str], SolutionDescription] = solve_equation) -> None:
        self.recognizer = recognizer or Recognizer()
        self.extractor = extractor
        self.solver = solver

    async def run(self, image: bytes, record: AccountRecord,
                  now: Optional[datetime] = None,
                  on_progress: Optional[ProgressCallback] = None,
                  cancel: Optional[threading.Event] = None,
                  on_state: Optional[Callable[[PipelineState], None]] = None) -> SolveOutcome:
        """Run one recognize-then-solve pass for *record*.

        ``on_state`` receives every state the run enters, ending with
        exactly one terminal state.  Raises :class:`PipelineError`.
        """
        run = _Run(record.key, on_state)

        run.enter(PipelineState.RECOGNIZING)
        try:
            raw_text = await self.recognizer.recognize(image, on_progress, cancel)
        except RecognitionError as exc:
            run.enter(PipelineState.CANCELLED if exc.kind is RecognitionErrorKind.CANCELLED
                      else PipelineState.FAILED)
            raise PipelineError(PipelineErrorKind.RECOGNITION, exc.message, exc) from exc
        except asyncio.CancelledError:
            run.enter(PipelineState.CANCELLED)
            raise

        run.enter(PipelineState.EXTRACTING)
        try:
            extracted = self.extractor(raw_text)
        except ExtractionError as exc:
            run.enter(PipelineState.FAILED)
            raise PipelineError(PipelineErrorKind.NO_TEXT_FOUND,
                                "No text could be recognized in the image.", exc) from exc

        run.enter(PipelineState.SOLVING)
        try:
            solution = await asyncio.to_thread(self.solver, extracted.equation, extracted.variable)
        except SolveError as exc:
            run.enter(PipelineState.FAILED)
            raise PipelineError(PipelineErrorKind.UNSOLVABLE, exc.message, exc) from exc

        moment = now or datetime.now(timezone.utc)
        outcome = SolveOutcome(
            recognized_line=extracted.line,
            variable=extracted.variable,
            solution_text=solution.text,
            consume_free_use=not is_subscribed(record, moment),
        )
        run.enter(PipelineState.SUCCEEDED)
        return outcome


class _Run:
    """State bookkeeping for a single pipeline run."""

    def __init__(self, account: str,
                 on_state: Optional[Callable[[PipelineState], None]]) -> None:
        self.account = account
        self.state = PipelineState.IDLE
        self._on_state = on_state

    def enter(self, state: PipelineState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Pipeline already finished in state {self.state.value}")
        logger.debug("Solve for %s: %s -> %s", self.account, self.state.value, state.value)
        self.state = state
        if self._on_state is not None:
            self._on_state(state)
