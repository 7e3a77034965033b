"""
Entitlement-gated solving against the account store.

``SolveService.solve`` is what callers use: it loads the committed
account record, refuses when the account has no entitlement, runs the
pipeline and charges a free use when the pipeline asks for it.  Calls
for the same account are serialized; the charge is a read-modify-write
on the latest stored record.
"""

import asyncio
import enum
import logging
import threading
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import config
from accounts.entitlement import Entitlement, can_solve, is_subscribed, summarize
from accounts.models import AccountRecord, normalize_email
from accounts.storage import AccountStore
from ocr.recognizer import ProgressCallback
from solver.pipeline import PipelineState, SolveOutcome, SolvePipeline

logger = logging.getLogger(__name__)


class SolveStatus(enum.Enum):
    SOLVED = "solved"
    DENIED = "denied"


@dataclass(frozen=True)
class SolveResult:
    status: SolveStatus
    account: AccountRecord
    entitlement: Entitlement
    outcome: Optional[SolveOutcome] = None


class UnknownAccount(LookupError):
    pass


class SolveService:
    def __init__(self, store: AccountStore,
                 pipeline: Optional[SolvePipeline] = None,
                 free_trial_limit: int = config.FREE_TRIAL_LIMIT,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self.store = store
        self.pipeline = pipeline or SolvePipeline()
        self.free_trial_limit = free_trial_limit
        self.clock = clock
        # Entries live only while a solve for that account holds or awaits the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, email: str) -> asyncio.Lock:
        key = normalize_email(email)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _load(self, email: str) -> AccountRecord:
        record = self.store.find_by_email(email)
        if record is None:
            raise UnknownAccount(email)
        return record

    def entitlement(self, email: str) -> Entitlement:
        return summarize(self._load(email), self.clock(), self.free_trial_limit)

    async def solve(self, email: str, image: bytes,
                    on_progress: Optional[ProgressCallback] = None,
                    cancel: Optional[threading.Event] = None,
                    on_state: Optional[Callable[[PipelineState], None]] = None) -> SolveResult:
        """Run the pipeline for *email* if the account is entitled.

        Raises :class:`UnknownAccount` or
        :class:`~solver.pipeline.PipelineError`.
        """
        async with self._lock_for(email):
            record = self._load(email)
            now = self.clock()
            if not can_solve(record, now, self.free_trial_limit):
                logger.info("Solve denied for %s: free trial exhausted", record.key)
                return SolveResult(SolveStatus.DENIED, record,
                                   summarize(record, now, self.free_trial_limit))

            outcome = await self.pipeline.run(image, record, now=now,
                                              on_progress=on_progress,
                                              cancel=cancel, on_state=on_state)
            if outcome.consume_free_use:
                record = self._consume_free_use(record.email)
            return SolveResult(SolveStatus.SOLVED, record,
                               summarize(record, self.clock(), self.free_trial_limit),
                               outcome)

    def _consume_free_use(self, email: str) -> AccountRecord:
        def _charge(current: AccountRecord) -> AccountRecord:
            # A checkout may have landed while the solve was running.
            if is_subscribed(current, self.clock()):
                return current
            if not can_solve(current, self.clock(), self.free_trial_limit):
                logger.warning("Free trial for %s was exhausted during the solve", current.key)
            current.free_uses_consumed += 1
            return current

        record = self.store.update(email, _charge)
        logger.info("Account %s has used %d free solve(s)", record.key, record.free_uses_consumed)
        return record
