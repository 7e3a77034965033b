import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from accounts.models import AccountRecord, SubscriptionPlan
from ocr.recognizer import RecognitionErrorKind, Recognizer
from solver.engine import SolveError, SolveErrorKind
from solver.pipeline import PipelineError, PipelineErrorKind, PipelineState, SolvePipeline
from tests.fakes import FakeEngine

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _record(plan=SubscriptionPlan.NONE, started=None, used=0) -> AccountRecord:
    return AccountRecord(email="ada@example.com", name="Ada", credential_digest="0" * 64,
                         subscription_plan=plan, subscription_started_at=started,
                         free_uses_consumed=used)


def _pipeline(engine, solver=None) -> SolvePipeline:
    recognizer = Recognizer(engine_factory=lambda: engine)
    if solver is None:
        return SolvePipeline(recognizer=recognizer)
    return SolvePipeline(recognizer=recognizer, solver=solver)


def _run(pipeline, record, **kwargs):
    states = []
    kwargs.setdefault("now", NOW)
    coro = pipeline.run(b"img", record, on_state=states.append, **kwargs)
    try:
        return asyncio.run(coro), states
    except PipelineError as e:
        e.states = states
        raise


def test_successful_run_for_trial_account() -> None:
    progress = []
    outcome, states = _run(_pipeline(FakeEngine(text="2x+3=7\nnoise")), _record(used=2),
                           on_progress=progress.append)

    assert outcome.recognized_line == "2x+3=7"
    assert outcome.variable == "x"
    assert outcome.solution_text == "2"
    assert outcome.consume_free_use is True
    assert outcome.summary() == "OCR: 2x+3=7\nSolution (x): 2"
    assert progress == [0.25, 0.5, 1.0]
    assert states == [PipelineState.RECOGNIZING, PipelineState.EXTRACTING,
                      PipelineState.SOLVING, PipelineState.SUCCEEDED]


def test_subscribed_account_does_not_consume_trial() -> None:
    record = _record(SubscriptionPlan.MONTHLY, NOW - timedelta(days=10), used=3)
    outcome, _ = _run(_pipeline(FakeEngine(text="y^2-4")), record)
    assert outcome.recognized_line == "y^2-4"
    assert outcome.consume_free_use is False


def test_expired_subscription_consumes_trial() -> None:
    record = _record(SubscriptionPlan.MONTHLY, NOW - timedelta(days=40))
    outcome, _ = _run(_pipeline(FakeEngine()), record)
    assert outcome.consume_free_use is True


def test_initialize_failure_is_recognition_error() -> None:
    engine = FakeEngine(fail_on="initialize")
    with pytest.raises(PipelineError) as info:
        _run(_pipeline(engine), _record())

    err = info.value
    assert err.kind is PipelineErrorKind.RECOGNITION
    assert err.cause.kind is RecognitionErrorKind.ENGINE_FAILURE
    assert "initialize" in err.message
    assert engine.terminated == 1
    assert err.states == [PipelineState.RECOGNIZING, PipelineState.FAILED]


def test_blank_recognition_is_no_text_found() -> None:
    with pytest.raises(PipelineError) as info:
        _run(_pipeline(FakeEngine(text="  \n ")), _record())
    assert info.value.kind is PipelineErrorKind.NO_TEXT_FOUND
    assert info.value.states[-1] is PipelineState.FAILED


def test_unparseable_equation_is_unsolvable() -> None:
    with pytest.raises(PipelineError) as info:
        _run(_pipeline(FakeEngine(text="2x+=7")), _record())
    assert info.value.kind is PipelineErrorKind.UNSOLVABLE
    assert info.value.cause.kind is SolveErrorKind.UNPARSEABLE
    assert info.value.states == [PipelineState.RECOGNIZING, PipelineState.EXTRACTING,
                                 PipelineState.SOLVING, PipelineState.FAILED]


def test_cancel_stops_before_solving() -> None:
    cancel = threading.Event()
    solver_calls = []

    def _solver(equation, variable):
        solver_calls.append(equation)
        raise SolveError(SolveErrorKind.UNPARSEABLE, "should not run")

    def _progress(fraction):
        cancel.set()

    with pytest.raises(PipelineError) as info:
        _run(_pipeline(FakeEngine(ticks=(0.1, 0.2, 0.3)), solver=_solver), _record(),
             on_progress=_progress, cancel=cancel)

    assert info.value.cancelled
    assert info.value.kind is PipelineErrorKind.RECOGNITION
    assert info.value.states == [PipelineState.RECOGNIZING, PipelineState.CANCELLED]
    assert solver_calls == []


def test_cancel_after_last_tick_never_solves() -> None:
    cancel = threading.Event()
    solver_calls = []
    engine = FakeEngine(text="2x=4", ticks=(1.0,), delay=0.1)

    def _solver(equation, variable):
        solver_calls.append(equation)
        raise SolveError(SolveErrorKind.UNPARSEABLE, "should not run")

    with pytest.raises(PipelineError) as info:
        _run(_pipeline(engine, solver=_solver), _record(),
             on_progress=lambda fraction: cancel.set(), cancel=cancel)

    assert info.value.cancelled
    assert info.value.states == [PipelineState.RECOGNIZING, PipelineState.CANCELLED]
    assert solver_calls == []
    assert engine.terminated == 1
