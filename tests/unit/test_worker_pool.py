"""
Worker protocol and EvaluationWorkerPool unit tests
"""

import threading
from unittest.mock import Mock

import pytest
from pydantic import TypeAdapter

from stratopt.optimization.errors import EvaluationError, OptimizationCancelled
from stratopt.optimization.scoring import ObjectiveScorer
from stratopt.optimization.workers.pool import EvaluationWorkerPool
from stratopt.optimization.workers.protocol import (
    ACTIONABLE_HINTS,
    EvaluationFailure,
    EvaluationRequest,
    EvaluationResponse,
    EvaluationSuccess,
    FailureKind,
    classify_error,
)


def make_request(index, window, blocks=()):
    return EvaluationRequest(
        id=f"candidate-{index}",
        blocks=list(blocks),
        parameters={"swap-1": {"slippage": 0.1 * (index + 1)}},
        segments=[window],
    )


class TestProtocol:
    """Tagged request/response messages"""

    @pytest.mark.parametrize("message, kind", [
        ("Backtest timed out after 30s", FailureKind.TIMEOUT),
        ("Invalid parameter combination", FailureKind.VALIDATION),
        ("float division by zero", FailureKind.CALCULATION),
        ("Failed to fetch price data", FailureKind.NETWORK),
        ("something odd", FailureKind.UNKNOWN),
    ])
    def test_classify_error(self, message, kind):
        assert classify_error(message) == kind

    def test_response_union_discriminates_on_status(self):
        adapter = TypeAdapter(EvaluationResponse)
        success = adapter.validate_python({"status": "success", "id": "x", "parameters": {}, "scores": {"winRate": 1}})
        failure = adapter.validate_python({"status": "failure", "id": "y", "parameters": {}, "error": "boom"})

        assert isinstance(success, EvaluationSuccess)
        assert isinstance(failure, EvaluationFailure)

    def test_failure_message_has_hint(self):
        failure = EvaluationFailure(id="x", parameters={}, error="Connection reset", kind=FailureKind.NETWORK)
        assert failure.message.startswith("Connection reset. ")
        assert failure.message.endswith(ACTIONABLE_HINTS[FailureKind.NETWORK])

        plain = EvaluationFailure(id="y", parameters={}, error="odd")
        assert plain.message == "odd"


class TestEvaluationWorkerPool:
    """Parallel evaluation, retries and aborts"""

    def test_every_request_gets_one_response(self, backtest_window, strategy_blocks, fake_backtest):
        requests = [make_request(i, backtest_window, strategy_blocks) for i in range(6)]
        with EvaluationWorkerPool(ObjectiveScorer(fake_backtest), max_workers=3) as pool:
            responses = list(pool.evaluate(requests))

        assert sorted(r.id for r in responses) == sorted(r.id for r in requests)
        assert all(isinstance(r, EvaluationSuccess) for r in responses)
        assert pool.active_count == 0

    def test_backtest_error_is_per_candidate(self, backtest_window, strategy_blocks, make_backtest):
        backtest = make_backtest(fail_when=lambda params: params["swap-1"]["slippage"] > 0.25)
        requests = [make_request(i, backtest_window, strategy_blocks) for i in range(4)]
        with EvaluationWorkerPool(ObjectiveScorer(backtest), max_workers=2) as pool:
            responses = {r.id: r for r in pool.evaluate(requests)}

        assert isinstance(responses["candidate-0"], EvaluationSuccess)
        assert isinstance(responses["candidate-1"], EvaluationSuccess)
        failure = responses["candidate-3"]
        assert isinstance(failure, EvaluationFailure)
        assert failure.kind == FailureKind.VALIDATION
        assert failure.attempts == 1

    def test_network_failures_retried(self, backtest_window):
        scorer = Mock(spec=ObjectiveScorer)
        scorer.score.side_effect = [
            EvaluationError("network unreachable"),
            EvaluationError("connection reset"),
            {"sharpeRatio": 1.0},
        ]
        pool = EvaluationWorkerPool(scorer, max_workers=1, max_retries=2, retry_initial_delay=0, retry_max_delay=0)
        with pool:
            (response,) = list(pool.evaluate([make_request(0, backtest_window)]))

        assert isinstance(response, EvaluationSuccess)
        assert response.attempts == 3
        assert scorer.score.call_count == 3

    def test_retries_exhausted(self, backtest_window):
        scorer = Mock(spec=ObjectiveScorer)
        scorer.score.side_effect = EvaluationError("request timed out")
        pool = EvaluationWorkerPool(scorer, max_workers=1, max_retries=2, retry_initial_delay=0, retry_max_delay=0)
        with pool:
            (response,) = list(pool.evaluate([make_request(0, backtest_window)]))

        assert isinstance(response, EvaluationFailure)
        assert response.kind == FailureKind.TIMEOUT
        assert response.attempts == 3

    def test_validation_failures_not_retried(self, backtest_window):
        scorer = Mock(spec=ObjectiveScorer)
        scorer.score.side_effect = EvaluationError("invalid amount")
        with EvaluationWorkerPool(scorer, max_workers=1, retry_initial_delay=0) as pool:
            (response,) = list(pool.evaluate([make_request(0, backtest_window)]))

        assert response.kind == FailureKind.VALIDATION
        assert scorer.score.call_count == 1

    def test_worker_crash_becomes_failure(self, backtest_window):
        scorer = Mock(spec=ObjectiveScorer)
        scorer.score.side_effect = KeyError("segments")
        with EvaluationWorkerPool(scorer, max_workers=1) as pool:
            (response,) = list(pool.evaluate([make_request(0, backtest_window)]))

        assert isinstance(response, EvaluationFailure)
        assert response.error.startswith("Worker crashed")

    def test_abort_cancels_queued_requests(self, backtest_window):
        started = threading.Event()
        release = threading.Event()

        def slow_score(blocks, parameters, segments, should_abort=None):
            if should_abort is not None and should_abort():
                raise OptimizationCancelled("Evaluation aborted before backtest start")
            started.set()
            release.wait(5)
            return {"sharpeRatio": 1.0}

        def stop_after_first_start(pool):
            started.wait(5)
            pool.abort()
            release.set()

        scorer = Mock(spec=ObjectiveScorer)
        scorer.score.side_effect = slow_score
        requests = [make_request(i, backtest_window) for i in range(5)]

        with EvaluationWorkerPool(scorer, max_workers=1) as pool:
            responses = pool.evaluate(requests)
            threading.Thread(target=stop_after_first_start, args=(pool,)).start()
            results = list(responses)

        assert len(results) == 5
        successes = [r for r in results if isinstance(r, EvaluationSuccess)]
        cancelled = [r for r in results if isinstance(r, EvaluationFailure) and r.kind == FailureKind.CANCELLED]
        # the in-flight evaluation finishes, the queued ones never start
        assert len(successes) == 1
        assert len(cancelled) == 4

    def test_submit_requires_start(self, backtest_window):
        pool = EvaluationWorkerPool(Mock(spec=ObjectiveScorer), max_workers=1)
        with pytest.raises(RuntimeError):
            pool.submit(make_request(0, backtest_window))
