"""
Bounded pool of backtest workers.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterator, Optional, Sequence, Union

from stratopt.optimization.errors import EvaluationError, OptimizationCancelled
from stratopt.optimization.scoring import ObjectiveScorer
from utils.logger import get_logger
from .protocol import (
    RETRYABLE_KINDS,
    EvaluationFailure,
    EvaluationRequest,
    EvaluationSuccess,
    FailureKind,
    classify_error,
    failure_for,
)

logger = get_logger(__name__)

EvaluationOutcome = Union[EvaluationSuccess, EvaluationFailure]


class EvaluationWorkerPool:
    """
    Executes evaluation requests on a fixed number of worker threads.

    Workers retry timeout/network failures with exponential backoff. An abort
    signal is checked before every backtest and while backing off; backtests
    already running are allowed to finish.
    """

    def __init__(
        self,
        scorer: ObjectiveScorer,
        max_workers: int,
        max_retries: int = 2,
        retry_initial_delay: float = 1.0,
        retry_max_delay: float = 5.0,
    ):
        self.scorer = scorer
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay

        self._executor: Optional[ThreadPoolExecutor] = None
        self._abort = threading.Event()
        self._lock = threading.Lock()
        self._active = 0
        self._pending: Dict[Future, EvaluationRequest] = {}

    def start(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="stratopt-worker")
        self._abort.clear()

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
        with self._lock:
            self._pending.clear()

    def __enter__(self) -> 'EvaluationWorkerPool':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def abort(self):
        """Best-effort stop: cancel queued requests and signal running workers."""
        self._abort.set()
        with self._lock:
            queued = list(self._pending)
        cancelled = sum(1 for future in queued if future.cancel())
        if cancelled:
            logger.info(f"Cancelled {cancelled} queued evaluations")

    def submit(self, request: EvaluationRequest) -> Future:
        if self._executor is None:
            raise RuntimeError("Worker pool is not started")
        future = self._executor.submit(self._run, request)
        with self._lock:
            self._pending[future] = request
        return future

    def evaluate(self, requests: Sequence[EvaluationRequest]) -> Iterator[EvaluationOutcome]:
        """
        Dispatch requests and yield their responses in completion order.

        Cancelled requests and crashed workers come back as failures, so every
        request yields exactly one response.
        """
        futures = {self.submit(request): request for request in requests}
        try:
            for future in as_completed(futures):
                request = futures[future]
                with self._lock:
                    self._pending.pop(future, None)
                if future.cancelled():
                    yield failure_for(request, "Evaluation cancelled", FailureKind.CANCELLED)
                    continue
                exc = future.exception()
                if exc is not None:
                    logger.error(f"Worker crashed while evaluating {request.id}: {exc!r}")
                    yield failure_for(request, f"Worker crashed: {exc}")
                    continue
                yield future.result()
        finally:
            with self._lock:
                for future in futures:
                    self._pending.pop(future, None)

    def _run(self, request: EvaluationRequest) -> EvaluationOutcome:
        with self._lock:
            self._active += 1
        try:
            return self._run_with_retries(request)
        except Exception as e:
            # Anything escaping the scorer counts as a crash of this one evaluation
            logger.exception(f"Unexpected error evaluating {request.id}")
            return failure_for(request, f"Worker crashed: {e}")
        finally:
            with self._lock:
                self._active -= 1

    def _run_with_retries(self, request: EvaluationRequest) -> EvaluationOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                scores = self.scorer.score(
                    request.blocks,
                    request.parameters,
                    request.segments,
                    should_abort=self._abort.is_set,
                )
                return EvaluationSuccess(id=request.id, parameters=request.parameters, scores=scores, attempts=attempt)
            except OptimizationCancelled as e:
                return failure_for(request, str(e), FailureKind.CANCELLED, attempt)
            except EvaluationError as e:
                kind = classify_error(str(e))
                if kind not in RETRYABLE_KINDS or attempt > self.max_retries:
                    return failure_for(request, str(e), kind, attempt)

                delay = min(self.retry_initial_delay * 2 ** (attempt - 1), self.retry_max_delay)
                logger.info(f"Retrying {request.id} after {kind.value} failure in {delay:.1f}s (attempt {attempt})")
                if self._abort.wait(delay):
                    return failure_for(request, f"Cancelled while retrying: {e}", FailureKind.CANCELLED, attempt)
