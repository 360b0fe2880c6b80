"""
Optimization orchestrator - main entry point for strategy optimization runs.

The orchestrator manages the optimization lifecycle and coordinates between:
- The search algorithm (Bayesian or genetic) through its ask/tell interface
- A bounded worker pool running backtests in parallel
- The evaluation cache, Pareto frontier and walk-forward validator
- Progress publishing and cancellation
"""

import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from stratopt.configs.backtest import BacktestWindow
from stratopt.configs.optimization.orchestrator import Algorithm, OptimizationConfig, OrchestratorConfig
from stratopt.strategy.block import StrategyBlock, coerce_blocks
from utils.logger import get_logger
from .algorithms.base import BaseOptimizer
from .algorithms.bayesian import BayesianOptimizer
from .algorithms.genetic import GeneticOptimizer
from .cache import EvaluationCache
from .errors import OptimizationConfigError
from .objectives import ObjectiveScores
from .progress import ProgressChannel, ProgressSubscription
from .results.models import OptimizationProgress, OptimizationResult, OptimizationSolution
from .results.pareto import ParetoFrontier
from .scoring import BacktestRunner, ObjectiveScorer
from .search_space.extractor import ParameterExtractor
from .search_space.space import ParameterSet, SearchSpace
from .walk_forward import OutOfSampleOutcomes, WalkForwardValidator
from .workers.pool import EvaluationWorkerPool
from .workers.protocol import EvaluationFailure, EvaluationRequest, FailureKind

logger = get_logger(__name__)

RUN_FAILED_MESSAGE = (
    "Optimization could not complete: every candidate evaluation failed; "
    "the strategy configuration may be invalid."
)

CachedOutcome = Union[ObjectiveScores, EvaluationFailure]


class _RunState:
    """Mutable bookkeeping of one optimize() call; touched only by the orchestrator thread."""

    def __init__(self, config: OptimizationConfig, cache_size: int):
        self.config = config
        self.started = time.monotonic()
        self.solutions: List[OptimizationSolution] = []
        self.errors: List[str] = []
        self.last_error: Optional[str] = None
        self.iteration = 0
        self.evaluations_completed = 0
        self.requests_issued = 0
        self.cache: EvaluationCache[CachedOutcome] = EvaluationCache(cache_size)
        self.frontier = ParetoFrontier(config.objectives)

    def record_error(self, message: str):
        self.last_error = message
        self.errors.append(message)

    def next_request_id(self, prefix: str) -> str:
        self.requests_issued += 1
        return f"{prefix}-{self.requests_issued}"


class OptimizationOrchestrator:
    """
    Main orchestrator for optimization runs.

    Manages the complete optimization lifecycle:
    1. Initialization - config validation, search-space construction, algorithm selection
    2. Execution - ask a batch, serve repeats from the cache, evaluate the rest in
       parallel, tell the algorithm, update and revalidate the Pareto frontier
    3. Finalization - result assembly, including partial results after stop()

    One orchestrator runs one optimization at a time. Progress snapshots are
    published after every completed evaluation and after every iteration;
    queue subscribers see the end-of-run marker when ``optimize`` returns.
    """

    def __init__(
        self,
        run_backtest: BacktestRunner,
        config: Optional[OrchestratorConfig] = None,
        extractor: Optional[ParameterExtractor] = None,
    ):
        """
        Initialize the optimization orchestrator.

        Args:
            run_backtest: Backtest collaborator; called concurrently from worker threads
            config: Execution settings (worker count, cache size, retries, progress buffering)
            extractor: Parameter extractor used when a run config names no parameters
        """
        self.config = config or OrchestratorConfig()
        self.scorer = ObjectiveScorer(run_backtest)
        self.extractor = extractor or ParameterExtractor()
        self.progress = ProgressChannel(
            maxsize=self.config.progress_queue_size,
            put_timeout=self.config.progress_put_timeout,
        )

        # State management
        self.is_running = False
        self.is_cancelled = False
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._pool: Optional[EvaluationWorkerPool] = None

    def add_progress_callback(self, callback: Callable[[OptimizationProgress], None]):
        """Add callback for progress updates."""
        self.progress.add_callback(callback)

    def subscribe(self) -> ProgressSubscription:
        """Queue-backed progress stream; iteration ends when the current run ends."""
        return self.progress.subscribe()

    def stop(self):
        """
        Request cancellation of the running optimization.

        Queued evaluations are cancelled and workers stop before their next
        backtest; backtests already running finish. ``optimize`` then returns
        the solutions recorded so far with ``cancelled=True``.
        """
        logger.info("Optimization stop requested")
        self.is_cancelled = True
        self._cancel_event.set()
        with self._lock:
            pool = self._pool
        if pool is not None:
            pool.abort()

    def optimize(
        self,
        blocks: Sequence[Any],
        config: Union[OptimizationConfig, Mapping[str, Any]],
        on_progress: Optional[Callable[[OptimizationProgress], None]] = None,
    ) -> OptimizationResult:
        """
        Run the complete optimization workflow.

        Args:
            blocks: Strategy blocks (``StrategyBlock`` or plain dicts); never mutated
            config: Run configuration, or a mapping validated into one
            on_progress: Optional callback receiving every progress snapshot

        Returns:
            OptimizationResult: final, partial (stopped) or failed result

        Raises:
            OptimizationConfigError: The search space is empty or malformed.
            pydantic.ValidationError: The run configuration is invalid.
        """
        # Claim the orchestrator first so a stop() during setup is honoured
        with self._lock:
            if self.is_running:
                raise RuntimeError("An optimization is already running on this orchestrator")
            self.is_running = True
            self.is_cancelled = False
            self._cancel_event.clear()

        try:
            if on_progress is not None:
                self.progress.add_callback(on_progress)
            if not isinstance(config, OptimizationConfig):
                config = OptimizationConfig.model_validate(config)
            blocks = coerce_blocks(blocks)
            space = self._build_search_space(blocks, config)
            return self._run(blocks, space, config)
        finally:
            if on_progress is not None:
                self.progress.remove_callback(on_progress)
            self.progress.close()
            with self._lock:
                self._pool = None
                self.is_running = False

    def _build_search_space(self, blocks: List[StrategyBlock], config: OptimizationConfig) -> SearchSpace:
        if config.parameters is not None:
            definitions = list(config.parameters)
        else:
            definitions = self.extractor.extract(blocks)
        if not definitions:
            raise OptimizationConfigError("No optimizable parameters found in the strategy blocks")

        block_ids = {block.id for block in blocks}
        unknown = sorted({d.block_id for d in definitions} - block_ids)
        if unknown:
            raise OptimizationConfigError(f"Parameters reference unknown blocks: {unknown}")
        return SearchSpace(definitions)

    def _create_optimizer(self, config: OptimizationConfig) -> BaseOptimizer:
        if config.algorithm == Algorithm.GENETIC:
            return GeneticOptimizer(config.genetic)
        return BayesianOptimizer(config.bayesian)

    def _run(self, blocks: List[StrategyBlock], space: SearchSpace, config: OptimizationConfig) -> OptimizationResult:
        state = _RunState(config, self.config.cache_size)

        if config.max_iterations == 0:
            logger.info("max_iterations is 0; nothing to evaluate")
            return self._build_result(state, 0)

        validator = WalkForwardValidator(config.walk_forward, config.primary_objective)
        validator.prepare(config.backtest_window)
        train_segments = validator.train_segments()
        test_segments = validator.test_segments()

        optimizer = self._create_optimizer(config)
        optimizer.initialize(space, config.objectives, config.max_iterations)

        logger.info(
            f"Starting {config.algorithm.value} optimization: {len(space)} parameters, "
            f"objectives={[o.value for o in config.objectives]}, max_iterations={config.max_iterations}, "
            f"{len(validator.windows)} walk-forward window(s), {self.config.max_workers} workers"
        )

        pool = EvaluationWorkerPool(
            self.scorer,
            max_workers=self.config.max_workers,
            max_retries=self.config.max_retries,
            retry_initial_delay=self.config.retry_initial_delay,
            retry_max_delay=self.config.retry_max_delay,
        )
        with pool:
            with self._lock:
                self._pool = pool
            # stop() may have fired before the pool existed
            if self._cancel_event.is_set():
                pool.abort()

            while not optimizer.is_finished() and not self._cancel_event.is_set():
                batch = optimizer.ask()
                if not batch:
                    break

                scores, successes, complete = self._evaluate_batch(pool, blocks, space, batch, train_segments, state)
                if not complete or self._cancel_event.is_set():
                    # A partially evaluated batch is never told
                    logger.info("Optimization cancelled mid-batch; discarding unfinished batch")
                    break

                optimizer.tell(batch, scores)
                new_solutions = [
                    OptimizationSolution(
                        id=f"solution-{len(state.solutions) + offset}",
                        iteration=optimizer.iteration,
                        parameters=parameters,
                        in_sample_scores=in_sample,
                    )
                    for offset, (parameters, in_sample) in enumerate(successes)
                ]
                state.solutions.extend(new_solutions)
                state.frontier.add(new_solutions)
                validator.validate(
                    state.frontier.members,
                    lambda pending: self._evaluate_out_of_sample(pool, blocks, pending, test_segments, state),
                )
                state.iteration = optimizer.iteration
                self._publish(state)

        return self._build_result(state, optimizer.iteration)

    def _evaluate_batch(
        self,
        pool: EvaluationWorkerPool,
        blocks: List[StrategyBlock],
        space: SearchSpace,
        batch: List[ParameterSet],
        segments: List[BacktestWindow],
        state: _RunState,
    ) -> Tuple[List[ObjectiveScores], List[Tuple[ParameterSet, ObjectiveScores]], bool]:
        """
        Score one batch in-sample, serving repeats from the cache.

        Returns:
            (scores, successes, complete): scores aligned with ``batch`` (empty
            for failed candidates), the freshly evaluated successes in
            completion order, and whether every candidate resolved without
            cancellation.
        """
        scores: List[ObjectiveScores] = [{} for _ in batch]
        successes: List[Tuple[ParameterSet, ObjectiveScores]] = []
        groups: Dict[str, List[int]] = {}
        requests: List[EvaluationRequest] = []
        request_keys: Dict[str, str] = {}

        for index, candidate in enumerate(batch):
            key = space.content_hash(candidate)
            if key in groups:
                state.cache.record_hit()
                groups[key].append(index)
                continue
            groups[key] = [index]

            cached = state.cache.get(key)
            if cached is not None:
                if not isinstance(cached, EvaluationFailure):
                    scores[index] = dict(cached)
                continue

            request = EvaluationRequest(
                id=state.next_request_id("candidate"),
                blocks=blocks,
                parameters=candidate,
                segments=segments,
            )
            request_keys[request.id] = key
            requests.append(request)

        complete = True
        for response in pool.evaluate(requests):
            key = request_keys[response.id]
            state.evaluations_completed += 1

            if isinstance(response, EvaluationFailure):
                if response.kind == FailureKind.CANCELLED:
                    complete = False
                    continue
                state.cache.put(key, response)
                state.record_error(response.message)
                logger.warning(f"Candidate {response.id} failed after {response.attempts} attempt(s): {response.error}")
            else:
                state.cache.put(key, response.scores)
                successes.append((response.parameters, response.scores))
                for index in groups[key]:
                    scores[index] = dict(response.scores)
            self._publish(state)

        return scores, successes, complete

    def _evaluate_out_of_sample(
        self,
        pool: EvaluationWorkerPool,
        blocks: List[StrategyBlock],
        pending: List[OptimizationSolution],
        segments: List[BacktestWindow],
        state: _RunState,
    ) -> OutOfSampleOutcomes:
        """Score frontier members on the test segments; cancelled ones are left out."""
        requests = [
            EvaluationRequest(
                id=state.next_request_id("validate"),
                blocks=blocks,
                parameters=solution.parameters,
                segments=segments,
            )
            for solution in pending
        ]
        solution_ids = {request.id: solution.id for request, solution in zip(requests, pending)}

        outcomes: OutOfSampleOutcomes = {}
        for response in pool.evaluate(requests):
            state.evaluations_completed += 1
            solution_id = solution_ids[response.id]
            if isinstance(response, EvaluationFailure):
                if response.kind == FailureKind.CANCELLED:
                    continue
                outcomes[solution_id] = response.message
            else:
                outcomes[solution_id] = response.scores
        return outcomes

    def _publish(self, state: _RunState):
        iteration = state.iteration
        max_iterations = state.config.max_iterations
        elapsed = time.monotonic() - state.started
        per_iteration = elapsed / iteration if iteration > 0 else self.config.default_seconds_per_iteration
        remaining = max(max_iterations - iteration, 0)

        # Snapshots must not change after publication
        frontier = [s.model_copy(deep=True) for s in state.frontier.members]
        with self._lock:
            workers_active = self._pool.active_count if self._pool is not None else 0

        progress = OptimizationProgress(
            iteration=iteration,
            max_iterations=max_iterations,
            best_solution=state.frontier.best_solution(frontier),
            pareto_frontier=frontier,
            estimated_time_remaining_seconds=remaining * per_iteration,
            workers_active=workers_active,
            evaluations_completed=state.evaluations_completed,
            last_error=state.last_error,
            errors=list(state.errors),
        )
        self.progress.publish(progress)

    def _build_result(self, state: _RunState, total_iterations: int) -> OptimizationResult:
        cancelled = self._cancel_event.is_set()
        error = None
        if not state.solutions and not cancelled and state.evaluations_completed > 0:
            error = RUN_FAILED_MESSAGE
            logger.error(error)

        result = OptimizationResult(
            config=state.config,
            solutions=state.solutions,
            pareto_frontier=list(state.frontier.members),
            total_iterations=total_iterations,
            total_time_seconds=time.monotonic() - state.started,
            cache_hit_rate=state.cache.hit_rate,
            cancelled=cancelled,
            error=error,
            errors=state.errors,
        )
        logger.info(
            f"Optimization finished: {total_iterations} iterations, {len(result.solutions)} solutions, "
            f"{len(result.pareto_frontier)} on the frontier, cache hit rate {result.cache_hit_rate:.1%}"
            + (" (cancelled)" if cancelled else "")
        )
        return result
