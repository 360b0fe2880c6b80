import warnings
from enum import Enum
from typing import List, Optional, Sequence
import numpy as np
from scipy.stats import norm
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel, Matern, WhiteKernel

from stratopt.configs.optimization.algorithms import BayesianConfig
from stratopt.optimization.objectives import Objective, ObjectiveScores, oriented_vector
from stratopt.optimization.results.pareto import frontier_indices
from stratopt.optimization.search_space.space import ParameterSet, SearchSpace
from utils.logger import get_logger
from .base import BaseOptimizer

logger = get_logger(__name__)


class BayesianState(str, Enum):
    WARMUP = "warmup"
    MODEL_GUIDED = "model_guided"


class BayesianOptimizer(BaseOptimizer):
    """
    Multi-objective Bayesian optimizer with Gaussian-process surrogates.

    The first ``warmup_size`` candidates are a single Latin hypercube batch.
    After that, one candidate per step is chosen by maximin expected
    improvement: for every random candidate point, the best per-objective EI
    against each frontier point is taken, and the candidate whose worst such
    value is highest wins. Points whose EI is high against the whole frontier
    extend it rather than crowd one end of it.

    The iteration counter counts candidates told.
    """

    def __init__(self, config: Optional[BayesianConfig] = None):
        super().__init__()
        self.config = config or BayesianConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.state = BayesianState.WARMUP
        self.observed_x: List[np.ndarray] = []
        self.observed_y: List[List[float]] = []
        self._observed_hashes = set()

    def initialize(self, search_space: SearchSpace, objectives: Sequence[Objective], max_iterations: int):
        super().initialize(search_space, objectives, max_iterations)
        self.rng = np.random.default_rng(self.config.seed)
        self.state = BayesianState.WARMUP
        self.observed_x.clear()
        self.observed_y.clear()
        self._observed_hashes.clear()

    @property
    def warmup_batch_size(self) -> int:
        return min(self.config.warmup_size, self.max_iterations)

    def ask(self) -> List[ParameterSet]:
        self._check_initialized()
        if self.is_finished():
            return []

        if self.state == BayesianState.WARMUP:
            batch = self.search_space.latin_hypercube(self.warmup_batch_size, self.rng)
            logger.info(f"Bayesian warmup: {len(batch)} Latin hypercube samples")
            return batch

        return [self._suggest()]

    def tell(self, candidates: Sequence[ParameterSet], scores: Sequence[ObjectiveScores]):
        self._check_initialized()
        if len(candidates) != len(scores):
            raise ValueError(f"Got {len(scores)} score sets for {len(candidates)} candidates")

        for candidate, candidate_scores in zip(candidates, scores):
            self.observed_x.append(self.search_space.encode(candidate))
            self.observed_y.append(list(oriented_vector(candidate_scores, self.objectives)))
            self._observed_hashes.add(self.search_space.content_hash(candidate))
        self.iteration += len(candidates)

        if self.state == BayesianState.WARMUP and self.iteration >= self.warmup_batch_size:
            self.state = BayesianState.MODEL_GUIDED
            logger.info(f"Bayesian optimizer switching to model-guided search after {self.iteration} samples")

    def get_total_trials(self) -> int:
        return self.max_iterations

    def _suggest(self) -> ParameterSet:
        candidates = self._candidate_points()
        X = np.array(self.observed_x)
        Y = np.array(self.observed_y, dtype=float)

        # Frontier over observations with every objective scored
        complete = np.isfinite(Y).all(axis=1)
        if complete.sum() == 0:
            logger.debug("No fully scored observations yet; sampling at random")
            return self.search_space.decode(candidates[0])

        means = []
        stds = []
        frontier_targets = []
        complete_y = Y[complete]
        front = complete_y[frontier_indices([tuple(row) for row in complete_y])]

        for j in range(len(self.objectives)):
            finite = np.isfinite(Y[:, j])
            if finite.sum() < 2:
                logger.debug(f"Too few observations for {self.objectives[j].value}; sampling at random")
                return self.search_space.decode(candidates[0])

            y = Y[finite, j]
            center = y.mean()
            scale = y.std() or 1.0
            mu, sigma = self._fit_predict(X[finite], (y - center) / scale, candidates)
            means.append(mu)
            stds.append(sigma)
            frontier_targets.append((front[:, j] - center) / scale)

        mu = np.stack(means, axis=1)[:, None, :]          # (n, 1, m)
        sigma = np.stack(stds, axis=1)[:, None, :]        # (n, 1, m)
        targets = np.stack(frontier_targets, axis=1)[None, :, :]  # (1, k, m)

        ei = self._expected_improvement(mu, sigma, targets)  # (n, k, m)
        score = ei.max(axis=2).min(axis=1)
        best = int(np.argmax(score))
        logger.debug(f"Maximin EI picked candidate {best} with score {score[best]:.4g}")
        return self.search_space.decode(candidates[best])

    def _candidate_points(self) -> np.ndarray:
        """Random unit-cube points whose decoded parameter sets were not observed yet."""
        points = self.search_space.random_unit(self.config.n_candidates, self.rng)
        fresh = [
            point for point in points
            if self.search_space.content_hash(self.search_space.decode(point)) not in self._observed_hashes
        ]
        if not fresh:
            # Small discrete spaces can be exhausted; repeats are served by the cache
            return points
        return np.array(fresh)

    def _fit_predict(self, X: np.ndarray, y: np.ndarray, candidates: np.ndarray):
        kernel = (
            ConstantKernel(1.0, (1e-3, 1e3))
            * Matern(length_scale=np.ones(X.shape[1]), length_scale_bounds=(1e-2, 1e2), nu=2.5)
            + WhiteKernel(noise_level=1e-5, noise_level_bounds=(1e-8, 1e-1))
        )
        gp = GaussianProcessRegressor(
            kernel=kernel,
            n_restarts_optimizer=self.config.n_restarts_optimizer,
            random_state=int(self.rng.integers(2 ** 31 - 1)),
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            gp.fit(X, y)
            mu, sigma = gp.predict(candidates, return_std=True)
        return mu, np.maximum(sigma, 1e-12)

    def _expected_improvement(self, mu: np.ndarray, sigma: np.ndarray, targets: np.ndarray) -> np.ndarray:
        improvement = mu - targets - self.config.exploration
        z = improvement / sigma
        return improvement * norm.cdf(z) + sigma * norm.pdf(z)
