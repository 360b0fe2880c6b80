from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from stratopt.optimization.objectives import Objective, ObjectiveScores
from stratopt.optimization.search_space.space import ParameterSet, SearchSpace


class BaseOptimizer(ABC):
    """
    Abstract base class for all optimizers.

    Optimizers follow an ask/tell protocol: ``ask`` proposes a batch of
    candidates, the orchestrator evaluates them, and ``tell`` reports the
    scores back in the same order. A failed candidate is told with empty
    scores, which rank below any real score.
    """

    def __init__(self, **kwargs):
        self.search_space: Optional[SearchSpace] = None
        self.objectives: List[Objective] = []
        self.max_iterations: int = 0
        self.iteration: int = 0
        self.is_initialized = False

    def initialize(self, search_space: SearchSpace, objectives: Sequence[Objective], max_iterations: int):
        """
        Prepare the optimizer with the search space, objectives and iteration budget.
        """
        self.search_space = search_space
        self.objectives = [Objective(o) for o in objectives]
        self.max_iterations = max_iterations
        self.iteration = 0
        self.is_initialized = True

    @abstractmethod
    def ask(self) -> List[ParameterSet]:
        """
        Suggest the next batch of configurations to evaluate.
        """
        pass

    @abstractmethod
    def tell(self, candidates: Sequence[ParameterSet], scores: Sequence[ObjectiveScores]):
        """
        Inform the optimizer of the scores of a batch returned by ``ask``.
        """
        pass

    def is_finished(self) -> bool:
        """
        Whether the optimizer has used up its iteration budget.
        """
        return self.iteration >= self.max_iterations

    @abstractmethod
    def get_total_trials(self) -> int:
        """
        Total number of candidate evaluations the optimizer expects to request.
        """
        pass

    def _check_initialized(self):
        if not self.is_initialized:
            raise RuntimeError(f"{type(self).__name__} must be initialized before use")
