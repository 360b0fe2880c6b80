import copy
from typing import Dict, List, Optional, Sequence
import numpy as np
from pydantic import BaseModel

from stratopt.configs.optimization.algorithms import GeneticConfig
from stratopt.optimization.objectives import Objective, ObjectiveScores, oriented_vector
from stratopt.optimization.results.pareto import crowding_distance, non_dominated_sort
from stratopt.optimization.search_space.space import ParameterSet, SearchSpace
from utils.logger import get_logger
from .base import BaseOptimizer

logger = get_logger(__name__)


class Individual(BaseModel):
    """One evaluated genome with its NSGA-II ranking."""
    parameters: ParameterSet
    scores: ObjectiveScores
    rank: int = 0
    crowding_distance: float = 0.0


class GeneticOptimizer(BaseOptimizer):
    """
    NSGA-II style genetic optimizer.

    Generation 1 is the initial population: the blocks' current values plus
    random genomes. Every later generation breeds ``population_size``
    offspring by binary tournament, uniform crossover and Gaussian mutation,
    then keeps the best ``population_size`` of parents and offspring by
    non-dominated rank and crowding distance. Failed genomes carry empty
    scores and therefore rank last.

    The iteration counter counts generations told.
    """

    def __init__(self, config: Optional[GeneticConfig] = None):
        super().__init__()
        self.config = config or GeneticConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.population: List[Individual] = []

    def initialize(self, search_space: SearchSpace, objectives: Sequence[Objective], max_iterations: int):
        super().initialize(search_space, objectives, max_iterations)
        self.rng = np.random.default_rng(self.config.seed)
        self.population = []

    def ask(self) -> List[ParameterSet]:
        self._check_initialized()
        if self.is_finished():
            return []

        if not self.population:
            return self._initial_population()
        return [self._breed() for _ in range(self.config.population_size)]

    def tell(self, candidates: Sequence[ParameterSet], scores: Sequence[ObjectiveScores]):
        self._check_initialized()
        if len(candidates) != len(scores):
            raise ValueError(f"Got {len(scores)} score sets for {len(candidates)} candidates")

        evaluated = [
            Individual(parameters=candidate, scores=dict(candidate_scores))
            for candidate, candidate_scores in zip(candidates, scores)
        ]
        self.population = self._select(self.population + evaluated, self.config.population_size)
        self.iteration += 1
        logger.debug(
            f"Generation {self.iteration}: {sum(1 for i in self.population if i.rank == 0)} "
            f"of {len(self.population)} on the first front"
        )

    def get_total_trials(self) -> int:
        return self.max_iterations * self.config.population_size

    def _initial_population(self) -> List[ParameterSet]:
        size = self.config.population_size
        population = [self.search_space.defaults()]
        population.extend(self.search_space.sample(size - 1, self.rng))
        logger.info(f"Genetic optimizer seeding initial population of {size}")
        return population

    def _rank(self, individuals: List[Individual]):
        """Assign non-dominated rank and crowding distance in place."""
        vectors = [oriented_vector(i.scores, self.objectives) for i in individuals]
        for rank, front in enumerate(non_dominated_sort(vectors)):
            distances = crowding_distance(vectors, front)
            for index in front:
                individuals[index].rank = rank
                individuals[index].crowding_distance = distances[index]

    def _select(self, individuals: List[Individual], size: int) -> List[Individual]:
        self._rank(individuals)
        ordered = sorted(individuals, key=lambda i: (i.rank, -i.crowding_distance))
        return ordered[:size]

    def _tournament(self) -> Individual:
        size = min(self.config.tournament_size, len(self.population))
        picks = self.rng.choice(len(self.population), size=size, replace=False)
        contenders = [self.population[i] for i in picks]
        return min(contenders, key=lambda i: (i.rank, -i.crowding_distance))

    def _breed(self) -> ParameterSet:
        first = self._tournament().parameters
        second = self._tournament().parameters
        child = self._crossover(first, second)
        return self._mutate(child)

    def _crossover(self, first: ParameterSet, second: ParameterSet) -> ParameterSet:
        """Uniform crossover: each parameter comes from either parent with equal odds."""
        child = copy.deepcopy(first)
        if self.rng.random() >= self.config.crossover_rate:
            return child
        for param in self.search_space:
            if self.rng.random() < 0.5:
                child[param.block_id][param.param_name] = second[param.block_id][param.param_name]
        return child

    def _mutate(self, genome: ParameterSet) -> ParameterSet:
        mutated: Dict[str, Dict[str, float]] = copy.deepcopy(genome)
        for param in self.search_space:
            if self.rng.random() >= self.config.mutation_rate:
                continue
            if param.discrete_values is not None:
                value = param.sample(self.rng)
            else:
                sigma = self.config.mutation_scale * (param.high - param.low)
                value = mutated[param.block_id][param.param_name] + self.rng.normal(0.0, sigma)
            mutated[param.block_id][param.param_name] = value
        return self.search_space.clip(mutated)
