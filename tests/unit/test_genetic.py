"""
GeneticOptimizer unit tests
"""

import math

import pytest

from stratopt.configs.optimization.algorithms import GeneticConfig
from stratopt.optimization.algorithms.genetic import GeneticOptimizer
from stratopt.optimization.objectives import Objective
from stratopt.optimization.search_space.parameter import ParameterDefinition, ParameterKind
from stratopt.optimization.search_space.space import SearchSpace

OBJECTIVES = [Objective.SHARPE_RATIO, Objective.MAX_DRAWDOWN]


def score(candidate):
    slippage = candidate["swap-1"]["slippage"]
    interval = candidate["rebalance"]["interval"]
    return {
        "sharpeRatio": 2.0 - (slippage - 0.4) ** 2 + interval / 100.0,
        "maxDrawdown": 5.0 + slippage * 4.0 + interval / 10.0,
    }


@pytest.fixture
def space():
    return SearchSpace([
        ParameterDefinition(block_id="swap-1", block_type="uniswap_swap", param_name="slippage",
                            kind=ParameterKind.CONTINUOUS, low=0.1, high=2.0, default_value=0.5),
        ParameterDefinition(block_id="rebalance", block_type="rebalance", param_name="interval",
                            kind=ParameterKind.DISCRETE, discrete_values=(1, 7, 30), default_value=7),
    ])


def make_optimizer(space, max_iterations, **overrides):
    optimizer = GeneticOptimizer(GeneticConfig(seed=3, population_size=8, **overrides))
    optimizer.initialize(space, OBJECTIVES, max_iterations)
    return optimizer


class TestGeneticOptimizer:
    """Generations, selection and variation"""

    def test_initial_population_starts_from_defaults(self, space):
        optimizer = make_optimizer(space, 3)
        population = optimizer.ask()

        assert len(population) == 8
        assert population[0] == space.defaults()
        assert all(space.validate(genome) for genome in population)

    def test_population_size_constant_across_generations(self, space):
        optimizer = make_optimizer(space, 5)
        while not optimizer.is_finished():
            batch = optimizer.ask()
            assert len(batch) == 8
            assert all(space.validate(genome) for genome in batch)
            optimizer.tell(batch, [score(genome) for genome in batch])
            assert len(optimizer.population) == 8

        assert optimizer.iteration == 5
        assert optimizer.ask() == []
        assert optimizer.get_total_trials() == 40

    def test_failed_genomes_rank_last(self, space):
        optimizer = make_optimizer(space, 2)
        batch = optimizer.ask()
        scores = [score(genome) for genome in batch]
        scores[0] = {}
        scores[3] = {}
        optimizer.tell(batch, scores)

        failed = [i for i in optimizer.population if not i.scores]
        scored = [i for i in optimizer.population if i.scores]
        assert failed and scored
        assert min(i.rank for i in failed) > max(i.rank for i in scored)

    def test_selection_prefers_first_front(self, space):
        optimizer = make_optimizer(space, 3)
        for _ in range(3):
            batch = optimizer.ask()
            optimizer.tell(batch, [score(genome) for genome in batch])

        ranks = [i.rank for i in optimizer.population]
        assert ranks == sorted(ranks)
        assert ranks[0] == 0
        first_front = [i for i in optimizer.population if i.rank == 0]
        assert any(math.isinf(i.crowding_distance) for i in first_front)

    def test_mutation_respects_bounds(self, space):
        optimizer = make_optimizer(space, 2, mutation_rate=1.0, mutation_scale=1.0)
        batch = optimizer.ask()
        optimizer.tell(batch, [score(genome) for genome in batch])

        offspring = optimizer.ask()
        assert all(space.validate(genome) for genome in offspring)
        assert {g["rebalance"]["interval"] for g in offspring} <= {1.0, 7.0, 30.0}

    def test_no_crossover_copies_a_parent(self, space):
        optimizer = make_optimizer(space, 2, crossover_rate=0.0, mutation_rate=0.0)
        batch = optimizer.ask()
        optimizer.tell(batch, [score(genome) for genome in batch])

        parents = [i.parameters for i in optimizer.population]
        assert all(child in parents for child in optimizer.ask())
