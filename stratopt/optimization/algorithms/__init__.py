from .base import BaseOptimizer
from .bayesian import BayesianOptimizer, BayesianState
from .genetic import GeneticOptimizer, Individual

__all__ = [
    'BaseOptimizer',
    'BayesianOptimizer',
    'BayesianState',
    'GeneticOptimizer',
    'Individual',
]
