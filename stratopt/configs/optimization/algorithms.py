from typing import Optional
from pydantic import Field

from ..base import BaseConfig


class BayesianConfig(BaseConfig):
    """Settings for the Gaussian-process Bayesian optimizer."""
    warmup_size: int = Field(5, gt=0, description="Latin hypercube samples drawn before the surrogate is used")
    n_candidates: int = Field(512, gt=0, description="Random points ranked by the acquisition function per step")
    exploration: float = Field(0.01, ge=0, description="Expected-improvement margin (xi) in standardized units")
    n_restarts_optimizer: int = Field(2, ge=0, description="Kernel hyperparameter restarts per GP fit")
    seed: Optional[int] = None


class GeneticConfig(BaseConfig):
    """Settings for the NSGA-II style genetic optimizer."""
    population_size: int = Field(20, ge=2)
    mutation_rate: float = Field(0.1, ge=0, le=1, description="Per-parameter mutation probability")
    mutation_scale: float = Field(0.1, gt=0, le=1, description="Gaussian sigma as a fraction of the parameter range")
    crossover_rate: float = Field(0.9, ge=0, le=1, description="Probability that a child mixes both parents")
    tournament_size: int = Field(2, ge=2)
    seed: Optional[int] = None
