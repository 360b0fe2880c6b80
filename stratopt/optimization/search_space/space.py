"""
Search space management for optimization parameters.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
from scipy.stats import qmc

from stratopt.optimization.errors import OptimizationConfigError
from .parameter import ParameterDefinition

# block_id -> {param_name -> value}
ParameterSet = Dict[str, Dict[str, float]]

# Digits kept when normalizing values for content hashing
_HASH_PRECISION = 10


class SearchSpace:
    """
    Manages the complete parameter search space for one optimization run.

    Parameters keep the order they were given in; that order defines the
    dimensions of the unit-cube encoding used by the search algorithms.

    Example:
        space = SearchSpace(ParameterExtractor().extract(blocks))
        vector = space.encode(space.defaults())
        params = space.decode(vector)
    """

    def __init__(self, parameters: Sequence[ParameterDefinition]):
        """
        Initialize search space with parameter definitions.

        Args:
            parameters: ParameterDefinition objects defining the search space
        """
        self.parameters: List[ParameterDefinition] = list(parameters)
        self._validate_search_space()

    def _validate_search_space(self):
        """Validate the search space for consistency."""
        if not self.parameters:
            raise OptimizationConfigError("Search space cannot be empty: the strategy has no tunable parameters")

        keys = [param.key for param in self.parameters]
        if len(keys) != len(set(keys)):
            duplicates = sorted({f"{b}.{p}" for b, p in keys if keys.count((b, p)) > 1})
            raise OptimizationConfigError(f"Duplicate parameters found: {duplicates}")

    def get_dimensionality(self) -> int:
        return len(self.parameters)

    def defaults(self) -> ParameterSet:
        """The parameter set the blocks currently hold."""
        return self._from_values([param.default_value for param in self.parameters])

    def sample(self, n_samples: int = 1, rng: Optional[np.random.Generator] = None) -> List[ParameterSet]:
        """
        Sample parameter sets uniformly at random.

        Args:
            n_samples: Number of samples to generate
            rng: Random generator for reproducible sampling

        Returns:
            List of parameter sets
        """
        rng = rng or np.random.default_rng()
        return [
            self._from_values([param.sample(rng) for param in self.parameters])
            for _ in range(n_samples)
        ]

    def latin_hypercube(self, n_samples: int, rng: Optional[np.random.Generator] = None) -> List[ParameterSet]:
        """
        Stratified samples covering every dimension evenly.

        Each dimension is split into ``n_samples`` strata and every stratum is
        hit exactly once, which seeds a surrogate model far better than plain
        uniform sampling for the same budget.
        """
        if n_samples <= 0:
            return []
        sampler = qmc.LatinHypercube(d=self.get_dimensionality(), seed=rng)
        return [self.decode(row) for row in sampler.random(n_samples)]

    def random_unit(self, n_samples: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Uniform points of the unit hypercube, shape (n_samples, d)."""
        rng = rng or np.random.default_rng()
        return rng.random((n_samples, self.get_dimensionality()))

    def encode(self, parameter_set: ParameterSet) -> np.ndarray:
        """Map a parameter set onto the unit hypercube."""
        return np.array([
            param.to_unit(parameter_set[param.block_id][param.param_name])
            for param in self.parameters
        ])

    def decode(self, vector: Sequence[float]) -> ParameterSet:
        """Map a unit-hypercube point back to a legal parameter set."""
        return self._from_values([
            param.from_unit(u) for param, u in zip(self.parameters, vector)
        ])

    def clip(self, parameter_set: ParameterSet) -> ParameterSet:
        """
        Clip a parameter set into the search space bounds.

        Missing values fall back to the parameter's default.
        """
        values = []
        for param in self.parameters:
            value = parameter_set.get(param.block_id, {}).get(param.param_name, param.default_value)
            values.append(param.clip_value(value))
        return self._from_values(values)

    def validate(self, parameter_set: ParameterSet) -> bool:
        """True if every parameter is present and within its bounds, and nothing else is set."""
        expected = {param.key for param in self.parameters}
        given = {(block_id, name) for block_id, values in parameter_set.items() for name in values}
        if expected != given:
            return False
        return all(
            param.validate_value(parameter_set[param.block_id][param.param_name])
            for param in self.parameters
        )

    def normalize(self, parameter_set: ParameterSet) -> ParameterSet:
        """Canonical form used for hashing: sorted keys, rounded floats."""
        return {
            block_id: {
                name: round(float(value), _HASH_PRECISION)
                for name, value in sorted(values.items())
            }
            for block_id, values in sorted(parameter_set.items())
        }

    def content_hash(self, parameter_set: ParameterSet) -> str:
        """Stable content hash of a parameter set."""
        payload = json.dumps(self.normalize(parameter_set), sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def get_bounds(self) -> Dict[Tuple[str, str], Tuple[float, float]]:
        return {param.key: (param.low, param.high) for param in self.parameters}

    def _from_values(self, values: Sequence[float]) -> ParameterSet:
        parameter_set: ParameterSet = {}
        for param, value in zip(self.parameters, values):
            parameter_set.setdefault(param.block_id, {})[param.param_name] = float(value)
        return parameter_set

    def __len__(self) -> int:
        return len(self.parameters)

    def __iter__(self):
        return iter(self.parameters)

    def __repr__(self) -> str:
        param_info = []
        for param in self.parameters:
            if param.discrete_values is not None:
                param_info.append(f"{param.label}: {param.kind.value}{list(param.discrete_values)}")
            else:
                param_info.append(f"{param.label}: {param.kind.value}[{param.low}, {param.high}]")
        return f"SearchSpace({', '.join(param_info)})"
