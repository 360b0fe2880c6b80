"""
ParameterDefinition and SearchSpace unit tests
"""

import numpy as np
import pytest
from pydantic import ValidationError

from stratopt.optimization.errors import OptimizationConfigError
from stratopt.optimization.search_space.parameter import ParameterDefinition, ParameterKind
from stratopt.optimization.search_space.space import SearchSpace


def continuous(block_id, name, low, high, default):
    return ParameterDefinition(
        block_id=block_id, block_type="test", param_name=name,
        kind=ParameterKind.CONTINUOUS, low=low, high=high, default_value=default,
    )


@pytest.fixture
def space():
    return SearchSpace([
        continuous("swap-1", "slippage", 0.1, 2.0, 0.5),
        continuous("swap-1", "amount", 50.0, 150.0, 100.0),
        ParameterDefinition(
            block_id="rebalance", block_type="test", param_name="interval",
            kind=ParameterKind.DISCRETE, discrete_values=(30, 1, 7), default_value=7,
        ),
    ])


class TestParameterDefinition:
    """Validation of single parameter definitions"""

    def test_discrete_values_sorted_and_bounds_derived(self):
        param = ParameterDefinition(
            block_id="b", block_type="t", param_name="p",
            kind=ParameterKind.DISCRETE, discrete_values=(30, 1, 7, 7), default_value=7,
        )
        assert param.discrete_values == (1.0, 7.0, 30.0)
        assert (param.low, param.high) == (1.0, 30.0)

    def test_default_must_be_in_range(self):
        with pytest.raises(ValidationError):
            continuous("b", "p", 0.0, 1.0, 2.0)

    def test_low_below_high(self):
        with pytest.raises(ValidationError):
            continuous("b", "p", 1.0, 1.0, 1.0)

    def test_discrete_default_must_be_a_choice(self):
        with pytest.raises(ValidationError):
            ParameterDefinition(
                block_id="b", block_type="t", param_name="p",
                kind=ParameterKind.DISCRETE, discrete_values=(1, 2), default_value=3,
            )

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            ParameterDefinition(
                block_id="b", block_type="t", param_name="p",
                kind="boolean", low=0, high=1, default_value=0,
            )

    def test_clip_snaps_discrete_values(self, space):
        interval = space.parameters[2]
        assert interval.clip_value(9) == 7.0
        assert interval.clip_value(100) == 30.0
        assert space.parameters[0].clip_value(-1) == 0.1


class TestSearchSpace:
    """Sampling, encoding and hashing over the whole space"""

    def test_empty_space_rejected(self):
        with pytest.raises(OptimizationConfigError):
            SearchSpace([])

    def test_duplicate_parameters_rejected(self):
        with pytest.raises(OptimizationConfigError, match="swap-1.slippage"):
            SearchSpace([
                continuous("swap-1", "slippage", 0.1, 2.0, 0.5),
                continuous("swap-1", "slippage", 0.1, 1.0, 0.5),
            ])

    def test_defaults(self, space):
        assert space.defaults() == {
            "swap-1": {"slippage": 0.5, "amount": 100.0},
            "rebalance": {"interval": 7.0},
        }

    def test_samples_are_valid(self, space):
        rng = np.random.default_rng(3)
        samples = space.sample(25, rng)
        assert len(samples) == 25
        assert all(space.validate(s) for s in samples)

    def test_latin_hypercube_is_stratified(self, space):
        n = 8
        samples = space.latin_hypercube(n, np.random.default_rng(0))
        assert len(samples) == n
        assert all(space.validate(s) for s in samples)

        units = np.array([space.encode(s) for s in samples])
        for dim in range(2):
            strata = sorted(np.minimum(np.floor(units[:, dim] * n), n - 1).astype(int))
            assert strata == list(range(n))

    def test_latin_hypercube_zero_samples(self, space):
        assert space.latin_hypercube(0) == []

    def test_decode_stays_in_bounds(self, space):
        decoded = space.decode([1.5, -0.2, 0.99])
        assert decoded["swap-1"]["slippage"] == 2.0
        assert decoded["swap-1"]["amount"] == 50.0
        assert decoded["rebalance"]["interval"] == 30.0
        assert space.validate(decoded)

    def test_encode_decode_defaults(self, space):
        defaults = space.defaults()
        decoded = space.decode(space.encode(defaults))
        assert decoded["swap-1"]["slippage"] == pytest.approx(0.5)
        assert decoded["swap-1"]["amount"] == pytest.approx(100.0)
        assert decoded["rebalance"]["interval"] == 7.0

    def test_clip_fills_missing_values(self, space):
        clipped = space.clip({"swap-1": {"slippage": 9.0}})
        assert clipped == {
            "swap-1": {"slippage": 2.0, "amount": 100.0},
            "rebalance": {"interval": 7.0},
        }

    def test_validate_rejects_unknown_keys(self, space):
        params = space.defaults()
        params["swap-1"]["leverage"] = 2.0
        assert not space.validate(params)

    def test_content_hash_is_normalized(self, space):
        a = {"swap-1": {"slippage": 0.5, "amount": 100.0}, "rebalance": {"interval": 7.0}}
        b = {"rebalance": {"interval": 7}, "swap-1": {"amount": 100.0 + 1e-13, "slippage": 0.5}}
        c = {"swap-1": {"slippage": 0.51, "amount": 100.0}, "rebalance": {"interval": 7.0}}

        assert space.content_hash(a) == space.content_hash(b)
        assert space.content_hash(a) != space.content_hash(c)
        assert len(space.content_hash(a)) == 64
