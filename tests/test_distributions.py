"""
Tests for sparse categorical distributions and belief-set sampling.
"""

import pytest
import numpy as np

from collision_pomdp.pomdp import (
    Distribution,
    ModelDefinitionError,
    SparseCat,
    default_belief_set,
    extreme_beliefs,
    random_beliefs,
    reachable_beliefs,
)
from collision_pomdp.spacecraft import build_spacecraft_pomdp


def test_distribution_basics():
    """Test lookup, iteration and dense conversion."""
    d = SparseCat(["a", "b", "c"], [0.2, 0.0, 0.8])

    assert isinstance(d, Distribution)
    assert len(d) == 3
    assert d.prob("c") == pytest.approx(0.8)
    assert d.prob("z") == 0.0, "Values outside the support have probability 0"
    assert dict(d.items()) == {"a": 0.2, "b": 0.0, "c": 0.8}
    assert np.allclose(d.to_vector(["c", "b", "a", "d"]), [0.8, 0.0, 0.2, 0.0])


def test_distribution_constructors():
    """Test the convenience constructors."""
    assert Distribution.deterministic("x").prob("x") == 1.0
    assert Distribution.uniform(["x", "y", "z", "w"]).prob("y") == pytest.approx(0.25)
    assert Distribution.from_pairs([("x", 0.4), ("y", 0.6)]).prob("y") == pytest.approx(0.6)


@pytest.mark.parametrize(
    "support, probs",
    [
        (["a", "b"], [0.5, 0.4]),
        (["a", "b"], [1.2, -0.2]),
        (["a", "a"], [0.5, 0.5]),
        (["a", "b"], [0.5, float("nan")]),
        (["a", "b"], [1.0]),
        ([], []),
    ],
)
def test_malformed_distribution_rejected(support, probs):
    """Test that nothing is silently normalised or clamped."""
    with pytest.raises(ModelDefinitionError):
        Distribution(support, probs)


def test_distribution_within_tolerance_accepted():
    """Test that rounding below the probability tolerance is accepted."""
    d = Distribution(["a", "b", "c"], [0.1, 0.2, 0.7 + 1e-12])
    assert len(d) == 3


def test_to_vector_rejects_foreign_values():
    """Test that a support value outside the target space is an error."""
    with pytest.raises(ModelDefinitionError):
        Distribution.deterministic("mars").to_vector(["earth", "moon"])


def test_distribution_sample():
    """Test that sampling respects zero weights and is reproducible."""
    d = Distribution(["a", "b", "c"], [0.5, 0.0, 0.5])
    rng = np.random.default_rng(0)
    draws = [d.sample(rng) for _ in range(200)]

    assert "b" not in draws
    assert {"a", "c"} <= set(draws)
    assert [d.sample(np.random.default_rng(9)) for _ in range(3)] == [
        d.sample(np.random.default_rng(9)) for _ in range(3)
    ]


def test_distribution_sample_without_generator_varies():
    """Test that draws without an explicit generator are not all the same value."""
    d = Distribution.uniform(["heads", "tails"])
    draws = {d.sample() for _ in range(100)}

    assert draws == {"heads", "tails"}, "Repeated default draws must not repeat one value"


def test_extreme_and_default_belief_sets():
    """Test the default point-based belief set."""
    pomdp = build_spacecraft_pomdp()
    extremes = extreme_beliefs(pomdp)

    assert len(extremes) == 2
    assert np.array_equal(extremes[0], [1.0, 0.0])
    # The initial belief is certain SAFE, already an extreme belief
    assert len(default_belief_set(pomdp)) == 2


def test_random_beliefs_valid_and_seeded():
    """Test Dirichlet belief sampling."""
    pomdp = build_spacecraft_pomdp()
    beliefs = random_beliefs(pomdp, 20, rng=np.random.default_rng(1))
    again = random_beliefs(pomdp, 20, rng=np.random.default_rng(1))

    assert len(beliefs) == 22, "Extremes are included by default"
    for b, c in zip(beliefs, again):
        assert np.array_equal(b, c)
        assert np.isclose(b.sum(), 1.0) and np.all(b >= 0)
    assert len(random_beliefs(pomdp, 5, include_extremes=False)) == 5


def test_reachable_beliefs():
    """Test breadth-first belief expansion from the initial belief."""
    pomdp = build_spacecraft_pomdp()
    beliefs = reachable_beliefs(pomdp, depth=1)

    assert np.array_equal(beliefs[0], [0.0, 1.0])
    assert any(np.allclose(b, [0.5, 0.5]) for b in beliefs), "HOLD then CDM reaches [0.5, 0.5]"
    # Distinct beliefs only
    for i, b in enumerate(beliefs):
        for c in beliefs[i + 1:]:
            assert not np.allclose(b, c)

    deeper = reachable_beliefs(pomdp, depth=3, max_beliefs=5)
    assert len(deeper) == 5
