"""
Sparse categorical distributions over finite sets.
"""

import math
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp.errors import ModelDefinitionError

# Shared by every draw made without an explicit generator
_default_rng = np.random.default_rng(Config.DEFAULT_RANDOM_SEED)


@dataclass(frozen=True)
class Distribution:
    """
    Immutable categorical distribution stored as ordered (value, probability) pairs.

    Attributes:
        support: Values, in insertion order, without duplicates
        probs: Probability of each support value

    Probabilities must be finite, non-negative and sum to 1 within
    ``Config.PROBABILITY_TOLERANCE``. Zero-probability entries are allowed.
    Nothing is renormalised or clamped: a malformed distribution is an error.
    """
    support: Tuple[Hashable, ...]
    probs: Tuple[float, ...]

    def __post_init__(self):
        support = tuple(self.support)
        probs = tuple(float(p) for p in self.probs)
        object.__setattr__(self, "support", support)
        object.__setattr__(self, "probs", probs)

        if len(support) == 0:
            raise ModelDefinitionError("Distribution has an empty support")
        if len(support) != len(probs):
            raise ModelDefinitionError(
                f"Distribution has {len(support)} values but {len(probs)} probabilities"
            )
        if len(set(support)) != len(support):
            raise ModelDefinitionError(f"Distribution has duplicate values: {support}")
        for value, p in zip(support, probs):
            if not math.isfinite(p) or p < 0:
                raise ModelDefinitionError(
                    f"Invalid probability {p} for value {value!r}"
                )
        total = math.fsum(probs)
        if abs(total - 1.0) > Config.PROBABILITY_TOLERANCE:
            raise ModelDefinitionError(f"Distribution probabilities sum to {total}, not 1")

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Hashable, float]]) -> "Distribution":
        pairs = list(pairs)
        return cls(tuple(v for v, _ in pairs), tuple(p for _, p in pairs))

    @classmethod
    def deterministic(cls, value: Hashable) -> "Distribution":
        """Point mass on a single value."""
        return cls((value,), (1.0,))

    @classmethod
    def uniform(cls, values: Sequence[Hashable]) -> "Distribution":
        values = tuple(values)
        if not values:
            raise ModelDefinitionError("Cannot build a uniform distribution over nothing")
        return cls(values, tuple(1.0 / len(values) for _ in values))

    def prob(self, value: Any) -> float:
        """Probability of ``value`` (0 for values outside the support)."""
        for v, p in zip(self.support, self.probs):
            if v == value:
                return p
        return 0.0

    def items(self) -> Iterator[Tuple[Hashable, float]]:
        return iter(zip(self.support, self.probs))

    def __iter__(self) -> Iterator[Tuple[Hashable, float]]:
        return self.items()

    def __len__(self) -> int:
        return len(self.support)

    def sample(self, rng: Optional[np.random.Generator] = None) -> Hashable:
        """Draw one value (from a module-wide seeded generator if ``rng`` is None)."""
        if rng is None:
            rng = _default_rng
        p = np.asarray(self.probs)
        # numpy rejects weights whose sum is off by rounding
        idx = int(rng.choice(len(self.support), p=p / p.sum()))
        return self.support[idx]

    def to_vector(self, values: Sequence[Hashable]) -> np.ndarray:
        """
        Dense probability vector positioned by ``values``.

        Raises:
            ModelDefinitionError: if the support holds a value not in ``values``
        """
        index = {v: i for i, v in enumerate(values)}
        vec = np.zeros(len(values))
        for v, p in zip(self.support, self.probs):
            if v not in index:
                raise ModelDefinitionError(
                    f"Distribution value {v!r} is not in the space {list(values)}"
                )
            vec[index[v]] = p
        return vec


# Alias following the sparse-categorical naming used by POMDP toolkits
SparseCat = Distribution
