"""
Alpha-vector value functions and policy queries.

A policy is a set of alpha vectors; the utility of a belief b is
U(b) = max_alpha alpha . b and the recommended action is the action attached to the
maximising vector.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp.errors import EmptyPolicyError, InvalidBeliefError
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Dot products closer than this count as a tie
TIE_TOLERANCE = 1e-12


class TieBreak(str, Enum):
    """
    Deterministic order used to pick among vectors of maximal value.

    ACTION_ORDER: the vector whose action comes first in the model's action list,
        then the earliest inserted. Independent of insertion order whenever the tied
        vectors recommend different actions.
    FIRST: the earliest inserted vector.
    """
    ACTION_ORDER = "action_order"
    FIRST = "first"


@dataclass(frozen=True, eq=False)
class AlphaVector:
    """
    Linear utility over beliefs, U(b) = values . b.

    Attributes:
        values: Utility per state, in state order (read-only)
        action: Action whose backup produced the vector
        belief: Belief point the vector was backed up at (point-based only)
    """
    values: np.ndarray
    action: Hashable
    belief: Optional[np.ndarray] = None

    def __post_init__(self):
        values = np.array(self.values, dtype=float, copy=True)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        if self.belief is not None:
            belief = np.array(self.belief, dtype=float, copy=True)
            belief.setflags(write=False)
            object.__setattr__(self, "belief", belief)

    def __len__(self) -> int:
        return len(self.values)

    def dot(self, belief: np.ndarray) -> float:
        return float(self.values @ belief)


def dot(alpha, belief) -> float:
    """Belief-weighted expected utility sum_s alpha[s] * b[s]."""
    values = alpha.values if isinstance(alpha, AlphaVector) else np.asarray(alpha, dtype=float)
    return float(values @ np.asarray(belief, dtype=float))


def select_best(
    scores: np.ndarray,
    action_ranks: Optional[Sequence[int]] = None,
    tie_break: TieBreak = TieBreak.ACTION_ORDER,
) -> int:
    """
    Index of the maximal score under ``tie_break``.

    Args:
        scores: Score per candidate
        action_ranks: Action index per candidate (needed for ACTION_ORDER)
        tie_break: Tie-break rule

    Returns:
        Position of the selected candidate
    """
    scores = np.asarray(scores, dtype=float)
    best = scores.max()
    tied = np.flatnonzero(scores >= best - TIE_TOLERANCE)
    if tie_break == TieBreak.FIRST or action_ranks is None or len(tied) == 1:
        return int(tied[0])
    ranks = np.asarray(action_ranks)[tied]
    # argmin returns the first minimum, i.e. the earliest inserted among equal ranks
    return int(tied[int(np.argmin(ranks))])


@dataclass(frozen=True, eq=False)
class AlphaVectorPolicy:
    """
    Alpha-vector policy produced by a backup engine.

    Attributes:
        vectors: Alpha vectors in insertion order
        action_space: The model's actions, giving each action its rank
        tie_break: Rule used by the policy query
        kind: Name of the backup that produced the policy
        iterations: Number of sweeps or rounds performed
        residual: Last max change between sweeps
        converged: Whether the residual fell below the tolerance
    """
    vectors: Tuple[AlphaVector, ...]
    action_space: Tuple[Hashable, ...]
    tie_break: TieBreak = TieBreak.ACTION_ORDER
    kind: str = "custom"
    iterations: int = 0
    residual: float = float("nan")
    converged: bool = True

    def __post_init__(self):
        object.__setattr__(self, "vectors", tuple(self.vectors))
        object.__setattr__(self, "action_space", tuple(self.action_space))
        rank = {a: i for i, a in enumerate(self.action_space)}
        missing = [v.action for v in self.vectors if v.action not in rank]
        if missing:
            raise ValueError(f"Alpha vectors tagged with unknown actions: {missing}")
        object.__setattr__(
            self, "_ranks", np.array([rank[v.action] for v in self.vectors], dtype=int)
        )

    def __len__(self) -> int:
        return len(self.vectors)

    @property
    def alphas(self) -> np.ndarray:
        """Vectors stacked as a (n_vectors, |S|) matrix."""
        if not self.vectors:
            raise EmptyPolicyError("Policy has no alpha vectors")
        return np.stack([v.values for v in self.vectors])

    @property
    def actions_of_vectors(self) -> List[Hashable]:
        return [v.action for v in self.vectors]

    def best_index(self, belief) -> int:
        if not self.vectors:
            raise EmptyPolicyError("Policy has no alpha vectors")
        alphas = self.alphas
        b = np.asarray(belief, dtype=float)
        if b.shape != (alphas.shape[1],):
            raise InvalidBeliefError(
                f"Belief has shape {b.shape}, expected ({alphas.shape[1]},)"
            )
        if not np.all(np.isfinite(b)) or np.any(b < 0):
            raise InvalidBeliefError(f"Belief has negative or non-finite entries: {b}")
        if abs(b.sum() - 1.0) > Config.PROBABILITY_TOLERANCE:
            raise InvalidBeliefError(f"Belief sums to {b.sum()}, not 1")
        return select_best(alphas @ b, self._ranks, self.tie_break)


def best_vector(policy: AlphaVectorPolicy, belief) -> AlphaVector:
    """The alpha vector maximising alpha . b."""
    return policy.vectors[policy.best_index(belief)]


def action(policy: AlphaVectorPolicy, belief) -> Hashable:
    """Recommended action for ``belief``."""
    return best_vector(policy, belief).action


def utility(policy: AlphaVectorPolicy, belief) -> float:
    """Utility of ``belief``, max over the policy's vectors of alpha . b."""
    return best_vector(policy, belief).dot(np.asarray(belief, dtype=float))
