"""
Belief sets for point-based backup.
"""

from typing import List, Optional

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp.belief import belief_update, observation_probability
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def _append_unique(beliefs: List[np.ndarray], b: np.ndarray, atol: float = 1e-12) -> bool:
    if any(np.allclose(b, other, rtol=0.0, atol=atol) for other in beliefs):
        return False
    b = np.array(b, dtype=float)
    b.setflags(write=False)
    beliefs.append(b)
    return True


def extreme_beliefs(pomdp: POMDP) -> List[np.ndarray]:
    """One certain belief per state, in state order."""
    beliefs: List[np.ndarray] = []
    for row in np.eye(pomdp.n_states):
        _append_unique(beliefs, row)
    return beliefs


def default_belief_set(pomdp: POMDP) -> List[np.ndarray]:
    """Extreme beliefs followed by the initial belief (if not already present)."""
    beliefs = extreme_beliefs(pomdp)
    _append_unique(beliefs, pomdp.initial_belief())
    return beliefs


def random_beliefs(
    pomdp: POMDP,
    n: int,
    rng: Optional[np.random.Generator] = None,
    include_extremes: bool = True,
) -> List[np.ndarray]:
    """
    Beliefs drawn uniformly from the simplex (flat Dirichlet).

    Args:
        pomdp: POMDP model
        n: Number of random beliefs
        rng: Random number generator
        include_extremes: Prepend the extreme beliefs

    Returns:
        List of read-only belief vectors
    """
    if rng is None:
        rng = np.random.default_rng(Config.DEFAULT_RANDOM_SEED)
    beliefs = extreme_beliefs(pomdp) if include_extremes else []
    for b in rng.dirichlet(np.ones(pomdp.n_states), size=n):
        _append_unique(beliefs, b)
    return beliefs


def reachable_beliefs(
    pomdp: POMDP,
    depth: int = 2,
    start: Optional[np.ndarray] = None,
    max_beliefs: int = 200,
) -> List[np.ndarray]:
    """
    Beliefs reachable from ``start`` in at most ``depth`` action/observation steps.

    Expansion is breadth-first over actions then observations in model order, so the
    result is deterministic. Observations with zero probability are skipped.
    """
    if start is None:
        start = pomdp.initial_belief()
    beliefs: List[np.ndarray] = []
    _append_unique(beliefs, pomdp.check_belief(start))
    frontier = list(beliefs)

    for level in range(depth):
        next_frontier = []
        for b in frontier:
            for a in pomdp.A:
                for o in pomdp.O:
                    if observation_probability(pomdp, b, a, o) <= 0.0:
                        continue
                    b_next = belief_update(pomdp, b, a, o)
                    if _append_unique(beliefs, b_next):
                        next_frontier.append(beliefs[-1])
                    if len(beliefs) >= max_beliefs:
                        logger.info(f"Reached {max_beliefs} beliefs at depth {level + 1}")
                        return beliefs
        frontier = next_frontier
        if not frontier:
            break

    return beliefs
