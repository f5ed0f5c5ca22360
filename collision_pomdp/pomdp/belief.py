"""
Belief state update for POMDP.
"""

from typing import Hashable

import numpy as np

from collision_pomdp.pomdp.errors import ImpossibleObservationError
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def _freeze(belief: np.ndarray) -> np.ndarray:
    belief.setflags(write=False)
    return belief


def uniform_belief(pomdp: POMDP) -> np.ndarray:
    """Uniform belief over the states of ``pomdp``."""
    return _freeze(np.full(pomdp.n_states, 1.0 / pomdp.n_states))


def initial_belief(pomdp: POMDP) -> np.ndarray:
    """The model's initial belief."""
    return pomdp.initial_belief()


def validate_belief(pomdp: POMDP, belief) -> np.ndarray:
    """Return ``belief`` as a float vector, raising InvalidBeliefError if malformed."""
    return pomdp.check_belief(belief)


def _joint(pomdp: POMDP, belief: np.ndarray, action: Hashable, observation: Hashable) -> np.ndarray:
    """
    Unnormalised posterior: sum_s b[s] * T[a][s, s'] * Z[a][s, s', o].

    When Z does not depend on s this is Z[a][s', o] * (T[a].T @ b).
    """
    a_idx = pomdp.action_index(action)
    o_idx = pomdp.obs_index(observation)
    T_a = pomdp.transition_tensor[a_idx]
    Z_ao = pomdp.observation_tensor[a_idx, :, :, o_idx]
    return belief @ (T_a * Z_ao)


def observation_probability(
    pomdp: POMDP,
    belief: np.ndarray,
    action: Hashable,
    observation: Hashable,
) -> float:
    """P(o | b, a), the normaliser of the belief update."""
    b = pomdp.check_belief(belief)
    return float(_joint(pomdp, b, action, observation).sum())


def belief_update(
    pomdp: POMDP,
    belief: np.ndarray,
    action: Hashable,
    observation: Hashable,
) -> np.ndarray:
    """
    Update belief state: b'(s') ∝ sum_s b(s) T(s, a, s') O(s, a, s', o)

    Args:
        pomdp: POMDP model
        belief: Current belief vector (|S|,)
        action: Action taken
        observation: Observation received

    Returns:
        New read-only belief vector. The input belief is never modified.

    Raises:
        InvalidBeliefError: malformed input belief
        UndefinedTransitionError: unknown action
        UndefinedObservationError: unknown observation
        ImpossibleObservationError: observation has probability 0 under
            every next state reachable from ``belief``
    """
    b = pomdp.check_belief(belief)

    # Predict and correct in one pass, then normalise
    new_belief = _joint(pomdp, b, action, observation)

    norm = new_belief.sum()
    if norm <= 0.0:
        raise ImpossibleObservationError(
            f"Observation {observation} is impossible after action {action} "
            f"from belief {b}"
        )

    return _freeze(new_belief / norm)


def update(
    belief: np.ndarray,
    action: Hashable,
    observation: Hashable,
    model: POMDP,
) -> np.ndarray:
    """Belief-first form of :func:`belief_update`."""
    return belief_update(model, belief, action, observation)


class DiscreteUpdater:
    """
    Discrete Bayesian filter bound to one model.

    Holds the model only; every call takes the full belief and returns a new one.
    """

    def __init__(self, pomdp: POMDP):
        self.pomdp = pomdp

    def initialize_belief(self) -> np.ndarray:
        return initial_belief(self.pomdp)

    def update(self, belief: np.ndarray, action: Hashable, observation: Hashable) -> np.ndarray:
        return belief_update(self.pomdp, belief, action, observation)
