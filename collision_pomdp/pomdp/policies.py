"""
Policy functions for POMDP.

Policies come in two shapes that are never mixed: observation-driven policies map
the last observation to an action, belief-driven policies map a belief vector to an
action. ``action_from_observation`` and ``action_from_belief`` dispatch explicitly
and reject the other shape.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Hashable, Iterable, Mapping, Optional

import numpy as np

from collision_pomdp.pomdp import alpha
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ObservationPolicy:
    """
    Observation-driven policy: look up the last observation, else ``default``.

    Attributes:
        mapping: Observation -> action
        default: Action for unmapped observations and before any observation
        name: Label used in logs and rollout summaries
    """
    mapping: Mapping[Hashable, Hashable]
    default: Hashable
    name: str = "observation_policy"

    def __post_init__(self):
        object.__setattr__(self, "mapping", MappingProxyType(dict(self.mapping)))


@dataclass(frozen=True)
class BeliefPolicy:
    """Belief-driven policy wrapping a function belief -> action."""
    fn: Callable[[np.ndarray], Hashable] = field(compare=False)
    name: str = "belief_policy"


def policy_myopic(
    pomdp: POMDP,
    belief: np.ndarray,
) -> Hashable:
    """
    Myopic policy: choose action maximizing expected immediate reward.

    E[R | b, a] = sum_s b[s] * R(s, a)

    Args:
        pomdp: POMDP model
        belief: Current belief vector

    Returns:
        Action label (first in action order on ties)
    """
    expected = np.asarray(belief, dtype=float) @ pomdp.reward_matrix
    return pomdp.A[int(np.argmax(expected))]


def policy_threshold(
    pomdp: POMDP,
    belief: np.ndarray,
    states: Iterable[Hashable],
    threshold: float = 0.5,
    action: Optional[Hashable] = None,
    default_action: Optional[Hashable] = None,
) -> Hashable:
    """
    Threshold policy: if P(states) > threshold then ``action`` else ``default_action``.

    Args:
        pomdp: POMDP model
        belief: Current belief vector
        states: States whose probability mass is compared to the threshold
        threshold: Probability threshold (strict)
        action: Action to take if threshold exceeded (default: last action)
        default_action: Action to take otherwise (default: first action)

    Returns:
        Action label
    """
    action = pomdp.A[-1] if action is None else action
    default_action = pomdp.A[0] if default_action is None else default_action
    for a in (action, default_action):
        pomdp.action_index(a)

    indices = [pomdp.state_index(s) for s in states]
    if not indices:
        logger.warning("Threshold policy has no target states, using default action")
        return default_action

    mass = float(np.sum(np.asarray(belief, dtype=float)[indices]))
    return action if mass > threshold else default_action


def myopic_policy(pomdp: POMDP) -> BeliefPolicy:
    return BeliefPolicy(lambda b: policy_myopic(pomdp, b), name="myopic")


def threshold_policy(
    pomdp: POMDP,
    states: Iterable[Hashable],
    threshold: float = 0.5,
    action: Optional[Hashable] = None,
    default_action: Optional[Hashable] = None,
    name: str = "threshold",
) -> BeliefPolicy:
    states = tuple(states)
    # Validate labels now rather than on first use
    policy_threshold(pomdp, pomdp.initial_belief(), states, threshold, action, default_action)
    return BeliefPolicy(
        lambda b: policy_threshold(pomdp, b, states, threshold, action, default_action),
        name=name,
    )


def is_observation_policy(policy) -> bool:
    return isinstance(policy, ObservationPolicy)


def action_from_observation(policy: ObservationPolicy, observation: Optional[Hashable]) -> Hashable:
    """
    Action of an observation-driven policy.

    ``observation`` is None before the first observation.

    Raises:
        TypeError: ``policy`` is not observation-driven
    """
    if not isinstance(policy, ObservationPolicy):
        raise TypeError(
            f"{type(policy).__name__} is not observation-driven; use action_from_belief"
        )
    if observation is None:
        return policy.default
    return policy.mapping.get(observation, policy.default)


def action_from_belief(policy, belief: np.ndarray) -> Hashable:
    """
    Action of a belief-driven policy: a BeliefPolicy, an AlphaVectorPolicy or a
    plain callable belief -> action.

    Raises:
        TypeError: ``policy`` is observation-driven or not a policy
    """
    if isinstance(policy, ObservationPolicy):
        raise TypeError("ObservationPolicy is not belief-driven; use action_from_observation")
    if isinstance(policy, alpha.AlphaVectorPolicy):
        return alpha.action(policy, belief)
    if isinstance(policy, BeliefPolicy):
        return policy.fn(belief)
    if callable(policy):
        return policy(belief)
    raise TypeError(f"Unsupported policy type {type(policy).__name__}")


def policy_name(policy) -> str:
    if isinstance(policy, (ObservationPolicy, BeliefPolicy)):
        return policy.name
    if isinstance(policy, alpha.AlphaVectorPolicy):
        return policy.kind
    return getattr(policy, "__name__", type(policy).__name__)
