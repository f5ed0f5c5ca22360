"""
Spacecraft collision avoidance as a POMDP.

The spacecraft is either SAFE or in DANGER of colliding with debris. Holding course
(HOLD, "clear of conflict") keeps danger and may turn a safe encounter into a
dangerous one; accelerating or decelerating always restores safety at a fuel cost.
The operator never sees the state, only whether a conjunction data message (CDM)
arrives.
"""

from enum import Enum
from typing import Optional

from collision_pomdp.pomdp.distributions import Distribution, SparseCat
from collision_pomdp.pomdp.policies import BeliefPolicy, ObservationPolicy, threshold_policy
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.spacecraft.schema import SpacecraftParameters
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


class State(Enum):
    DANGER = "danger"
    SAFE = "safe"


class Action(Enum):
    HOLD = "hold"
    ACCEL = "accelerate"
    DECEL = "decelerate"


class Observation(Enum):
    CDM = "cdm"
    NO_CDM = "no_cdm"


STATES = [State.DANGER, State.SAFE]
ACTIONS = [Action.HOLD, Action.ACCEL, Action.DECEL]
OBSERVATIONS = [Observation.CDM, Observation.NO_CDM]


def build_spacecraft_pomdp(params: Optional[SpacecraftParameters] = None) -> POMDP:
    """
    Build the collision-avoidance POMDP.

    Beliefs are ordered [p(DANGER), p(SAFE)]; the spacecraft starts SAFE.

    Args:
        params: Rewards and probabilities (defaults if None)

    Returns:
        POMDP model
    """
    params = params or SpacecraftParameters()

    def transition(s: State, a: Action) -> Optional[Distribution]:
        if a in (Action.ACCEL, Action.DECEL):
            return SparseCat([State.DANGER, State.SAFE], [0.0, 1.0])
        if s == State.DANGER and a == Action.HOLD:
            return SparseCat([State.DANGER, State.SAFE], [1.0, 0.0])
        if s == State.SAFE and a == Action.HOLD:
            p = params.p_to_collide
            return SparseCat([State.DANGER, State.SAFE], [p, 1.0 - p])
        return None

    def observation(s: State, a: Action, s_next: State) -> Optional[Distribution]:
        if s_next == State.DANGER:
            p = params.p_cdm_when_danger
        elif s_next == State.SAFE:
            p = params.p_cdm_when_safe
        else:
            return None
        return SparseCat([Observation.CDM, Observation.NO_CDM], [p, 1.0 - p])

    def reward(s: State, a: Action) -> float:
        r = params.r_danger if s == State.DANGER else 0.0
        if a == Action.ACCEL:
            r += params.r_accelerate
        elif a == Action.DECEL:
            r += params.r_decelerate
        return r

    pomdp = POMDP.from_functions(
        states=STATES,
        actions=ACTIONS,
        observations=OBSERVATIONS,
        transition=transition,
        observation=observation,
        reward=reward,
        discount=params.discount,
        initial=Distribution.deterministic(State.SAFE),
    )
    logger.debug(f"Built spacecraft POMDP with {params.model_dump()}")
    return pomdp


def accelerate_when_cdm() -> ObservationPolicy:
    """Accelerate whenever a CDM arrives, otherwise hold course."""
    return ObservationPolicy(
        {Observation.CDM: Action.ACCEL},
        default=Action.HOLD,
        name="accelerate_when_cdm",
    )


def accelerate_when_believed_danger(pomdp: POMDP) -> BeliefPolicy:
    """Accelerate when danger is believed more likely than safety, otherwise hold."""
    return threshold_policy(
        pomdp,
        states=[State.DANGER],
        threshold=0.5,
        action=Action.ACCEL,
        default_action=Action.HOLD,
        name="accelerate_when_believed_danger",
    )
