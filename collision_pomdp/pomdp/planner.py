"""
Interface expected from online planners.

Online search (e.g. Monte-Carlo tree search over simulated rollouts) lives outside
this package; any object with a matching ``plan`` method can drive a rollout.
"""

from typing import Any, Dict, Hashable, Optional, Protocol, Tuple, Union, runtime_checkable

import numpy as np

from collision_pomdp.pomdp.alpha import AlphaVectorPolicy, best_vector
from collision_pomdp.pomdp.schema import POMDP

PlanResult = Tuple[Hashable, Optional[Dict[str, Any]]]


@runtime_checkable
class OnlinePlanner(Protocol):
    def plan(
        self,
        model: POMDP,
        belief_or_state: Union[np.ndarray, Hashable],
        budget: Any,
    ) -> PlanResult:
        """Return one action (and optional diagnostics) within ``budget``."""
        ...


class PolicyPlanner:
    """
    Offline alpha-vector policy behind the online planner interface.

    A state is treated as the certain belief on that state; ``budget`` is ignored
    because the query is a single argmax.
    """

    def __init__(self, policy: AlphaVectorPolicy):
        self.policy = policy

    def plan(
        self,
        model: POMDP,
        belief_or_state: Union[np.ndarray, Hashable],
        budget: Any = None,
    ) -> PlanResult:
        if isinstance(belief_or_state, np.ndarray):
            belief = model.check_belief(belief_or_state)
        else:
            belief = np.zeros(model.n_states)
            belief[model.state_index(belief_or_state)] = 1.0
        vector = best_vector(self.policy, belief)
        return vector.action, {"utility": vector.dot(belief), "kind": self.policy.kind}
