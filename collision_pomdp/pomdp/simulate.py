"""
POMDP simulation and rollouts.
"""

from typing import Any, Dict, Hashable, Optional

import numpy as np
import pandas as pd

from collision_pomdp.config import Config
from collision_pomdp.pomdp.belief import belief_update
from collision_pomdp.pomdp.planner import OnlinePlanner
from collision_pomdp.pomdp.policies import (
    action_from_belief,
    action_from_observation,
    is_observation_policy,
    policy_name,
)
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def _select_action(
    pomdp: POMDP,
    policy,
    belief: np.ndarray,
    last_observation: Optional[Hashable],
    budget: Any,
) -> Hashable:
    if is_observation_policy(policy):
        return action_from_observation(policy, last_observation)
    if isinstance(policy, OnlinePlanner):
        chosen, _ = policy.plan(pomdp, belief, budget)
        return chosen
    return action_from_belief(policy, belief)


def rollout(
    pomdp: POMDP,
    policy,
    start_belief: Optional[np.ndarray] = None,
    horizon: int = 25,
    true_state: Optional[Hashable] = None,
    rng: Optional[np.random.Generator] = None,
    budget: Any = None,
) -> Dict[str, Any]:
    """
    Simulate a POMDP rollout.

    Args:
        pomdp: POMDP model
        policy: Observation-driven or belief-driven policy, AlphaVectorPolicy,
            callable belief -> action, or OnlinePlanner
        start_belief: Initial belief vector (defaults to the model's)
        horizon: Number of steps to simulate
        true_state: True hidden state (if None, sample from belief)
        rng: Random number generator
        budget: Passed to online planners

    Returns:
        Dict with keys:
            - total_reward: Cumulative reward
            - discounted_reward: Cumulative reward discounted by gamma
            - belief_history: List of belief vectors
            - action_history: List of actions taken
            - observation_history: List of observations
            - state_history: List of true states
            - reward_history: List of step rewards
    """
    if rng is None:
        rng = np.random.default_rng(Config.DEFAULT_RANDOM_SEED)

    belief = pomdp.initial_belief() if start_belief is None else pomdp.check_belief(start_belief)
    if true_state is None:
        # Sample initial state from belief
        true_state = pomdp.S[rng.choice(pomdp.n_states, p=belief / belief.sum())]
    else:
        pomdp.state_index(true_state)

    belief_history = [belief]
    action_history = []
    observation_history = []
    state_history = [true_state]
    reward_history = []
    total_reward = 0.0
    discounted_reward = 0.0
    last_observation = None

    for step in range(horizon):
        action = _select_action(pomdp, policy, belief, last_observation, budget)
        action_history.append(action)

        reward = pomdp.reward(true_state, action)
        reward_history.append(reward)
        total_reward += reward
        discounted_reward += pomdp.gamma ** step * reward

        next_state = pomdp.transition(true_state, action).sample(rng)
        state_history.append(next_state)

        observation = pomdp.observation(true_state, action, next_state).sample(rng)
        observation_history.append(observation)

        belief = belief_update(pomdp, belief, action, observation)
        belief_history.append(belief)

        true_state = next_state
        last_observation = observation

    return {
        "total_reward": total_reward,
        "discounted_reward": discounted_reward,
        "belief_history": belief_history,
        "action_history": action_history,
        "observation_history": observation_history,
        "state_history": state_history,
        "reward_history": reward_history,
    }


def evaluate_policy(
    pomdp: POMDP,
    policy,
    n_episodes: int = 100,
    horizon: int = 25,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """
    Run independent rollouts from the model's initial belief.

    Returns:
        DataFrame with one row per episode: episode, policy, total_reward,
        discounted_reward and one ``n_<action>`` count column per action
    """
    rng = np.random.default_rng(Config.DEFAULT_RANDOM_SEED if seed is None else seed)
    name = policy_name(policy)
    rows = []
    for episode in range(n_episodes):
        result = rollout(pomdp, policy, horizon=horizon, rng=rng)
        row = {
            "episode": episode,
            "policy": name,
            "total_reward": result["total_reward"],
            "discounted_reward": result["discounted_reward"],
        }
        for a in pomdp.A:
            row[f"n_{getattr(a, 'name', a)}"] = sum(1 for taken in result["action_history"] if taken == a)
        rows.append(row)

    df = pd.DataFrame(rows)
    logger.info(
        f"Evaluated {name} over {n_episodes} episodes: mean discounted reward "
        f"{df['discounted_reward'].mean():.3f}"
    )
    return df
