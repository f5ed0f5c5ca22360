"""
Dominant-action profile of an alpha-vector policy along a belief segment.
"""

from typing import Hashable, List, Optional

import numpy as np
import pandas as pd

from collision_pomdp.pomdp.alpha import AlphaVectorPolicy
from collision_pomdp.pomdp.schema import POMDP


def dominance_profile(
    policy: AlphaVectorPolicy,
    pomdp: POMDP,
    state: Hashable,
    other_state: Optional[Hashable] = None,
    resolution: int = 101,
) -> pd.DataFrame:
    """
    Action and utility along b(p) = p * e_state + (1 - p) * e_other.

    For a two-state model this covers the whole belief simplex, with ``p`` the
    probability of ``state``.

    Args:
        policy: Alpha-vector policy
        pomdp: Model the policy was solved for
        state: State whose probability is swept from 0 to 1
        other_state: Opposite end of the segment (default: next state in order)
        resolution: Number of grid points, including both ends

    Returns:
        DataFrame with columns p, action, utility, vector (index of the
        dominating alpha vector)
    """
    if resolution < 2:
        raise ValueError(f"resolution must be >= 2, got {resolution}")
    i = pomdp.state_index(state)
    if other_state is None:
        j = (i + 1) % pomdp.n_states
    else:
        j = pomdp.state_index(other_state)
    if i == j:
        raise ValueError("dominance_profile needs two distinct states")

    rows = []
    for p in np.linspace(0.0, 1.0, resolution):
        belief = np.zeros(pomdp.n_states)
        belief[i] += p
        belief[j] += 1.0 - p
        idx = policy.best_index(belief)
        vector = policy.vectors[idx]
        rows.append({
            "p": float(p),
            "action": vector.action,
            "utility": vector.dot(belief),
            "vector": idx,
        })
    return pd.DataFrame(rows)


def switching_points(profile: pd.DataFrame) -> List[float]:
    """Grid values of p at which the dominant action differs from the previous point."""
    changed = profile["action"].ne(profile["action"].shift())
    changed.iloc[0] = False
    return profile.loc[changed, "p"].tolist()
