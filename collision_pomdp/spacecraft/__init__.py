"""
Spacecraft collision-avoidance scenario.
"""

from collision_pomdp.spacecraft.schema import SpacecraftParameters, load_parameters
from collision_pomdp.spacecraft.model import (
    State,
    Action,
    Observation,
    build_spacecraft_pomdp,
    accelerate_when_cdm,
    accelerate_when_believed_danger,
)

__all__ = [
    "SpacecraftParameters",
    "load_parameters",
    "State",
    "Action",
    "Observation",
    "build_spacecraft_pomdp",
    "accelerate_when_cdm",
    "accelerate_when_believed_danger",
]
