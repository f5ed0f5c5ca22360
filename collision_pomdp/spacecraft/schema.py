"""Schema validation for spacecraft collision-avoidance parameters."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class SpacecraftParameters(BaseModel):
    """Rewards and probabilities of the collision-avoidance POMDP."""

    # Rewards
    r_danger: float = Field(default=-10.0, le=0, description="Reward per step spent in danger")
    r_accelerate: float = Field(default=-5.0, le=0, description="Cost of an acceleration manoeuvre")
    r_decelerate: float = Field(default=-5.0, le=0, description="Cost of a deceleration manoeuvre")

    # Transition probability
    p_to_collide: float = Field(
        default=0.1, ge=0, le=1,
        description="Probability of moving from safe to danger when holding course",
    )

    # Observation probabilities
    p_cdm_when_safe: float = Field(
        default=0.1, ge=0, le=1,
        description="Probability of a conjunction data message (CDM) while safe",
    )
    p_cdm_when_danger: float = Field(
        default=0.9, ge=0, le=1,
        description="Probability of a CDM while in danger",
    )

    discount: float = Field(default=0.9, ge=0, lt=1, description="Discount factor")


def load_parameters(path: str) -> SpacecraftParameters:
    """Load and validate spacecraft parameters from a YAML file."""
    params_path = Path(path)
    if not params_path.exists():
        raise FileNotFoundError(f"Parameters file not found: {path}")

    with open(params_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Accept either a bare mapping or one nested under "parameters"
    if "parameters" in data and isinstance(data["parameters"], dict):
        data = data["parameters"]

    return SpacecraftParameters(**data)
