"""
Configuration management for the POMDP planning engine.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Environment overrides (LOG_LEVEL, RANDOM_SEED, SOLVER_*) may come from a local .env
load_dotenv()


class Config:
    """Engine settings. Paths and the probability tolerance are fixed; the rest read the environment."""

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "scenarios"
    ARTIFACTS_DIR: Path = PROJECT_ROOT / "artifacts"

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Solver settings
    DEFAULT_RANDOM_SEED: int = int(os.getenv("RANDOM_SEED", "42"))
    SOLVER_MAX_ITERATIONS: int = int(os.getenv("SOLVER_MAX_ITERATIONS", "100"))
    SOLVER_TOLERANCE: float = float(os.getenv("SOLVER_TOLERANCE", "1e-3"))

    # Probability vectors must sum to one within this tolerance
    PROBABILITY_TOLERANCE: float = 1e-9
