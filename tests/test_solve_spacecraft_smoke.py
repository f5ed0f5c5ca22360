import json
import logging
from pathlib import Path

from collision_pomdp.utils.logging_utils import PACKAGE_LOGGER, get_logger, set_log_level
from scripts.solve_spacecraft import parse_args, run


def test_solve_spacecraft_smoke(tmp_path: Path):
    """Smoke test: solve with every backup, evaluate policies and verify the summary."""
    args = parse_args([
        "--out-dir", str(tmp_path),
        "--max-iterations", "300",
        "--tolerance", "1e-6",
        "--episodes", "3",
        "--horizon", "5",
        "--belief", "0.0",
        "--belief", "1.0",
        "--log-level", "WARNING",
    ])
    summary = run(args)

    summary_path = tmp_path / "summary.json"
    assert summary_path.exists(), "Summary file must be written"
    with open(summary_path) as f:
        saved = json.load(f)
    assert saved == json.loads(json.dumps(summary))

    assert summary["states"] == ["DANGER", "SAFE"]
    assert summary["actions"] == ["HOLD", "ACCEL", "DECEL"]
    assert set(summary["solvers"]) == {"mdp_relaxation", "informed_bound", "point_based"}
    for kind, result in summary["solvers"].items():
        assert result["alpha_vectors"], f"{kind} must produce alpha vectors"
        queries = {q["p_danger"]: q["action"] for q in result["queries"]}
        assert queries[0.0] == "HOLD", f"{kind} must hold course when surely safe"
        assert queries[1.0] in ("ACCEL", "DECEL"), f"{kind} must manoeuvre when surely in danger"

    expected_rollouts = {
        "mdp_relaxation", "informed_bound", "point_based",
        "accelerate_when_cdm", "accelerate_when_believed_danger",
    }
    assert set(summary["rollouts"]) == expected_rollouts
    for stats in summary["rollouts"].values():
        assert stats["mean_discounted_reward"] <= 0.0, "Every reward is non-positive"


def test_solve_spacecraft_reads_params_file(tmp_path: Path):
    """Test that a parameters file overrides the defaults."""
    params = tmp_path / "params.yaml"
    params.write_text("parameters:\n  discount: 0.5\n  p_to_collide: 0.2\n")
    args = parse_args([
        "--params", str(params),
        "--out-dir", str(tmp_path / "out"),
        "--episodes", "2",
        "--horizon", "3",
        "--log-level", "WARNING",
    ])
    summary = run(args)

    assert summary["parameters"]["discount"] == 0.5
    assert summary["parameters"]["p_to_collide"] == 0.2


def test_loggers_share_package_namespace():
    """Test that module and script loggers sit under the package logger."""
    assert get_logger("collision_pomdp.pomdp.backup").name == "collision_pomdp.pomdp.backup"
    assert get_logger("scripts.solve_spacecraft").name == f"{PACKAGE_LOGGER}.scripts.solve_spacecraft"

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    previous = package_logger.level
    try:
        set_log_level("debug")
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(previous)
    assert len(package_logger.handlers) == 1
