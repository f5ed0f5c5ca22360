#!/usr/bin/env python3
"""
Solve the spacecraft collision-avoidance POMDP with every backup and summarise.
"""

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp import (
    SolverKind,
    SolverOptions,
    action,
    dominance_profile,
    evaluate_policy,
    solve,
    switching_points,
    utility,
)
from collision_pomdp.spacecraft import (
    SpacecraftParameters,
    State,
    accelerate_when_believed_danger,
    accelerate_when_cdm,
    build_spacecraft_pomdp,
    load_parameters,
)
from collision_pomdp.utils.logging_utils import get_logger, set_log_level

logger = get_logger(__name__)


def _label(value) -> str:
    return getattr(value, "name", str(value))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Solve the spacecraft collision-avoidance POMDP")
    parser.add_argument("--params", type=str, default=None,
                        help="Path to parameters YAML (defaults if omitted)")
    parser.add_argument("--out-dir", type=str, default=str(Config.ARTIFACTS_DIR / "spacecraft"),
                        help="Output directory for the summary")
    parser.add_argument("--max-iterations", type=int, default=Config.SOLVER_MAX_ITERATIONS,
                        help="Sweeps or rounds per solver")
    parser.add_argument("--tolerance", type=float, default=Config.SOLVER_TOLERANCE,
                        help="Convergence tolerance")
    parser.add_argument("--belief", type=float, action="append", default=None,
                        help="p(DANGER) of a belief to query (repeatable)")
    parser.add_argument("--episodes", type=int, default=50,
                        help="Rollouts per policy")
    parser.add_argument("--horizon", type=int, default=25,
                        help="Rollout horizon")
    parser.add_argument("--seed", type=int, default=Config.DEFAULT_RANDOM_SEED,
                        help="Random seed")
    parser.add_argument("--log-level", type=str, default=Config.LOG_LEVEL,
                        help="Logging level")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> Dict[str, Any]:
    set_log_level(args.log_level)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    if args.params:
        logger.info(f"Loading parameters from {args.params}")
        params = load_parameters(args.params)
    else:
        params = SpacecraftParameters()
    pomdp = build_spacecraft_pomdp(params)

    queries = args.belief if args.belief else [0.0, 0.2, 0.5, 0.8, 1.0]
    options = SolverOptions(max_iterations=args.max_iterations, tolerance=args.tolerance)

    summary: Dict[str, Any] = {
        "parameters": params.model_dump(),
        "states": [_label(s) for s in pomdp.S],
        "actions": [_label(a) for a in pomdp.A],
        "solvers": {},
        "rollouts": {},
    }

    policies = {}
    for kind in SolverKind:
        policy = solve(pomdp, kind, options)
        policies[kind.value] = policy
        profile = dominance_profile(policy, pomdp, State.DANGER, State.SAFE)
        summary["solvers"][kind.value] = {
            "iterations": policy.iterations,
            "residual": policy.residual,
            "converged": policy.converged,
            "alpha_vectors": [
                {"action": _label(v.action), "values": v.values.tolist()}
                for v in policy.vectors
            ],
            "queries": [
                {
                    "p_danger": p,
                    "action": _label(action(policy, np.array([p, 1.0 - p]))),
                    "utility": utility(policy, np.array([p, 1.0 - p])),
                }
                for p in queries
            ],
            "switching_points": switching_points(profile),
        }

    policies["accelerate_when_cdm"] = accelerate_when_cdm()
    policies["accelerate_when_believed_danger"] = accelerate_when_believed_danger(pomdp)
    for name, policy in policies.items():
        df = evaluate_policy(pomdp, policy, n_episodes=args.episodes,
                             horizon=args.horizon, seed=args.seed)
        summary["rollouts"][name] = {
            "mean_discounted_reward": float(df["discounted_reward"].mean()),
            "std_discounted_reward": float(df["discounted_reward"].std(ddof=0)),
        }

    summary_path = out_dir / "summary.json"
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)
    logger.info(f"Saved summary to {summary_path}")
    return summary


def main(argv: Optional[List[str]] = None) -> None:
    summary = run(parse_args(argv))

    # Print summary
    print("\n" + "=" * 60)
    print("Spacecraft Collision Avoidance POMDP")
    print("=" * 60)
    print(f"States: {summary['states']}  Actions: {summary['actions']}")
    for kind, result in summary["solvers"].items():
        status = "converged" if result["converged"] else "NOT converged"
        print(f"\n{kind}: {len(result['alpha_vectors'])} vectors, "
              f"{result['iterations']} iterations ({status})")
        for q in result["queries"]:
            print(f"  p(DANGER)={q['p_danger']:.2f} -> {q['action']:<6} U={q['utility']:.3f}")
        print(f"  switching points: {result['switching_points']}")
    print("\nRollouts (mean discounted reward):")
    for name, stats in summary["rollouts"].items():
        print(f"  {name:<32} {stats['mean_discounted_reward']:.3f}")
    print("=" * 60)


if __name__ == "__main__":
    main()
