"""
Tests for the offline alpha-vector solvers.
"""

import warnings
from pathlib import Path

import pytest
import numpy as np

from collision_pomdp.pomdp import (
    POMDP,
    NonFiniteValueError,
    SolverKind,
    SolverOptions,
    TieBreak,
    UnconvergedResult,
    action,
    extreme_beliefs,
    informed_bound_backup,
    mdp_relaxation_backup,
    point_based_backup,
    random_beliefs,
    solve,
    utility,
)
from collision_pomdp.pomdp.schema import check_discount
from collision_pomdp.pomdp.errors import InvalidDiscountError
from collision_pomdp.spacecraft import Action, SpacecraftParameters, build_spacecraft_pomdp


def solve_quietly(pomdp, kind, **options):
    """Solve, ignoring the non-convergence warning for budget-limited runs."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UnconvergedResult)
        return solve(pomdp, kind, SolverOptions(**options))


def expected_action(policy, belief):
    """Action of the max-value vector, lowest action rank on ties."""
    scores = policy.alphas @ belief
    tied = [i for i, score in enumerate(scores) if score >= scores.max() - 1e-12]
    ranks = {a: i for i, a in enumerate(policy.action_space)}
    return min((policy.vectors[i].action for i in tied), key=lambda a: ranks[a])


def test_mdp_relaxation_spacecraft_values():
    """Test QMDP against the fixed point worked out by hand for gamma = 0.9."""
    pomdp = build_spacecraft_pomdp()
    policy = solve(pomdp, SolverKind.MDP_RELAXATION, SolverOptions(max_iterations=1000, tolerance=1e-10))

    assert policy.converged
    assert len(policy) == 3, "QMDP keeps one vector per action"
    # V(SAFE) = -1.35 / 0.109, V(DANGER) = -15 + 0.9 V(SAFE)
    v_safe = -1.35 / 0.109
    v_danger = -15.0 + 0.9 * v_safe
    hold = policy.vectors[0]
    accel = policy.vectors[1]
    assert hold.action == Action.HOLD
    assert np.allclose(hold.values, [-10.0 + 0.9 * v_danger, v_safe], atol=1e-6)
    assert np.allclose(accel.values, [v_danger, -5.0 + 0.9 * v_safe], atol=1e-6)


def test_policy_query_matches_recomputed_dot_products():
    """Test that every solver's query picks the vector a direct recomputation picks."""
    pomdp = build_spacecraft_pomdp()
    beliefs = [np.array([0.5, 0.5]), np.array([0.0, 1.0]), np.array([1.0, 0.0])]
    beliefs += random_beliefs(pomdp, 10, rng=np.random.default_rng(3))

    for kind in SolverKind:
        policy = solve_quietly(pomdp, kind, max_iterations=300, tolerance=1e-8)
        for b in beliefs:
            assert action(policy, b) == expected_action(policy, b), f"{kind.value} at {b}"
            assert utility(policy, b) == pytest.approx((policy.alphas @ b).max())


def test_spacecraft_actions_at_certain_beliefs():
    """Test that QMDP holds course when surely safe and manoeuvres when surely in danger."""
    pomdp = build_spacecraft_pomdp()
    policy = solve(pomdp, "mdp_relaxation", SolverOptions(max_iterations=500, tolerance=1e-8))

    assert action(policy, np.array([0.0, 1.0])) == Action.HOLD
    # ACCEL and DECEL have identical vectors; ACCEL comes first in the action list
    assert action(policy, np.array([1.0, 0.0])) == Action.ACCEL


def test_informed_bound_no_looser_than_mdp_relaxation():
    """Test that FIB utility never exceeds QMDP utility."""
    pomdp = build_spacecraft_pomdp()
    options = dict(max_iterations=500, tolerance=1e-10)
    qmdp = solve_quietly(pomdp, SolverKind.MDP_RELAXATION, **options)
    fib = solve_quietly(pomdp, SolverKind.INFORMED_BOUND, **options)

    for b in random_beliefs(pomdp, 25, rng=np.random.default_rng(0)):
        assert utility(fib, b) <= utility(qmdp, b) + 1e-8, f"FIB above QMDP at {b}"


def test_point_based_is_lower_bound():
    """Test that PBVI utility stays below the informed upper bound."""
    pomdp = build_spacecraft_pomdp()
    fib = solve_quietly(pomdp, SolverKind.INFORMED_BOUND, max_iterations=500, tolerance=1e-10)
    pbvi = solve_quietly(
        pomdp, SolverKind.POINT_BASED, max_iterations=100, tolerance=1e-8,
        belief_samples=random_beliefs(pomdp, 8, rng=np.random.default_rng(1)),
    )

    for b in random_beliefs(pomdp, 25, rng=np.random.default_rng(2)):
        assert utility(pbvi, b) <= utility(fib, b) + 1e-8, f"PBVI above FIB at {b}"


def test_point_based_monotone_over_belief_set():
    """Test that more PBVI rounds never lower the value at the backed-up beliefs."""
    pomdp = build_spacecraft_pomdp()
    beliefs = extreme_beliefs(pomdp) + [np.array([0.5, 0.5])]

    previous = None
    for k in range(1, 12):
        policy = solve_quietly(
            pomdp, SolverKind.POINT_BASED, max_iterations=k, tolerance=0.0,
            belief_samples=beliefs,
        )
        values = np.array([utility(policy, b) for b in beliefs])
        if previous is not None:
            assert np.all(values >= previous - 1e-12), f"Value dropped at round {k}"
        previous = values


def test_point_based_vectors_bounded_by_belief_set():
    """Test that PBVI keeps at most one vector per belief point (or per action at start)."""
    pomdp = build_spacecraft_pomdp()
    beliefs = random_beliefs(pomdp, 6, rng=np.random.default_rng(4))
    policy = solve_quietly(pomdp, SolverKind.POINT_BASED, max_iterations=50, belief_samples=beliefs)

    assert 0 < len(policy) <= max(len(beliefs), len(pomdp.A))
    for v in policy.vectors:
        assert v.action in pomdp.A


def test_solvers_are_deterministic():
    """Test that the same model and options give identical policies."""
    pomdp = build_spacecraft_pomdp()
    for kind in SolverKind:
        first = solve_quietly(pomdp, kind, max_iterations=40)
        second = solve_quietly(pomdp, kind, max_iterations=40)
        assert np.array_equal(first.alphas, second.alphas)
        assert first.actions_of_vectors == second.actions_of_vectors


def test_point_based_parallel_matches_sequential():
    """Test that the threaded per-belief pass gives the sequential result."""
    pomdp = build_spacecraft_pomdp()
    beliefs = random_beliefs(pomdp, 10, rng=np.random.default_rng(5))

    sequential = solve_quietly(pomdp, SolverKind.POINT_BASED, max_iterations=30, belief_samples=beliefs)
    parallel = solve_quietly(
        pomdp, SolverKind.POINT_BASED, max_iterations=30, belief_samples=beliefs, n_jobs=3,
    )
    assert np.array_equal(sequential.alphas, parallel.alphas)
    assert sequential.actions_of_vectors == parallel.actions_of_vectors


def test_unconverged_result_warns_with_policy():
    """Test that running out of iterations warns and still returns a usable policy."""
    pomdp = build_spacecraft_pomdp()

    with pytest.warns(UnconvergedResult) as record:
        policy = solve(pomdp, SolverKind.INFORMED_BOUND, SolverOptions(max_iterations=1, tolerance=1e-12))

    assert not policy.converged
    assert policy.iterations == 1
    assert policy.residual > 1e-12
    warned = [w.message for w in record if isinstance(w.message, UnconvergedResult)]
    assert warned and warned[0].policy is policy
    assert action(policy, np.array([0.5, 0.5])) in pomdp.A


def test_unconverged_warning_attributed_to_caller():
    """Test that the warning names the calling file, whichever entry point is used."""
    pomdp = build_spacecraft_pomdp()
    options = SolverOptions(max_iterations=1, tolerance=1e-12)
    entry_points = [
        lambda: solve(pomdp, SolverKind.MDP_RELAXATION, options),
        lambda: solve(pomdp, SolverKind.INFORMED_BOUND, options),
        lambda: solve(pomdp, SolverKind.POINT_BASED, options),
        lambda: mdp_relaxation_backup(pomdp, options),
        lambda: informed_bound_backup(pomdp, options),
        lambda: point_based_backup(pomdp, options),
    ]

    for call in entry_points:
        with pytest.warns(UnconvergedResult) as record:
            call()
        warned = [w for w in record if issubclass(w.category, UnconvergedResult)]
        assert len(warned) == 1, "One warning per solve"
        assert Path(warned[0].filename).name == Path(__file__).name, (
            f"Warning attributed to {warned[0].filename}:{warned[0].lineno}"
        )


def test_timeout_stops_iteration():
    """Test that the wall-clock budget ends the run early."""
    pomdp = build_spacecraft_pomdp()

    with pytest.warns(UnconvergedResult):
        policy = solve(
            pomdp, SolverKind.MDP_RELAXATION,
            SolverOptions(max_iterations=10_000, tolerance=0.0, timeout=1e-9),
        )
    assert policy.iterations < 10_000
    assert not policy.converged


def test_zero_iterations_returns_initial_vectors():
    """Test that a zero budget yields the initial one-vector-per-action set."""
    pomdp = build_spacecraft_pomdp()
    policy = solve_quietly(pomdp, SolverKind.MDP_RELAXATION, max_iterations=0)

    assert policy.iterations == 0
    assert np.array_equal(policy.alphas, np.zeros((3, 2)))


def test_non_finite_backup_raises():
    """Test that overflowing values are reported rather than returned."""
    pomdp = POMDP(
        S=["s"], A=["a"], O=["o"],
        T={"a": np.array([[1.0]])},
        Z={"a": np.array([[1.0]])},
        R={"a": np.array([-1e308])},
        gamma=0.9,
    )
    with pytest.raises(NonFiniteValueError):
        solve_quietly(pomdp, SolverKind.MDP_RELAXATION, max_iterations=10)


def test_discount_checked_before_solving():
    """Test the discount guard shared by model construction and the solvers."""
    assert check_discount(0.0) == 0.0
    for gamma in (1.0, 1.5, -0.01, float("nan")):
        with pytest.raises(InvalidDiscountError):
            check_discount(gamma)


def test_zero_discount_is_myopic():
    """Test that gamma = 0 reduces every solver to immediate rewards."""
    pomdp = POMDP(
        S=["a", "b"], A=["x", "y"], O=["o"],
        T={"x": np.eye(2), "y": np.eye(2)},
        Z={"x": np.ones((2, 1)), "y": np.ones((2, 1))},
        R={"x": np.array([1.0, 0.0]), "y": np.array([0.0, 2.0])},
        gamma=0.0,
    )
    for kind in (SolverKind.MDP_RELAXATION, SolverKind.INFORMED_BOUND):
        policy = solve(pomdp, kind, SolverOptions(max_iterations=10, tolerance=1e-9))
        assert policy.converged
        assert np.allclose(policy.alphas, [[1.0, 0.0], [0.0, 2.0]])
        assert action(policy, np.array([0.9, 0.1])) == "x"
        assert action(policy, np.array([0.5, 0.5])) == "y"


def test_invalid_options_rejected():
    """Test that nonsensical iteration controls fail at construction."""
    with pytest.raises(ValueError):
        SolverOptions(max_iterations=-1)
    with pytest.raises(ValueError):
        SolverOptions(tolerance=-1e-3)
    with pytest.raises(ValueError):
        SolverOptions(timeout=0)
    with pytest.raises(ValueError):
        SolverOptions(n_jobs=0)
    assert SolverOptions(tie_break="first").tie_break is TieBreak.FIRST

    with pytest.raises(ValueError):
        solve(build_spacecraft_pomdp(), "policy_gradient")


def test_point_based_rejects_bad_belief_samples():
    """Test that PBVI validates its belief set."""
    pomdp = build_spacecraft_pomdp()
    with pytest.raises(ValueError):
        solve(pomdp, SolverKind.POINT_BASED, SolverOptions(belief_samples=[]))
    with pytest.raises(ValueError):
        solve(pomdp, SolverKind.POINT_BASED, SolverOptions(belief_samples=[np.array([0.7, 0.7])]))


def test_point_based_handles_impossible_observations():
    """Test PBVI on a model where CDMs never arrive while safe."""
    pomdp = build_spacecraft_pomdp(SpacecraftParameters(p_cdm_when_safe=0.0, p_cdm_when_danger=1.0))
    policy = solve_quietly(pomdp, SolverKind.POINT_BASED, max_iterations=100, tolerance=1e-8)

    assert np.all(np.isfinite(policy.alphas))
    assert action(policy, np.array([0.0, 1.0])) == Action.HOLD
