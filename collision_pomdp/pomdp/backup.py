"""
Offline alpha-vector solvers for POMDP.

Three backup operators turn a model into an AlphaVectorPolicy:

- MDP relaxation (QMDP): assumes the state is revealed after acting; upper bound.
- Informed bound (FIB): accounts for the observation model; no looser than QMDP.
- Point-based (PBVI): exact backups at a fixed set of beliefs; lower bound.
"""

import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp.alpha import AlphaVector, AlphaVectorPolicy, TieBreak, select_best
from collision_pomdp.pomdp.belief import belief_update
from collision_pomdp.pomdp.errors import NonFiniteValueError, UnconvergedResult
from collision_pomdp.pomdp.sampling import default_belief_set
from collision_pomdp.pomdp.schema import POMDP, check_discount
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)


class SolverKind(str, Enum):
    MDP_RELAXATION = "mdp_relaxation"
    INFORMED_BOUND = "informed_bound"
    POINT_BASED = "point_based"


@dataclass
class SolverOptions:
    """
    Iteration control shared by every backup.

    Attributes:
        max_iterations: Sweeps (QMDP, FIB) or rounds over the belief set (PBVI)
        tolerance: Stop once the largest change falls below this value
        belief_samples: Belief set for point-based backup (default: extreme
            beliefs plus the initial belief)
        tie_break: Rule for choosing among vectors of equal value
        timeout: Wall-clock budget in seconds (None for unbounded)
        n_jobs: Worker threads for the per-belief pass of point-based backup
    """
    max_iterations: int = field(default_factory=lambda: Config.SOLVER_MAX_ITERATIONS)
    tolerance: float = field(default_factory=lambda: Config.SOLVER_TOLERANCE)
    belief_samples: Optional[Sequence[np.ndarray]] = None
    tie_break: TieBreak = TieBreak.ACTION_ORDER
    timeout: Optional[float] = None
    n_jobs: int = 1

    def __post_init__(self):
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if not self.tolerance >= 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        self.tie_break = TieBreak(self.tie_break)


class _Deadline:
    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        self.start = time.monotonic()

    def expired(self) -> bool:
        return self.timeout is not None and time.monotonic() - self.start >= self.timeout


def _has_converged(residual: float, tolerance: float) -> bool:
    return residual < tolerance or residual == 0.0


def _check_finite(values: np.ndarray, kind: SolverKind) -> None:
    if not np.all(np.isfinite(values)):
        raise NonFiniteValueError(f"{kind.value} backup produced non-finite values")


def _report(
    policy: AlphaVectorPolicy,
    options: SolverOptions,
) -> AlphaVectorPolicy:
    """Log the outcome; warn the caller of the public entry point if unconverged."""
    if policy.converged:
        logger.info(
            f"{policy.kind} converged after {policy.iterations} iterations "
            f"(residual {policy.residual:.3g}, {len(policy)} vectors)"
        )
    else:
        message = (
            f"{policy.kind} stopped after {policy.iterations} iterations with residual "
            f"{policy.residual:.3g} >= tolerance {options.tolerance}"
        )
        logger.warning(message)
        # Frames: _report, the public entry point, its caller
        warnings.warn(UnconvergedResult(message, policy), stacklevel=3)
    return policy


def _value_iteration(
    pomdp: POMDP,
    options: SolverOptions,
    kind: SolverKind,
    sweep: Callable[[np.ndarray], np.ndarray],
) -> AlphaVectorPolicy:
    """Iterate one-vector-per-action sweeps from zero until converged."""
    deadline = _Deadline(options.timeout)
    alphas = np.zeros((len(pomdp.A), pomdp.n_states))
    residual = float("inf")
    converged = False
    iterations = 0

    while iterations < options.max_iterations:
        new_alphas = sweep(alphas)
        _check_finite(new_alphas, kind)
        residual = float(np.max(np.abs(new_alphas - alphas)))
        alphas = new_alphas
        iterations += 1
        logger.debug(f"{kind.value} sweep {iterations}: residual {residual:.3g}")
        if _has_converged(residual, options.tolerance):
            converged = True
            break
        if deadline.expired():
            logger.info(f"{kind.value} hit the {options.timeout}s time budget")
            break

    return AlphaVectorPolicy(
        vectors=tuple(AlphaVector(alphas[k], a) for k, a in enumerate(pomdp.A)),
        action_space=pomdp.A,
        tie_break=options.tie_break,
        kind=kind.value,
        iterations=iterations,
        residual=residual,
        converged=converged,
    )


def _mdp_relaxation(pomdp: POMDP, options: SolverOptions) -> AlphaVectorPolicy:
    gamma = check_discount(pomdp.gamma)
    R = pomdp.reward_matrix.T
    T = pomdp.transition_tensor

    def sweep(alphas: np.ndarray) -> np.ndarray:
        return R + gamma * (T @ alphas.max(axis=0))

    return _value_iteration(pomdp, options, SolverKind.MDP_RELAXATION, sweep)


def _informed_bound(pomdp: POMDP, options: SolverOptions) -> AlphaVectorPolicy:
    gamma = check_discount(pomdp.gamma)
    R = pomdp.reward_matrix.T
    # M[a, s, s', o] = T(s, a, s') * O(s, a, s', o)
    M = pomdp.transition_tensor[..., None] * pomdp.observation_tensor

    def sweep(alphas: np.ndarray) -> np.ndarray:
        # inner[a, a', s, o] = sum_s' M[a, s, s', o] * alpha_a'(s')
        inner = np.einsum("asto,bt->abso", M, alphas)
        return R + gamma * inner.max(axis=1).sum(axis=-1)

    return _value_iteration(pomdp, options, SolverKind.INFORMED_BOUND, sweep)


def mdp_relaxation_backup(
    pomdp: POMDP,
    options: Optional[SolverOptions] = None,
) -> AlphaVectorPolicy:
    """
    QMDP: alpha_a(s) <- R(s,a) + gamma * sum_s' T(s,a,s') * max_a' alpha_a'(s').

    The observation model is ignored.
    """
    options = options or SolverOptions()
    return _report(_mdp_relaxation(pomdp, options), options)


def informed_bound_backup(
    pomdp: POMDP,
    options: Optional[SolverOptions] = None,
) -> AlphaVectorPolicy:
    """
    FIB: alpha_a(s) <- R(s,a) + gamma * sum_o max_a' sum_s' O(s,a,s',o) T(s,a,s') alpha_a'(s').
    """
    options = options or SolverOptions()
    return _report(_informed_bound(pomdp, options), options)


def _point_backup(
    pomdp: POMDP,
    M: np.ndarray,
    gamma_set: np.ndarray,
    gamma_ranks: np.ndarray,
    belief: np.ndarray,
    tie_break: TieBreak,
) -> Tuple[np.ndarray, int]:
    """
    Backed-up vector at one belief point.

    Returns:
        (alpha vector, index of the action that produced it)
    """
    R = pomdp.reward_matrix
    n_actions, n_obs = len(pomdp.A), len(pomdp.O)
    candidates = np.empty((n_actions, pomdp.n_states))

    for a_idx, a in enumerate(pomdp.A):
        alpha_a = R[:, a_idx].copy()
        for o_idx, o in enumerate(pomdp.O):
            M_ao = M[a_idx, :, :, o_idx]
            if (belief @ M_ao).sum() > 0.0:
                next_belief = belief_update(pomdp, belief, a, o)
                scores = gamma_set @ next_belief
            else:
                # Impossible at this belief: carries no weight, pick by tie-break
                scores = np.zeros(len(gamma_set))
            best = select_best(scores, gamma_ranks, tie_break)
            alpha_a += pomdp.gamma * (M_ao @ gamma_set[best])
        candidates[a_idx] = alpha_a

    a_best = select_best(candidates @ belief, np.arange(n_actions), tie_break)
    return candidates[a_best], a_best


def _dedupe(vectors: List[AlphaVector]) -> List[AlphaVector]:
    kept: List[AlphaVector] = []
    for v in vectors:
        if not any(k.action == v.action and np.array_equal(k.values, v.values) for k in kept):
            kept.append(v)
    return kept


def _point_based(pomdp: POMDP, options: SolverOptions) -> AlphaVectorPolicy:
    kind = SolverKind.POINT_BASED
    gamma = check_discount(pomdp.gamma)

    if options.belief_samples is None:
        beliefs = default_belief_set(pomdp)
    else:
        beliefs = [pomdp.check_belief(b) for b in options.belief_samples]
    if not beliefs:
        raise ValueError("Point-based backup needs at least one belief sample")

    M = pomdp.transition_tensor[..., None] * pomdp.observation_tensor
    rank = {a: i for i, a in enumerate(pomdp.A)}
    lower = pomdp.reward_matrix.min() / (1.0 - gamma)
    vectors = [AlphaVector(np.full(pomdp.n_states, lower), a) for a in pomdp.A]
    B = np.stack(beliefs)

    deadline = _Deadline(options.timeout)
    values = (np.stack([v.values for v in vectors]) @ B.T).max(axis=0)
    residual = float("inf")
    converged = False
    iterations = 0

    executor = ThreadPoolExecutor(max_workers=options.n_jobs) if options.n_jobs > 1 else None
    try:
        while iterations < options.max_iterations:
            gamma_set = np.stack([v.values for v in vectors])
            gamma_ranks = np.array([rank[v.action] for v in vectors])

            def backup_at(b: np.ndarray) -> Tuple[np.ndarray, int]:
                return _point_backup(pomdp, M, gamma_set, gamma_ranks, b, options.tie_break)

            # Every worker reads the previous round's set and writes its own slot
            if executor is not None:
                results = list(executor.map(backup_at, beliefs))
            else:
                results = [backup_at(b) for b in beliefs]

            new_vectors = []
            for b, (alpha_b, a_idx) in zip(beliefs, results):
                _check_finite(alpha_b, kind)
                current = select_best(gamma_set @ b, gamma_ranks, options.tie_break)
                if alpha_b @ b < gamma_set[current] @ b:
                    new_vectors.append(vectors[current])
                else:
                    new_vectors.append(AlphaVector(alpha_b, pomdp.A[a_idx], belief=b))
            vectors = _dedupe(new_vectors)

            new_values = (np.stack([v.values for v in vectors]) @ B.T).max(axis=0)
            residual = float(np.max(np.abs(new_values - values)))
            values = new_values
            iterations += 1
            logger.debug(
                f"{kind.value} round {iterations}: residual {residual:.3g}, "
                f"{len(vectors)} vectors"
            )
            if _has_converged(residual, options.tolerance):
                converged = True
                break
            if deadline.expired():
                logger.info(f"{kind.value} hit the {options.timeout}s time budget")
                break
    finally:
        if executor is not None:
            executor.shutdown()

    return AlphaVectorPolicy(
        vectors=tuple(vectors),
        action_space=pomdp.A,
        tie_break=options.tie_break,
        kind=kind.value,
        iterations=iterations,
        residual=residual,
        converged=converged,
    )


def point_based_backup(
    pomdp: POMDP,
    options: Optional[SolverOptions] = None,
) -> AlphaVectorPolicy:
    """
    Point-based value iteration over a fixed belief set B.

    Each round backs up every b in B against the previous round's vector set:

        alpha_{a,o} = argmax_{alpha in Gamma} alpha . update(b, a, o)
        alpha_a(s)  = R(s,a) + gamma * sum_{s',o} O(s,a,s',o) T(s,a,s') alpha_{a,o}(s')
        alpha_b     = argmax_{alpha_a} alpha_a . b

    Gamma starts from the blind lower bound min R / (1 - gamma). A backed-up vector
    that is worse at b than the current best one is discarded in favour of the
    current one, so the value at every b in B never decreases.

    Args:
        pomdp: POMDP model
        options: Iteration control; ``belief_samples`` gives B

    Returns:
        Policy of at most max(|B|, |A|) belief-tagged vectors
    """
    options = options or SolverOptions()
    return _report(_point_based(pomdp, options), options)


_SOLVERS = {
    SolverKind.MDP_RELAXATION: _mdp_relaxation,
    SolverKind.INFORMED_BOUND: _informed_bound,
    SolverKind.POINT_BASED: _point_based,
}


def solve(
    model: POMDP,
    kind: Union[SolverKind, str] = SolverKind.MDP_RELAXATION,
    options: Optional[SolverOptions] = None,
) -> AlphaVectorPolicy:
    """
    Solve ``model`` offline with the requested backup.

    Args:
        model: POMDP model
        kind: SolverKind or its string value
        options: Iteration control (defaults from Config)

    Returns:
        AlphaVectorPolicy; ``converged`` is False (and an UnconvergedResult
        warning issued) when the iteration or time budget ran out first

    Raises:
        InvalidDiscountError: discount outside [0, 1)
        NonFiniteValueError: a sweep produced non-finite values
    """
    kind = SolverKind(kind)
    options = options or SolverOptions()
    logger.info(
        f"Solving {len(model.S)}-state POMDP with {kind.value} "
        f"(max_iterations={options.max_iterations}, tolerance={options.tolerance})"
    )
    return _report(_SOLVERS[kind](model, options), options)
