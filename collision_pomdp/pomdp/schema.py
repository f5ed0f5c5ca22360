"""
POMDP schema definitions.
"""

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Hashable, Mapping, Optional, Sequence, Tuple, Type, Union

import numpy as np

from collision_pomdp.config import Config
from collision_pomdp.pomdp.distributions import Distribution
from collision_pomdp.pomdp.errors import (
    InvalidBeliefError,
    InvalidDiscountError,
    ModelDefinitionError,
    NonFiniteValueError,
    UndefinedObservationError,
    UndefinedTransitionError,
)
from collision_pomdp.utils.logging_utils import get_logger

logger = get_logger(__name__)

TransitionFn = Callable[[Hashable, Hashable], Optional[Distribution]]
ObservationFn = Callable[[Hashable, Hashable, Hashable], Optional[Distribution]]
RewardFn = Callable[[Hashable, Hashable], float]


def _read_only(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float, copy=True)
    array.setflags(write=False)
    return array


def _check_space(labels: Sequence[Hashable], name: str) -> Tuple[Hashable, ...]:
    labels = tuple(labels)
    if not labels:
        raise ModelDefinitionError(f"{name} space is empty")
    if len(set(labels)) != len(labels):
        raise ModelDefinitionError(f"{name} space has duplicate labels: {labels}")
    return labels


def _check_stochastic(matrix: np.ndarray, what: str) -> None:
    if not np.all(np.isfinite(matrix)):
        raise ModelDefinitionError(f"{what} contains non-finite probabilities")
    if np.any(matrix < 0):
        raise ModelDefinitionError(f"{what} contains negative probabilities")
    sums = matrix.sum(axis=-1)
    if not np.allclose(sums, 1.0, rtol=0.0, atol=Config.PROBABILITY_TOLERANCE):
        raise ModelDefinitionError(f"{what} rows do not sum to 1")


def check_discount(gamma: float) -> float:
    """Return ``gamma`` as a float, rejecting values outside [0, 1)."""
    gamma = float(gamma)
    if not (0.0 <= gamma < 1.0):
        raise InvalidDiscountError(f"Discount factor must lie in [0, 1), got {gamma}")
    return gamma


@dataclass(frozen=True, eq=False)
class POMDP:
    """
    Finite Partially Observable Markov Decision Process.

    Attributes:
        S: State labels; position in the list is the state index
        A: Action labels
        O: Observation labels
        T: Transition probabilities T[a][s, s'] = P(s' | s, a)
        Z: Observation probabilities Z[a][s, s', o] = P(o | s, a, s').
            A |S| x |O| matrix Z[a][s', o] = P(o | a, s') is accepted and
            broadcast over s.
        R: Rewards R[a][s] = R(s, a)
        gamma: Discount factor in [0, 1)
        b0: Initial belief (defaults to uniform)

    The model is immutable: labels are stored as tuples, the per-action arrays as
    read-only numpy arrays behind read-only mappings.
    """
    S: Sequence[Hashable]
    A: Sequence[Hashable]
    O: Sequence[Hashable]
    T: Mapping[Hashable, np.ndarray]
    Z: Mapping[Hashable, np.ndarray]
    R: Mapping[Hashable, np.ndarray]
    gamma: float = 0.95
    b0: Optional[np.ndarray] = None
    # Z entries for (s, a, s') triples with T = 0 that the model left undefined
    undefined_observations: Optional[np.ndarray] = None

    def __post_init__(self):
        """Validate POMDP structure."""
        S = _check_space(self.S, "State")
        A = _check_space(self.A, "Action")
        O = _check_space(self.O, "Observation")
        n_states, n_obs = len(S), len(O)
        gamma = check_discount(self.gamma)

        T, Z, R = {}, {}, {}
        for a in A:
            if a not in self.T:
                raise ModelDefinitionError(f"Missing transition matrix for action {a}")
            T_a = np.asarray(self.T[a], dtype=float)
            if T_a.shape != (n_states, n_states):
                raise ModelDefinitionError(
                    f"T[{a}] has shape {T_a.shape}, expected ({n_states}, {n_states})"
                )
            _check_stochastic(T_a, f"T[{a}]")
            T[a] = _read_only(T_a)

            if a not in self.Z:
                raise ModelDefinitionError(f"Missing observation matrix for action {a}")
            Z_a = np.asarray(self.Z[a], dtype=float)
            if Z_a.shape == (n_states, n_obs):
                Z_a = np.broadcast_to(Z_a, (n_states, n_states, n_obs))
            if Z_a.shape != (n_states, n_states, n_obs):
                raise ModelDefinitionError(
                    f"Z[{a}] has shape {Z_a.shape}, expected "
                    f"({n_states}, {n_states}, {n_obs}) or ({n_states}, {n_obs})"
                )
            _check_stochastic(Z_a, f"Z[{a}]")
            Z[a] = _read_only(Z_a)

            if a not in self.R:
                raise ModelDefinitionError(f"Missing reward vector for action {a}")
            R_a = np.asarray(self.R[a], dtype=float)
            if R_a.shape != (n_states,):
                raise ModelDefinitionError(
                    f"R[{a}] has shape {R_a.shape}, expected ({n_states},)"
                )
            if not np.all(np.isfinite(R_a)):
                raise NonFiniteValueError(f"R[{a}] contains non-finite rewards")
            R[a] = _read_only(R_a)

        if self.b0 is None:
            b0 = np.full(n_states, 1.0 / n_states)
        else:
            b0 = np.asarray(self.b0, dtype=float)
            if b0.shape != (n_states,):
                raise ModelDefinitionError(
                    f"b0 has shape {b0.shape}, expected ({n_states},)"
                )
            _check_stochastic(b0, "b0")

        if self.undefined_observations is None:
            undefined = np.zeros((len(A), n_states, n_states), dtype=bool)
        else:
            undefined = np.array(self.undefined_observations, dtype=bool)
            if undefined.shape != (len(A), n_states, n_states):
                raise ModelDefinitionError(
                    f"undefined_observations has shape {undefined.shape}, expected "
                    f"({len(A)}, {n_states}, {n_states})"
                )
        undefined.setflags(write=False)

        object.__setattr__(self, "S", S)
        object.__setattr__(self, "A", A)
        object.__setattr__(self, "O", O)
        object.__setattr__(self, "T", MappingProxyType(T))
        object.__setattr__(self, "Z", MappingProxyType(Z))
        object.__setattr__(self, "R", MappingProxyType(R))
        object.__setattr__(self, "gamma", gamma)
        object.__setattr__(self, "b0", _read_only(b0))
        object.__setattr__(self, "undefined_observations", undefined)

        # Index maps and stacked tensors used by the solvers
        object.__setattr__(self, "_state_idx", {s: i for i, s in enumerate(S)})
        object.__setattr__(self, "_action_idx", {a: i for i, a in enumerate(A)})
        object.__setattr__(self, "_obs_idx", {o: i for i, o in enumerate(O)})
        object.__setattr__(self, "_T_all", _read_only(np.stack([T[a] for a in A])))
        object.__setattr__(self, "_Z_all", _read_only(np.stack([Z[a] for a in A])))
        object.__setattr__(self, "_R_all", _read_only(np.stack([R[a] for a in A], axis=1)))

        logger.debug(
            f"POMDP built: {n_states} states, {len(A)} actions, {n_obs} observations, "
            f"gamma={gamma}"
        )

    @classmethod
    def from_functions(
        cls,
        states: Sequence[Hashable],
        actions: Sequence[Hashable],
        observations: Sequence[Hashable],
        transition: TransitionFn,
        observation: ObservationFn,
        reward: RewardFn,
        discount: float,
        initial: Union[Distribution, np.ndarray, None] = None,
    ) -> "POMDP":
        """
        Build a POMDP from generative functions, tabulating them eagerly.

        Args:
            states, actions, observations: Ordered label lists
            transition: T(s, a) -> Distribution over states
            observation: O(s, a, s') -> Distribution over observations
            reward: R(s, a) -> float
            discount: Discount factor in [0, 1)
            initial: Initial state distribution or belief vector (uniform if None)

        Returns:
            POMDP with every function evaluated once per input

        Raises:
            UndefinedTransitionError: T has no outcome for some (s, a)
            UndefinedObservationError: O has no outcome for a reachable (s, a, s')
            ModelDefinitionError: malformed distributions or spaces
            NonFiniteValueError: non-finite rewards
        """
        S = _check_space(states, "State")
        A = _check_space(actions, "Action")
        O = _check_space(observations, "Observation")
        n_states, n_obs = len(S), len(O)

        T, Z, R = {}, {}, {}
        undefined = np.zeros((len(A), n_states, n_states), dtype=bool)
        for k, a in enumerate(A):
            T_a = np.zeros((n_states, n_states))
            Z_a = np.zeros((n_states, n_states, n_obs))
            R_a = np.zeros(n_states)
            for i, s in enumerate(S):
                T_a[i] = _evaluate(
                    transition, (s, a), UndefinedTransitionError, f"T({s}, {a})"
                ).to_vector(S)
                for j, s_next in enumerate(S):
                    try:
                        dist = _evaluate(
                            observation, (s, a, s_next), UndefinedObservationError,
                            f"O({s}, {a}, {s_next})",
                        )
                    except UndefinedObservationError:
                        if T_a[i, j] > 0:
                            raise
                        # Unreachable triple: any valid row works, it carries no weight
                        undefined[k, i, j] = True
                        Z_a[i, j] = 1.0 / n_obs
                        continue
                    Z_a[i, j] = dist.to_vector(O)
                r = float(reward(s, a))
                if not math.isfinite(r):
                    raise NonFiniteValueError(f"R({s}, {a}) = {r} is not finite")
                R_a[i] = r
            T[a], Z[a], R[a] = T_a, Z_a, R_a

        if isinstance(initial, Distribution):
            b0 = initial.to_vector(S)
        else:
            b0 = initial

        return cls(
            S=S, A=A, O=O, T=T, Z=Z, R=R,
            gamma=discount, b0=b0, undefined_observations=undefined,
        )

    # Spaces

    @property
    def states(self) -> Tuple[Hashable, ...]:
        return self.S

    @property
    def actions(self) -> Tuple[Hashable, ...]:
        return self.A

    @property
    def observations(self) -> Tuple[Hashable, ...]:
        return self.O

    @property
    def n_states(self) -> int:
        return len(self.S)

    def state_index(self, s: Hashable) -> int:
        return _lookup(self._state_idx, s, "state", UndefinedTransitionError)

    def action_index(self, a: Hashable) -> int:
        return _lookup(self._action_idx, a, "action", UndefinedTransitionError)

    def obs_index(self, o: Hashable) -> int:
        return _lookup(self._obs_idx, o, "observation", UndefinedObservationError)

    # Model functions

    def transition(self, s: Hashable, a: Hashable) -> Distribution:
        """T(s, a) as a distribution over every state, in state order."""
        i, k = self.state_index(s), self.action_index(a)
        return Distribution(self.S, tuple(self._T_all[k, i]))

    def observation(self, s: Hashable, a: Hashable, s_next: Hashable) -> Distribution:
        """O(s, a, s') as a distribution over every observation."""
        i, k, j = self.state_index(s), self.action_index(a), self.state_index(s_next)
        if self.undefined_observations[k, i, j]:
            raise UndefinedObservationError(f"O({s}, {a}, {s_next}) is undefined")
        return Distribution(self.O, tuple(self._Z_all[k, i, j]))

    def reward(self, s: Hashable, a: Hashable) -> float:
        return float(self._R_all[self.state_index(s), self.action_index(a)])

    def initial_belief(self) -> np.ndarray:
        """The initial belief (read-only)."""
        return self.b0

    # Stacked views for vectorised backups

    @property
    def transition_tensor(self) -> np.ndarray:
        """T stacked as (|A|, |S|, |S'|)."""
        return self._T_all

    @property
    def observation_tensor(self) -> np.ndarray:
        """Z stacked as (|A|, |S|, |S'|, |O|)."""
        return self._Z_all

    @property
    def reward_matrix(self) -> np.ndarray:
        """R as (|S|, |A|)."""
        return self._R_all

    def check_belief(self, belief) -> np.ndarray:
        """
        Validate a belief vector for this model.

        Raises:
            InvalidBeliefError: wrong length, negative or non-finite entries,
                or mass different from 1
        """
        b = np.asarray(belief, dtype=float)
        if b.shape != (self.n_states,):
            raise InvalidBeliefError(
                f"Belief has shape {b.shape}, expected ({self.n_states},)"
            )
        if not np.all(np.isfinite(b)) or np.any(b < 0):
            raise InvalidBeliefError(f"Belief has negative or non-finite entries: {b}")
        if abs(b.sum() - 1.0) > Config.PROBABILITY_TOLERANCE:
            raise InvalidBeliefError(f"Belief sums to {b.sum()}, not 1")
        return b


def _evaluate(fn: Callable, args: tuple, error: Type[Exception], label: str) -> Distribution:
    try:
        dist = fn(*args)
    except LookupError as exc:
        raise error(f"{label} is undefined: {exc}") from exc
    if dist is None:
        raise error(f"{label} is undefined")
    if not isinstance(dist, Distribution):
        raise ModelDefinitionError(
            f"{label} returned {type(dist).__name__}, expected Distribution"
        )
    return dist


def _lookup(index: Dict[Hashable, int], value: Hashable, kind: str, error: Type[Exception]) -> int:
    try:
        return index[value]
    except KeyError:
        raise error(f"Unknown {kind} {value!r}") from None
