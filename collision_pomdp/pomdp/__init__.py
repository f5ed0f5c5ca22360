"""
POMDP core: finite models, Bayesian belief updates and alpha-vector policies.
"""

from collision_pomdp.pomdp.errors import (
    POMDPError,
    ModelDefinitionError,
    NonFiniteValueError,
    InvalidDiscountError,
    UndefinedTransitionError,
    UndefinedObservationError,
    ImpossibleObservationError,
    InvalidBeliefError,
    EmptyPolicyError,
    UnconvergedResult,
)
from collision_pomdp.pomdp.distributions import Distribution, SparseCat
from collision_pomdp.pomdp.schema import POMDP
from collision_pomdp.pomdp.belief import (
    belief_update,
    update,
    uniform_belief,
    initial_belief,
    validate_belief,
    observation_probability,
    DiscreteUpdater,
)
from collision_pomdp.pomdp.alpha import (
    AlphaVector,
    AlphaVectorPolicy,
    TieBreak,
    dot,
    action,
    utility,
    best_vector,
)
from collision_pomdp.pomdp.backup import (
    SolverKind,
    SolverOptions,
    solve,
    mdp_relaxation_backup,
    informed_bound_backup,
    point_based_backup,
)
from collision_pomdp.pomdp.sampling import (
    extreme_beliefs,
    default_belief_set,
    random_beliefs,
    reachable_beliefs,
)
from collision_pomdp.pomdp.policies import (
    ObservationPolicy,
    BeliefPolicy,
    policy_myopic,
    policy_threshold,
    myopic_policy,
    threshold_policy,
    action_from_observation,
    action_from_belief,
)
from collision_pomdp.pomdp.planner import OnlinePlanner, PolicyPlanner
from collision_pomdp.pomdp.simulate import rollout, evaluate_policy
from collision_pomdp.pomdp.profile import dominance_profile, switching_points

__all__ = [
    "POMDPError",
    "ModelDefinitionError",
    "NonFiniteValueError",
    "InvalidDiscountError",
    "UndefinedTransitionError",
    "UndefinedObservationError",
    "ImpossibleObservationError",
    "InvalidBeliefError",
    "EmptyPolicyError",
    "UnconvergedResult",
    "Distribution",
    "SparseCat",
    "POMDP",
    "belief_update",
    "update",
    "uniform_belief",
    "initial_belief",
    "validate_belief",
    "observation_probability",
    "DiscreteUpdater",
    "AlphaVector",
    "AlphaVectorPolicy",
    "TieBreak",
    "dot",
    "action",
    "utility",
    "best_vector",
    "SolverKind",
    "SolverOptions",
    "solve",
    "mdp_relaxation_backup",
    "informed_bound_backup",
    "point_based_backup",
    "extreme_beliefs",
    "default_belief_set",
    "random_beliefs",
    "reachable_beliefs",
    "ObservationPolicy",
    "BeliefPolicy",
    "policy_myopic",
    "policy_threshold",
    "myopic_policy",
    "threshold_policy",
    "action_from_observation",
    "action_from_belief",
    "OnlinePlanner",
    "PolicyPlanner",
    "rollout",
    "evaluate_policy",
    "dominance_profile",
    "switching_points",
]
