"""
Exceptions raised by the POMDP engine.

Invalid-input errors subclass ``ValueError`` (or ``LookupError`` for undefined
model lookups) so callers catching the builtin types keep working.
"""


class POMDPError(Exception):
    """Base class for every error raised by the engine."""


class ModelDefinitionError(POMDPError, ValueError):
    """Malformed model: empty or duplicated space, bad distribution, bad shapes."""


class NonFiniteValueError(ModelDefinitionError):
    """A reward or a backed-up value is NaN or infinite."""


class InvalidDiscountError(ModelDefinitionError):
    """Discount factor outside [0, 1)."""


class UndefinedTransitionError(POMDPError, LookupError):
    """T(s, a) has no defined outcome."""


class UndefinedObservationError(POMDPError, LookupError):
    """O(s, a, s') has no defined outcome, or the observation is unknown."""


class ImpossibleObservationError(POMDPError, ValueError):
    """The observation has zero probability under the belief and action."""


class InvalidBeliefError(POMDPError, ValueError):
    """Belief vector with the wrong length, negative entries or mass != 1."""


class EmptyPolicyError(POMDPError, ValueError):
    """Policy query on a policy without alpha vectors."""


class UnconvergedResult(UserWarning):
    """
    Warning issued when a solver stops before reaching its tolerance.

    The (valid, possibly suboptimal) policy is attached so callers that escalate
    warnings to errors can still recover it.
    """

    def __init__(self, message: str, policy=None):
        super().__init__(message)
        self.policy = policy
