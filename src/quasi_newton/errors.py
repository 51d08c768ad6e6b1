"""Exceptions raised by the search-direction engine."""


class LBFGSError(RuntimeError):
    """Base class for failures of the L-BFGS direction computation."""


class UnsupportedConstraintError(LBFGSError):
    """The objective is constrained, but not through box constraints."""


class InternalInfeasibilityError(LBFGSError):
    """The computed direction leaves the feasible region."""
