"""Limited-memory BFGS search directions with optional box constraints."""

from .box_constraints import box_constrained_direction, max_step_length, split_active
from .errors import InternalInfeasibilityError, LBFGSError, UnsupportedConstraintError
from .l_bfgs import LimitedMemoryBFGS
from .objective import BoxConstraintHandler, ObjectiveFunction
from .search_direction import LBFGSSearchDirection

__all__ = [
    "BoxConstraintHandler",
    "InternalInfeasibilityError",
    "LBFGSError",
    "LBFGSSearchDirection",
    "LimitedMemoryBFGS",
    "ObjectiveFunction",
    "UnsupportedConstraintError",
    "box_constrained_direction",
    "max_step_length",
    "split_active",
]
