# ---------------------------------------------------------------------
# search_direction.py
#
# Per-iteration entry point for an outer line-search loop: feed the
# latest (point, gradient) change into the L-BFGS memory, then return
# either the plain quasi-Newton direction or its box-feasible version.
# ---------------------------------------------------------------------

from typing import Dict
import logging

import numpy as np

from .box_constraints import box_constrained_direction
from .errors import InternalInfeasibilityError, UnsupportedConstraintError
from .l_bfgs import LimitedMemoryBFGS

logger = logging.getLogger(__name__)


class LBFGSSearchDirection:
    """
    Search-direction engine owned by exactly one optimisation loop.

        >>> engine = LBFGSSearchDirection(m_max=10)
        >>> d = engine.compute_direction(g, g_prev, x, x_prev, objective)

    Parameters
    ----------
    m_max            : int
        Number of (s, y) pairs kept in memory.
    update_threshold : float
        Curvature threshold below which a pair is skipped.
    """

    def __init__(self, m_max: int = 10, update_threshold: float = LimitedMemoryBFGS.DEFAULT_UPDATE_THRESHOLD):
        self._lbfgs = LimitedMemoryBFGS(m_max=m_max, update_threshold=update_threshold)

    @property
    def lbfgs(self) -> LimitedMemoryBFGS:
        return self._lbfgs

    def reset_history(self):
        """Empty the memory and restore bdiag = 1 and the default threshold."""
        self._lbfgs.reset()

    def compute_direction(self, derivative: np.ndarray, last_derivative: np.ndarray,
                          best_point: np.ndarray, last_point: np.ndarray, objective) -> np.ndarray:
        """
        Update the memory with  s = best_point − last_point,
        y = derivative − last_derivative  and return the search direction
        at ``best_point``.

        Raises
        ------
        UnsupportedConstraintError
            ``objective`` is constrained without a box constraint handler.
        InternalInfeasibilityError
            ``best_point + direction`` is rejected by ``objective``.
        """
        derivative = np.asarray(derivative, dtype=float)
        best_point = np.asarray(best_point, dtype=float)
        y = derivative - np.asarray(last_derivative, dtype=float)
        s = best_point - np.asarray(last_point, dtype=float)
        self._lbfgs.add_pair(s, y)

        if not objective.is_constrained():
            return self._lbfgs.direction(derivative)

        if not (objective.has_constraint_handler()
                and objective.get_constraint_handler().is_box_constrained()):
            raise UnsupportedConstraintError(
                "LBFGS does only allow box constraints via a constraint handler"
            )
        handler = objective.get_constraint_handler()
        direction = box_constrained_direction(
            self._lbfgs, best_point, derivative, handler.lower(), handler.upper()
        )
        if not objective.is_feasible(best_point + direction):
            logger.error(
                "box_direction_infeasible",
                extra={
                    "direction_norm": float(np.linalg.norm(direction)),
                    "mem_pairs": len(self._lbfgs),
                },
            )
            raise InternalInfeasibilityError("search direction leaves the feasible region")
        return direction

    # -----------------------------------------------------------------
    # checkpointing
    # -----------------------------------------------------------------
    def state_dict(self) -> Dict:
        return self._lbfgs.state_dict()

    def load_state_dict(self, state: Dict):
        self._lbfgs.load_state_dict(state)
