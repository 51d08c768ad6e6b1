# ---------------------------------------------------------------------
# objective.py
#
# Minimal objective / constraint-handler pair understood by
# LBFGSSearchDirection.  Any object with the same methods will do.
# ---------------------------------------------------------------------

from typing import Callable, Optional

import numpy as np


class BoxConstraintHandler:
    """
    Per-coordinate bounds  lower ≤ x ≤ upper.  Entries may be ±inf.
    """

    def __init__(self, lower, upper, tol: float = 1e-12):
        self._lower = np.asarray(lower, dtype=float).copy()
        self._upper = np.asarray(upper, dtype=float).copy()
        if self._lower.shape != self._upper.shape:
            raise ValueError("lower and upper must have the same shape")
        if np.any(self._lower > self._upper):
            raise ValueError("lower bound exceeds upper bound")
        self.tol = tol

    def is_box_constrained(self) -> bool:
        return True

    def lower(self) -> np.ndarray:
        return self._lower

    def upper(self) -> np.ndarray:
        return self._upper

    def is_feasible(self, point) -> bool:
        point = np.asarray(point, dtype=float)
        return bool(np.all(point >= self._lower - self.tol) and np.all(point <= self._upper + self.tol))

    def project(self, point) -> np.ndarray:
        """Clip ``point`` into the box."""
        return np.clip(point, self._lower, self._upper)


class ObjectiveFunction:
    """
    Objective f with gradient and an optional constraint handler.

    Parameters
    ----------
    fun                : callable x -> float
    grad               : callable x -> ndarray
    constraint_handler : object with ``is_box_constrained``, ``lower``,
                         ``upper`` and ``is_feasible``, or None
    """

    def __init__(self, fun: Callable, grad: Callable, constraint_handler: Optional[object] = None):
        self.fun = fun
        self.grad = grad
        self._handler = constraint_handler

    def eval(self, x) -> float:
        return float(self.fun(x))

    def derivative(self, x) -> np.ndarray:
        return np.asarray(self.grad(x), dtype=float)

    def is_constrained(self) -> bool:
        return self._handler is not None

    def has_constraint_handler(self) -> bool:
        return self._handler is not None

    def get_constraint_handler(self):
        return self._handler

    def is_feasible(self, point) -> bool:
        if self._handler is None:
            return True
        return self._handler.is_feasible(point)
