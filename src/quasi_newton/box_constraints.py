# ---------------------------------------------------------------------
# box_constraints.py
#
# Turns the L-BFGS step into a direction d with  l ≤ x + d ≤ u.
#
#   1. freeze coordinates whose steepest-descent move leaves the box
#   2. try the quasi-Newton step on the free coordinates
#   3. otherwise fall back to the (clipped) Cauchy point
#   4. or walk from the Cauchy point towards the quasi-Newton step
#      (dogleg) as far as the box allows
# ---------------------------------------------------------------------

import logging

import numpy as np

from .l_bfgs import LimitedMemoryBFGS

logger = logging.getLogger(__name__)

# a coordinate closer than this to a bound is treated as sitting on it
BOUND_EPS = 1e-13


def split_active(x: np.ndarray, p0: np.ndarray, lower: np.ndarray, upper: np.ndarray,
                 eps: float = BOUND_EPS) -> np.ndarray:
    """
    Boolean mask of the coordinates that may move along ``p0``.

    A coordinate is inactive when it sits on a bound and ``p0`` pushes it
    across that bound.
    """
    blocked = ((lower > x - eps) & (p0 < 0)) | ((upper < x + eps) & (p0 > 0))
    return ~blocked


def max_step_length(point: np.ndarray, direction: np.ndarray, lower: np.ndarray,
                    upper: np.ndarray, active: np.ndarray) -> float:
    """
    Largest alpha in [0, 1] such that ``point + alpha * direction`` stays
    inside [lower, upper] on the active coordinates.
    """
    alpha = 1.0

    up = active & (direction > 0)
    if up.any():
        ratios = (upper[up] - point[up]) / direction[up]
        alpha = min(alpha, float(ratios.min()))

    down = active & (direction < 0)
    if down.any():
        ratios = (lower[down] - point[down]) / direction[down]
        alpha = min(alpha, float(ratios.min()))

    return max(alpha, 0.0)


def box_constrained_direction(lbfgs: LimitedMemoryBFGS, x: np.ndarray, g: np.ndarray,
                              lower: np.ndarray, upper: np.ndarray,
                              eps: float = BOUND_EPS) -> np.ndarray:
    """
    Return a search direction d for the point ``x`` with gradient ``g``
    such that ``x + d`` is feasible for the box [lower, upper].

    If the quasi-Newton step on the free coordinates is feasible it is
    returned unchanged; with infinite bounds this is exactly
    ``lbfgs.direction(g)``.
    """
    x = np.asarray(x, dtype=float)
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)

    p0 = -np.asarray(g, dtype=float)
    if p0.ndim != 1:
        raise ValueError("Gradient `g` must be a 1-D array")
    active = split_active(x, p0, lower, upper, eps)
    p0[~active] = 0.0

    # quasi-Newton step with the frozen coordinates kept fixed
    step = lbfgs.mult_b_inv(p0)
    step[~active] = 0.0

    target = x + step
    violated = active & ((lower > target - eps) | (upper < target + eps))
    if not violated.any():
        return step

    # Cauchy point along p0, scaled by the curvature p0ᵀ B p0
    curvature = float(p0.dot(lbfgs.mult_b(p0)))
    if curvature <= 0.0:
        logger.debug("box_direction_blocked", extra={"n_inactive": int((~active).sum())})
        return np.zeros_like(x)
    cauchy = p0 / curvature

    alpha = max_step_length(x, cauchy, lower, upper, active)
    if alpha < 1.0:
        logger.debug("box_direction_cauchy", extra={"alpha": alpha, "n_violated": int(violated.sum())})
        return alpha * cauchy

    # dogleg from the Cauchy point towards the quasi-Newton step
    dog = step - cauchy
    alpha = max_step_length(x + cauchy, dog, lower, upper, active)
    logger.debug("box_direction_dogleg", extra={"alpha": alpha, "n_violated": int(violated.sum())})
    return cauchy + alpha * dog
