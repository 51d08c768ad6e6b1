# ---------------------------------------------------------------------
# l_bfgs.py
#
# Limited-memory BFGS history together with the two products it
# implies:
#
#   H x   via the classic two-loop recursion      (mult_b_inv)
#   B x   via the compact representation of B     (mult_b)
#
# – No n×n matrix is ever stored.
# – The only state is the (s, y) memory (length ≤ m_max) plus the
#   diagonal scale bdiag used for B₀ = bdiag·I.
# ---------------------------------------------------------------------

from typing import Dict, List
import logging

import numpy as np

logger = logging.getLogger(__name__)


class LimitedMemoryBFGS:
    """
    Container for L-BFGS curvature pairs.  Maintains at most ``m_max``
    pairs and never stores the Hessian or its inverse explicitly.

        >>> lbfgs = LimitedMemoryBFGS(m_max=10)
        >>> lbfgs.add_pair(s, y)
        >>> d = lbfgs.direction(g)

    Parameters
    ----------
    m_max            : int
        Maximum number of (s, y) pairs to keep.
    update_threshold : float
        Pairs with yᵀs ≤ update_threshold are rejected.
    """

    DEFAULT_UPDATE_THRESHOLD = 1e-10

    def __init__(self, m_max: int = 10, update_threshold: float = DEFAULT_UPDATE_THRESHOLD):
        if m_max < 1:
            raise ValueError("m_max must be a positive integer")
        self.m_max = int(m_max)
        self.reset(update_threshold)

    # -----------------------------------------------------------------
    # history
    # -----------------------------------------------------------------
    def __len__(self) -> int:  # ``len(lbfgs)``
        return len(self.S)

    def reset(self, update_threshold: float = DEFAULT_UPDATE_THRESHOLD):
        """Forget all pairs and start again from B₀ = I."""
        self.S: List[np.ndarray] = []
        self.Y: List[np.ndarray] = []
        self.bdiag = 1.0
        self.update_threshold = update_threshold

    def add_pair(self, s_new: np.ndarray, y_new: np.ndarray) -> bool:
        """
        Append a new curvature pair (s, y), discarding the oldest if the
        memory is full.  Pairs violating yᵀs > update_threshold are
        skipped so that B stays positive definite.

        Returns True iff the pair was stored.
        """
        s_new = np.asarray(s_new, dtype=float)
        y_new = np.asarray(y_new, dtype=float)
        if s_new.shape != y_new.shape:
            raise ValueError("s and y must have the same shape")

        ys = float(y_new.dot(s_new))
        if ys <= self.update_threshold:
            logger.debug("skip_curvature_pair", extra={"ys": ys, "memory_len": len(self.S)})
            return False

        if len(self.S) >= self.m_max:
            self.S.pop(0)
            self.Y.pop(0)

        self.S.append(s_new.copy())
        self.Y.append(y_new.copy())
        self.bdiag = float(y_new.dot(y_new)) / ys

        logger.debug(
            "lbfgs_add_pair",
            extra={
                "s_norm": float(np.linalg.norm(s_new)),
                "y_norm": float(np.linalg.norm(y_new)),
                "ys": ys,
                "bdiag": self.bdiag,
                "memory_len": len(self.S),
            },
        )
        return True

    # -----------------------------------------------------------------
    # products with the implicit matrices
    # -----------------------------------------------------------------
    def mult_b_inv(self, x: np.ndarray) -> np.ndarray:
        """
        Return  H x  where H is the L-BFGS inverse-Hessian approximation,
        using the two-loop recursion.  ``x`` itself is left untouched.
        """
        q = np.array(x, dtype=float)
        alphas = np.zeros(len(self.S))

        try:
            # Treat *any* FP problem as fatal inside the recursion
            with np.errstate(over="raise", divide="raise", invalid="raise"):
                rho = [1.0 / y_i.dot(s_i) for s_i, y_i in zip(self.S, self.Y)]

                # ---------- first (backward) loop ----------
                for i in reversed(range(len(self.S))):
                    alphas[i] = rho[i] * self.S[i].dot(q)
                    q -= alphas[i] * self.Y[i]

                # ---------- apply initial scaling H₀ = I / bdiag ----------
                q /= self.bdiag

                # ---------- second (forward) loop ----------
                for i in range(len(self.S)):
                    beta_i = rho[i] * self.Y[i].dot(q)
                    q += self.S[i] * (alphas[i] - beta_i)
        except FloatingPointError as e:
            logger.warning(
                "lbfgs_mult_b_inv_abort",
                extra={
                    "err": str(e),
                    "x_norm": float(np.linalg.norm(x)),
                    "mem_pairs": len(self.S),
                },
            )
            raise RuntimeError(
                "Numerical instability detected in LimitedMemoryBFGS.mult_b_inv"
            ) from e

        return q

    def mult_b(self, x: np.ndarray) -> np.ndarray:
        """
        Return  B x  where B is the (direct) BFGS Hessian approximation
        built from the stored pairs, in compact form

            B = bdiag·I + Σ y_i y_iᵀ / (y_iᵀ s_i) − Aᵀ A

        Row i of A is B_i s_i / sqrt(s_iᵀ B_i s_i), with B_i the
        approximation after the first i pairs.  A is rebuilt on every
        call.
        """
        x = np.asarray(x, dtype=float)
        m = len(self.S)
        A = np.zeros((m, x.size))
        beta = np.zeros(m)

        try:
            with np.errstate(over="raise", divide="raise", invalid="raise"):
                result = self.bdiag * x
                for i in range(m):
                    s_i, y_i = self.S[i], self.Y[i]
                    beta[i] = y_i.dot(s_i)
                    result += (y_i.dot(x) / beta[i]) * y_i

                    row = self.bdiag * s_i
                    for j in range(i):
                        row += (self.Y[j].dot(s_i) / beta[j]) * self.Y[j]
                    row -= A[:i].T @ (A[:i] @ s_i)
                    A[i] = row / np.sqrt(s_i.dot(row))

                result -= A.T @ (A @ x)
        except FloatingPointError as e:
            logger.warning(
                "lbfgs_mult_b_abort",
                extra={
                    "err": str(e),
                    "x_norm": float(np.linalg.norm(x)),
                    "mem_pairs": m,
                },
            )
            raise RuntimeError(
                "Numerical instability detected in LimitedMemoryBFGS.mult_b"
            ) from e

        return result

    def direction(self, g: np.ndarray) -> np.ndarray:
        """
        Return the descent direction  d = −H g  for the unconstrained
        case.
        """
        g = np.asarray(g, dtype=float)
        if g.ndim != 1:
            raise ValueError("Gradient `g` must be a 1-D array")
        return self.mult_b_inv(-g)

    # -----------------------------------------------------------------
    # checkpointing
    # -----------------------------------------------------------------
    def state_dict(self) -> Dict:
        """Fields needed to resume: capacity, bdiag and both sequences."""
        return {
            "m_max": self.m_max,
            "bdiag": self.bdiag,
            "steps": [s.copy() for s in self.S],
            "gradient_differences": [y.copy() for y in self.Y],
        }

    def load_state_dict(self, state: Dict):
        steps = [np.asarray(s, dtype=float).copy() for s in state["steps"]]
        grad_diffs = [np.asarray(y, dtype=float).copy() for y in state["gradient_differences"]]
        m_max = int(state["m_max"])
        if len(steps) != len(grad_diffs):
            raise ValueError("steps and gradient_differences differ in length")
        if m_max < 1 or len(steps) > m_max:
            raise ValueError("stored history does not fit m_max")
        bdiag = float(state["bdiag"])
        if not bdiag > 0.0:
            raise ValueError("bdiag must be strictly positive")
        for s_i, y_i in zip(steps, grad_diffs):
            if s_i.shape != y_i.shape:
                raise ValueError("s and y must have the same shape")
            if not float(y_i.dot(s_i)) > self.update_threshold:
                raise ValueError("stored pair violates the curvature condition")
        self.m_max = m_max
        self.bdiag = bdiag
        self.S = steps
        self.Y = grad_diffs
