# simulation.py
import itertools
import logging
import os

import numpy as np
import scipy.optimize as so
import scipy.stats as st

from quasi_newton import BoxConstraintHandler, LBFGSSearchDirection, ObjectiveFunction

logger = logging.getLogger("simulation")

# ---------------------------------------------------------------------
# synthetic‐data helper
def generate_synthetic_data(n_samples=200, n_features=10, noise=0.5, rng=None):
    rng = np.random.default_rng() if rng is None else rng
    X = rng.random((n_samples, n_features))
    true_w = rng.standard_normal(n_features)
    y = X @ true_w + rng.normal(0, noise, size=n_samples)
    return X, y, true_w


def make_ridge_objective(X, y, alpha, lower=None, upper=None):
    """½‖Xw − y‖² + ½α‖w‖², optionally restricted to lower ≤ w ≤ upper."""
    def fun(w):
        r = X @ w - y
        return 0.5 * r.dot(r) + 0.5 * alpha * w.dot(w)

    def grad(w):
        return X.T @ (X @ w - y) + alpha * w

    handler = None
    if lower is not None or upper is not None:
        n = X.shape[1]
        lower = np.full(n, -np.inf) if lower is None else lower
        upper = np.full(n, np.inf) if upper is None else upper
        handler = BoxConstraintHandler(lower, upper)
    return ObjectiveFunction(fun, grad, handler)


# ---------------------------------------------------------------------
def minimize(objective, x0, *, m_max=10, max_iter=200, gtol=1e-8,
             armijo_c=1e-4, backtrack=0.5, max_backtracks=40):
    """
    Plain outer loop around LBFGSSearchDirection: one direction per
    iteration, Armijo backtracking on the step length in (0, 1].

    Returns (x, f, n_iter, history_of_f).
    """
    engine = LBFGSSearchDirection(m_max=m_max)

    x = np.asarray(x0, dtype=float).copy()
    if objective.is_constrained():
        x = objective.get_constraint_handler().project(x)
    f = objective.eval(x)
    g = objective.derivative(x)
    last_x, last_g = x.copy(), g.copy()
    f_hist = [f]

    n_iter = 0
    for n_iter in range(1, max_iter + 1):
        d = engine.compute_direction(g, last_g, x, last_x, objective)
        slope = float(g.dot(d))
        if np.linalg.norm(d) <= gtol or slope >= 0.0:
            break

        t = 1.0
        for _ in range(max_backtracks):
            x_new = x + t * d
            f_new = objective.eval(x_new)
            if f_new <= f + armijo_c * t * slope:
                break
            t *= backtrack
        else:
            logger.info("line_search_failed", extra={"iteration": n_iter, "f": f})
            break

        last_x, last_g = x, g
        x, f = x_new, f_new
        g = objective.derivative(x)
        f_hist.append(f)

    logger.info(
        "minimize_complete",
        extra={"iterations": n_iter, "f": f, "mem_pairs": len(engine.lbfgs)},
    )
    return x, f, n_iter, f_hist


# ---------------------------------------------------------------------
def run_single_simulation(seed: int, *, N_SAMPLES: int, N_FEATURES: int, ALPHA: float,
                          M_MAX: int, BOX: float):
    """
    ▸ 1) draw a ridge problem with the box  −BOX ≤ w ≤ BOX
    ▸ 2) solve it with LBFGSSearchDirection inside a simple line search
    ▸ 3) compare w to SciPy's L-BFGS-B solution of the same problem
    """
    rng = np.random.default_rng(seed)
    logger.info(
        "simulation_run_start",
        extra={
            "seed": seed,
            "N_SAMPLES": N_SAMPLES,
            "N_FEATURES": N_FEATURES,
            "ALPHA": ALPHA,
            "M_MAX": M_MAX,
            "BOX": BOX,
        },
    )

    # ------------ generate data ------------
    X, y, _ = generate_synthetic_data(
        n_samples  = N_SAMPLES,
        n_features = N_FEATURES,
        noise      = 0.5,
        rng        = rng,
    )
    lower = np.full(N_FEATURES, -BOX)
    upper = np.full(N_FEATURES, BOX)
    objective = make_ridge_objective(X, y, ALPHA, lower, upper)

    # ------------ solve ------------
    x0 = rng.uniform(-BOX, BOX, size=N_FEATURES)
    w, f, n_iter, _ = minimize(objective, x0, m_max=M_MAX, max_iter=500)

    # ------------ SciPy L-BFGS-B baseline ------------
    ref = so.minimize(
        objective.eval, x0, jac=objective.derivative, method="L-BFGS-B",
        bounds=list(zip(lower, upper)), options={"ftol": 1e-14, "gtol": 1e-10},
    )
    w_star = ref.x

    # ------------ metric ------------
    error = np.linalg.norm(w - w_star)
    norm  = np.linalg.norm(w_star)
    rel_error = (error / norm) * 100 if norm != 0 else 0.0
    logger.info(
        "simulation_run_complete",
        extra={
            "relative_error": rel_error,
            "iterations": n_iter,
            "f": f,
            "f_ref": float(ref.fun),
        },
    )
    return rel_error


# ---------------------------------------------------------------------
# Hyper‑parameter grid definition
PARAM_GRID = {
    "M_MAX": [1, 3, 5, 10],
    "BOX":   [0.1, 0.5, 1.0, 10.0],
}


if __name__ == "__main__":
    from event_logging import init_logging

    log_dir = init_logging()
    logger.info("simulation_start", extra={"log_dir": str(log_dir)})

    N_SIMULATIONS = 50

    # Fixed parameters
    N_SAMPLES  = 200
    N_FEATURES = 10
    ALPHA      = 0.1

    for M_MAX, BOX in itertools.product(PARAM_GRID["M_MAX"], PARAM_GRID["BOX"]):
        config_name = f"m_{M_MAX}_box_{BOX}"
        logger.info("grid_search_config_start", extra={"config": config_name})
        errors = [
            run_single_simulation(
                seed=i,
                N_SAMPLES=N_SAMPLES,
                N_FEATURES=N_FEATURES,
                ALPHA=ALPHA,
                M_MAX=M_MAX,
                BOX=BOX,
            )
            for i in range(N_SIMULATIONS)
        ]

        mean_error = np.mean(errors)
        ci_low, ci_high = st.t.interval(
            confidence=0.95,
            df=len(errors) - 1,
            loc=mean_error,
            scale=st.sem(errors),
        )

        print("\n--- Simulation Analysis ---")
        print(f"Config: {config_name}")
        print(f"Ran {len(errors)} simulations.")
        print(f"Average relative error vs. L-BFGS-B: {mean_error:.4f}%")
        print(f"95% CI: [{ci_low:.4f}%, {ci_high:.4f}%]")

        logger.info(
            "grid_search_config_complete",
            extra={
                "config": config_name,
                "mean_error": mean_error,
                "ci_low": ci_low,
                "ci_high": ci_high,
            },
        )

        # ---------------- save artefacts ----------------
        results_dir = os.path.join(log_dir, "results", config_name)
        os.makedirs(results_dir, exist_ok=True)

        np.save(os.path.join(results_dir, "errors.npy"), np.array(errors))

        with open(os.path.join(results_dir, "summary.txt"), "w") as f:
            f.write(f"--- LBFGSSearchDirection box-ridge simulation ({config_name}) ---\n")
            f.write(f"Simulations: {len(errors)}\n")
            f.write(f"Mean relative error: {mean_error:.4f}%\n")
            f.write(f"95% CI: [{ci_low:.4f}%, {ci_high:.4f}%]\n")
