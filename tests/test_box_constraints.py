import numpy as np
import pytest

from quasi_newton import LimitedMemoryBFGS, box_constrained_direction, max_step_length, split_active
from quasi_newton.box_constraints import BOUND_EPS


def _filled_lbfgs(rng, n, m):
    Q = rng.standard_normal((n, n))
    M = Q @ Q.T + np.eye(n)
    lbfgs = LimitedMemoryBFGS(m_max=max(m, 1))
    for _ in range(m):
        s = rng.standard_normal(n)
        lbfgs.add_pair(s, M @ s)
    return lbfgs


class TestSplitActive:

    def test_blocked_at_upper_bound(self):
        x = np.array([1.0, 0.0])
        p0 = np.array([1.0, 1.0])
        active = split_active(x, p0, np.array([-5.0, -5.0]), np.array([1.0, 5.0]))
        np.testing.assert_array_equal(active, [False, True])

    def test_blocked_at_lower_bound(self):
        x = np.array([-2.0, -2.0 + 1e-14])
        p0 = np.array([-1.0, -1.0])
        active = split_active(x, p0, np.array([-2.0, -2.0]), np.array([2.0, 2.0]))
        np.testing.assert_array_equal(active, [False, False])

    def test_moving_away_from_bound_is_active(self):
        x = np.array([-2.0, 2.0])
        p0 = np.array([1.0, -1.0])
        active = split_active(x, p0, np.array([-2.0, -2.0]), np.array([2.0, 2.0]))
        np.testing.assert_array_equal(active, [True, True])


class TestMaxStepLength:

    def test_full_step_fits(self):
        alpha = max_step_length(np.zeros(2), np.array([0.5, -0.5]),
                                -np.ones(2), np.ones(2), np.array([True, True]))
        assert alpha == 1.0

    def test_clipped_by_nearest_bound(self):
        alpha = max_step_length(np.zeros(2), np.array([4.0, -2.0]),
                                -np.ones(2), np.ones(2), np.array([True, True]))
        assert alpha == pytest.approx(0.25)

    def test_inactive_coordinates_are_ignored(self):
        alpha = max_step_length(np.zeros(2), np.array([4.0, -0.5]),
                                -np.ones(2), np.ones(2), np.array([False, True]))
        assert alpha == 1.0

    def test_point_on_bound_moving_out(self):
        alpha = max_step_length(np.array([1.0]), np.array([1.0]),
                                np.array([-1.0]), np.array([1.0]), np.array([True]))
        assert alpha == 0.0

    def test_infinite_bounds(self):
        alpha = max_step_length(np.zeros(2), np.array([1e6, -1e6]),
                                np.full(2, -np.inf), np.full(2, np.inf), np.array([True, True]))
        assert alpha == 1.0


class TestBoxConstrainedDirection:

    def test_infinite_box_equals_unconstrained(self):
        rng = np.random.default_rng(1)
        lbfgs = _filled_lbfgs(rng, 6, 4)
        x = rng.standard_normal(6)
        g = rng.standard_normal(6)
        d = box_constrained_direction(lbfgs, x, g, np.full(6, -np.inf), np.full(6, np.inf))
        np.testing.assert_array_equal(d, lbfgs.direction(g))

    def test_feasible_step_is_returned_unchanged(self):
        lbfgs = LimitedMemoryBFGS()
        d = box_constrained_direction(lbfgs, np.zeros(2), np.array([0.1, -0.2]),
                                      -np.ones(2), np.ones(2))
        np.testing.assert_allclose(d, [-0.1, 0.2])

    def test_blocked_coordinate_does_not_move(self):
        rng = np.random.default_rng(2)
        lbfgs = _filled_lbfgs(rng, 2, 2)
        x = np.array([1.0, 0.0])
        g = np.array([-1.0, 1.0])
        d = box_constrained_direction(lbfgs, x, g, np.array([-5.0, -5.0]), np.array([1.0, 5.0]))
        assert d[0] == 0.0

    def test_clipped_cauchy_step(self):
        # B = I, step = p0 = [0.5, 0] is too long; Cauchy point [2, 0] even more so
        lbfgs = LimitedMemoryBFGS()
        d = box_constrained_direction(lbfgs, np.zeros(2), np.array([-0.5, 0.0]),
                                      -np.ones(2), np.array([0.3, 1.0]))
        np.testing.assert_allclose(d, [0.3, 0.0])

    def test_dogleg_step(self):
        # Cauchy point [0.25, 0] is feasible, then walk towards [4, 0] up to the bound
        lbfgs = LimitedMemoryBFGS()
        d = box_constrained_direction(lbfgs, np.zeros(2), np.array([-4.0, 0.0]),
                                      -np.ones(2), np.ones(2))
        np.testing.assert_allclose(d, [1.0, 0.0])

    def test_fully_blocked_point(self):
        lbfgs = LimitedMemoryBFGS()
        x = np.array([1.0, -1.0])
        d = box_constrained_direction(lbfgs, x, np.array([-1.0, 1.0]), -np.ones(2), np.ones(2))
        np.testing.assert_array_equal(d, [0.0, 0.0])

    def test_gradient_must_be_1d(self):
        with pytest.raises(ValueError):
            box_constrained_direction(LimitedMemoryBFGS(), np.zeros(2), np.ones((2, 1)),
                                      -np.ones(2), np.ones(2))

    @pytest.mark.parametrize("seed", range(5))
    def test_result_stays_in_box(self, seed):
        rng = np.random.default_rng(seed)
        n = 5
        for _ in range(50):
            lbfgs = _filled_lbfgs(rng, n, int(rng.integers(0, 4)))
            lower = rng.uniform(-2.0, 0.0, n)
            upper = lower + rng.uniform(0.01, 2.0, n)
            x = rng.uniform(lower, upper)
            # put a few coordinates exactly on a bound
            on_lower = rng.random(n) < 0.2
            on_upper = rng.random(n) < 0.2
            x[on_lower] = lower[on_lower]
            x[on_upper] = upper[on_upper]
            g = 10.0 * rng.standard_normal(n)

            d = box_constrained_direction(lbfgs, x, g, lower, upper)

            assert np.all(x + d >= lower - BOUND_EPS)
            assert np.all(x + d <= upper + BOUND_EPS)
