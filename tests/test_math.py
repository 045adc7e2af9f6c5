"""
Tests for the root finder and least-squares fitter.
"""

import pytest
import numpy as np

from ratesvol.config import FitterConfig, RootFinderConfig
from ratesvol.exceptions import FitFailureError, RootFindingError
from ratesvol.math import (
    DoubleBoundTransform,
    IdentityTransform,
    LowerBoundTransform,
    NonLinearLeastSquare,
    ValueDerivatives,
    newton_with_bisect,
)


class TestValueDerivatives:
    """Tests for the value/derivatives container."""

    def test_derivative_by_position(self):
        vd = ValueDerivatives(1.5, [0.1, 0.2, 0.3])
        assert vd.value == 1.5
        assert vd.derivative(1) == pytest.approx(0.2)
        assert len(vd.derivatives) == 3

    def test_derivatives_read_only(self):
        vd = ValueDerivatives(1.0, [1.0, 2.0])
        with pytest.raises(ValueError):
            vd.derivatives[0] = 5.0


class TestNewtonWithBisect:
    """Tests for the Newton root finder."""

    def test_square_root(self):
        result = newton_with_bisect(lambda x: (x * x - 2.0, 2.0 * x), 1.0)
        assert result.converged
        assert result.method == "newton"
        assert result.root == pytest.approx(np.sqrt(2.0), rel=1e-12)

    def test_zero_derivative_falls_back(self):
        # Derivative reported as zero forces the bracketing fallback
        result = newton_with_bisect(lambda x: (x - 3.0, 0.0), 1.0)
        assert result.method == "brent"
        assert result.root == pytest.approx(3.0, rel=1e-10)

    def test_non_finite_falls_back(self):
        result = newton_with_bisect(lambda x: (np.log(x) - 1.0, np.nan), 2.0)
        assert result.method == "brent"
        assert result.root == pytest.approx(np.e, rel=1e-10)

    def test_stays_in_domain(self):
        # Newton from 5 overshoots below zero; damping keeps iterates positive
        result = newton_with_bisect(lambda x: (np.exp(x) - 1.001, np.exp(x)), 5.0)
        assert result.root == pytest.approx(np.log(1.001), rel=1e-9)

    def test_no_root_raises(self):
        config = RootFinderConfig(max_iter=5, max_bracket_steps=10)
        with pytest.raises(RootFindingError):
            newton_with_bisect(lambda x: (x * x + 1.0, 0.0), 1.0, config=config)

    def test_guess_outside_domain(self):
        with pytest.raises(ValueError):
            newton_with_bisect(lambda x: (x - 1.0, 1.0), -1.0)

    def test_explicit_bracket(self):
        result = newton_with_bisect(
            lambda x: (np.cos(x), 0.0), 1.0, bracket=(1.0, 2.0)
        )
        assert result.root == pytest.approx(np.pi / 2, rel=1e-10)


class TestTransforms:
    """Tests for parameter transforms."""

    @pytest.mark.parametrize("transform, x", [
        (IdentityTransform(), -0.3),
        (LowerBoundTransform(0.0), 0.04),
        (DoubleBoundTransform(-1.0, 1.0), -0.6),
    ])
    def test_inverse(self, transform, x):
        assert transform.to_model(transform.to_fitting(x)) == pytest.approx(x, rel=1e-12)

    def test_gradient(self):
        t = DoubleBoundTransform(-1.0, 1.0)
        y, h = 0.3, 1e-6
        fd = (t.to_model(y + h) - t.to_model(y - h)) / (2 * h)
        assert t.model_gradient(y) == pytest.approx(fd, rel=1e-8)

    def test_out_of_bounds(self):
        with pytest.raises(ValueError):
            LowerBoundTransform(0.0).to_fitting(-1.0)
        with pytest.raises(ValueError):
            DoubleBoundTransform(-1.0, 1.0).to_fitting(1.0)


class TestNonLinearLeastSquare:
    """Tests for the least-squares fitter."""

    @pytest.fixture
    def exponential(self):
        t = np.linspace(0.0, 2.0, 8)

        def model(x):
            return x[0] * np.exp(-x[1] * t) + x[2]

        def jacobian(x):
            e = np.exp(-x[1] * t)
            return np.column_stack([e, -x[0] * t * e, np.ones_like(t)])

        return t, model, jacobian

    def test_exact_fit(self, exponential):
        _, model, jacobian = exponential
        truth = np.array([2.0, 1.3, 0.5])
        observed = model(truth)
        solver = NonLinearLeastSquare()
        result = solver.solve(
            observed, np.full(len(observed), 1e-3), model, jacobian,
            np.array([1.0, 1.0, 0.0]), np.zeros(3, dtype=bool)
        )
        np.testing.assert_allclose(result.parameters, truth, rtol=1e-8)
        assert result.chi_sq < 1e-12

    def test_fixed_parameter_kept(self, exponential):
        _, model, jacobian = exponential
        observed = model(np.array([2.0, 1.3, 0.5]))
        fixed = np.array([False, False, True])
        result = NonLinearLeastSquare().solve(
            observed, np.full(len(observed), 1e-3), model, jacobian,
            np.array([1.0, 1.0, 0.5]), fixed
        )
        assert result.parameters[2] == 0.5
        np.testing.assert_allclose(result.inverse_jacobian[2], 0.0)
        np.testing.assert_allclose(result.parameters[:2], [2.0, 1.3], rtol=1e-8)

    def test_inverse_jacobian_matches_refit(self, exponential):
        _, model, jacobian = exponential
        truth = np.array([2.0, 1.3, 0.5])
        observed = model(truth)
        sigma = np.full(len(observed), 1e-3)
        solver = NonLinearLeastSquare()
        start = np.array([1.0, 1.0, 0.0])
        fixed = np.zeros(3, dtype=bool)
        base = solver.solve(observed, sigma, model, jacobian, start, fixed)

        eps = 1e-6
        bumped = observed.copy()
        bumped[3] += eps
        refit = solver.solve(bumped, sigma, model, jacobian, start, fixed)
        fd = (refit.parameters - base.parameters) / eps
        np.testing.assert_allclose(base.inverse_jacobian[:, 3], fd, rtol=1e-4, atol=1e-6)

    def test_all_fixed_rejected(self, exponential):
        _, model, jacobian = exponential
        with pytest.raises(ValueError):
            NonLinearLeastSquare().solve(
                np.ones(8), np.ones(8), model, jacobian, np.ones(3), np.ones(3, dtype=bool)
            )

    def test_invalid_start_is_fit_failure(self, exponential):
        _, model, jacobian = exponential
        transforms = [LowerBoundTransform(0.0), IdentityTransform(), IdentityTransform()]
        with pytest.raises(FitFailureError):
            NonLinearLeastSquare().solve(
                np.ones(8), np.ones(8), model, jacobian,
                np.array([-1.0, 1.0, 0.0]), np.zeros(3, dtype=bool), transforms
            )

    def test_iteration_cap_is_fit_failure(self, exponential):
        _, model, jacobian = exponential
        observed = model(np.array([2.0, 1.3, 0.5]))
        solver = NonLinearLeastSquare(FitterConfig(max_iter=1))
        with pytest.raises(FitFailureError):
            solver.solve(
                observed, np.full(8, 1e-3), model, jacobian,
                np.array([1.0, 1.0, 0.0]), np.zeros(3, dtype=bool)
            )
