"""
Tests for SABR volatility model.
"""

import logging

import pytest
import numpy as np

from ratesvol.exceptions import InvalidInputError
from ratesvol.options.base_models import black_implied_volatility, black_price
from ratesvol.vol.sabr import (
    CUTOFF_MONEYNESS,
    FixedParameters,
    SabrModel,
    SabrModelFitter,
    SabrParameterType,
    SabrParams,
    alpha_from_atm_volatility,
    hagan_black_vol,
    hagan_black_vol_adjoint,
)


class TestSabrParams:
    """Tests for SabrParams dataclass."""

    def test_full_params(self):
        params = SabrParams(alpha=0.03, beta=0.7, rho=-0.2, nu=0.4, shift=0.02)
        assert params.alpha == 0.03
        assert params.shift == 0.02
        np.testing.assert_allclose(params.to_array(), [0.03, 0.7, -0.2, 0.4])

    def test_dict_round_trip(self):
        params = SabrParams(alpha=0.03, beta=0.5, rho=0.1, nu=0.3)
        assert SabrParams.from_dict(params.to_dict()) == params

    @pytest.mark.parametrize("kwargs", [
        dict(alpha=-0.01, beta=0.5, rho=0.0, nu=0.3),
        dict(alpha=0.01, beta=1.5, rho=0.0, nu=0.3),
        dict(alpha=0.01, beta=0.5, rho=-1.2, nu=0.3),
        dict(alpha=0.01, beta=0.5, rho=0.0, nu=-0.1),
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            SabrParams(**kwargs)

    def test_parameter_type_labels(self):
        assert SabrParameterType.ALPHA.label == "Alpha"
        assert SabrParameterType.NU.value == "SabrNu"


class TestHaganFormula:
    """Tests for the Hagan approximation and its adjoint."""

    def test_atm_vol_order(self):
        F, T, alpha, beta = 0.04, 1.0, 0.03, 0.5
        vol = hagan_black_vol(F, F, T, alpha, beta, -0.2, 0.4)
        expected_order = alpha / F ** (1 - beta)
        assert 0.5 * expected_order < vol < 2.0 * expected_order

    def test_lognormal_limit(self):
        # beta = 1 and nu = 0 reduce to a flat Black vol of alpha
        for K in (0.02, 0.04, 0.08):
            assert hagan_black_vol(0.04, K, 1.0, 0.2, 1.0, 0.0, 0.0) == pytest.approx(0.2, rel=1e-12)

    def test_smile_shape(self):
        F, T = 0.04, 1.0
        vols = [hagan_black_vol(F, K, T, 0.03, 0.5, -0.3, 0.5) for K in (0.02, 0.04, 0.06)]
        # Negative rho skews the smile towards low strikes
        assert vols[0] > vols[1]

    def test_continuous_at_the_money(self):
        F, T = 0.04, 2.0
        atm = hagan_black_vol(F, F, T, 0.03, 0.5, -0.2, 0.4)
        near = hagan_black_vol(F, F * (1 + 1e-9), T, 0.03, 0.5, -0.2, 0.4)
        assert near == pytest.approx(atm, rel=1e-7)

    def test_zero_alpha(self):
        assert hagan_black_vol(0.04, 0.05, 1.0, 0.0, 0.5, 0.0, 0.3) == 0.0

    def test_strike_cutoff_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="ratesvol.vol.sabr"):
            floored = hagan_black_vol(0.04, 1e-15, 1.0, 0.03, 0.5, -0.2, 0.4)
        cutoff = hagan_black_vol(0.04, 0.04 * CUTOFF_MONEYNESS, 1.0, 0.03, 0.5, -0.2, 0.4)
        assert floored == cutoff
        assert "less than cutoff" in caplog.text

    def test_invalid_inputs(self):
        with pytest.raises(InvalidInputError):
            hagan_black_vol(-0.01, 0.04, 1.0, 0.03, 0.5, 0.0, 0.3)
        with pytest.raises(InvalidInputError):
            hagan_black_vol(0.04, 0.04, -0.1, 0.03, 0.5, 0.0, 0.3)

    def test_zero_expiry(self):
        # No time correction at expiry: alpha / F^(1-beta) at the money
        assert hagan_black_vol(0.04, 0.04, 0.0, 0.03, 0.5, 0.0, 0.3) == pytest.approx(0.15, rel=1e-12)
        adj = hagan_black_vol_adjoint(0.04, 0.05, 0.0, 0.03, 0.5, -0.2, 0.3)
        assert np.isfinite(adj.value)
        assert np.all(np.isfinite(adj.derivatives))

    @pytest.mark.parametrize("K", [0.025, 0.035, 0.055, 0.07])
    @pytest.mark.parametrize("rho", [-0.4, 0.0, 0.3])
    def test_adjoint_against_finite_difference(self, K, rho):
        args = [0.04, K, 1.5, 0.035, 0.6, rho, 0.45]
        adj = hagan_black_vol_adjoint(*args)
        assert adj.value == pytest.approx(hagan_black_vol(*args), rel=1e-14)

        # Positions of (F, K, alpha, beta, rho, nu) in the argument list
        for d, a in enumerate((0, 1, 3, 4, 5, 6)):
            h = 1e-6 * max(abs(args[a]), 1e-2)
            up = list(args)
            down = list(args)
            up[a] += h
            down[a] -= h
            fd = (hagan_black_vol(*up) - hagan_black_vol(*down)) / (2 * h)
            np.testing.assert_allclose(adj.derivative(d), fd, rtol=1e-5, atol=1e-6)

    def test_rho_near_one(self):
        vol = hagan_black_vol(0.04, 0.05, 1.0, 0.03, 0.5, 1.0 - 1e-7, 0.3)
        assert np.isfinite(vol)
        assert vol > 0


class TestRoundTrip:
    """SABR volatility through Black price and back."""

    @pytest.mark.parametrize("K", [0.01, 0.03, 0.05, 0.09])
    def test_black_round_trip(self, K):
        F, T = 0.035, 2.0
        params = SabrParams(alpha=0.05, beta=0.5, rho=-0.25, nu=0.35, shift=0.01)
        vol = SabrModel().volatility(F, K, T, params)
        price = black_price(F + params.shift, K + params.shift, T, vol)
        implied = black_implied_volatility(price, F + params.shift, K + params.shift, T)
        np.testing.assert_allclose(implied, vol, atol=1e-10)


class TestAtmAlpha:
    """Tests for alpha inversion from an ATM volatility."""

    def test_recovers_alpha(self):
        F, T, beta, rho, nu = 0.05, 1.5, 0.5, -0.2, 0.4
        atm_vol = hagan_black_vol(F, F, T, 0.04, beta, rho, nu)
        alpha, dalpha = alpha_from_atm_volatility(F, T, atm_vol, beta, rho, nu)
        assert alpha == pytest.approx(0.04, rel=1e-10)

        h = 1e-7
        up, _ = alpha_from_atm_volatility(F, T, atm_vol + h, beta, rho, nu)
        down, _ = alpha_from_atm_volatility(F, T, atm_vol - h, beta, rho, nu)
        assert dalpha == pytest.approx((up - down) / (2 * h), rel=1e-5)

    def test_non_positive_vol_rejected(self):
        with pytest.raises(InvalidInputError):
            alpha_from_atm_volatility(0.05, 1.0, 0.0, 0.5, 0.0, 0.3)


class TestSabrModelFitter:
    """Tests for the smile fitter."""

    @pytest.fixture
    def smile(self):
        F, T, beta = 0.05, 1.0, 0.5
        truth = SabrParams(alpha=0.045, beta=beta, rho=-0.3, nu=0.5)
        strikes = F + np.array([-0.02, -0.01, -0.005, 0.0, 0.005, 0.01, 0.02])
        vols = np.array([
            hagan_black_vol(F, K, T, truth.alpha, beta, truth.rho, truth.nu) for K in strikes
        ])
        return F, T, strikes, vols, truth

    def test_recovers_parameters(self, smile):
        F, T, strikes, vols, truth = smile
        fitter = SabrModelFitter(F, strikes, T, vols, np.full(len(vols), 1e-4))
        result = fitter.solve(np.array([0.03, 0.5, 0.0, 0.3]), FixedParameters.beta_fixed())
        alpha, beta, rho, nu = result.parameters
        assert beta == 0.5
        np.testing.assert_allclose([alpha, rho, nu], [truth.alpha, truth.rho, truth.nu], atol=1e-6)
        assert result.chi_sq < 1e-10
        assert result.inverse_jacobian.shape == (4, len(strikes))
        np.testing.assert_allclose(result.inverse_jacobian[1], 0.0)

    def test_model_jacobian_shape(self, smile):
        F, T, strikes, vols, _ = smile
        fitter = SabrModelFitter(F, strikes, T, vols, np.full(len(vols), 1e-4))
        jac = fitter.model_jacobian(np.array([0.04, 0.5, -0.2, 0.4]))
        assert jac.shape == (len(strikes), 4)

    def test_mismatched_lengths(self):
        with pytest.raises(InvalidInputError):
            SabrModelFitter(0.05, [0.04, 0.05], 1.0, [0.2], [1e-4, 1e-4])

    def test_fixed_mask(self):
        np.testing.assert_array_equal(FixedParameters.beta_fixed().as_mask(), [False, True, False, False])
