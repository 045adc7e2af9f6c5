"""
Tests for Black and Bachelier option formulas.
"""

import pytest
import numpy as np

from ratesvol.exceptions import InvalidInputError
from ratesvol.options.base_models import (
    FORWARD,
    STRIKE,
    EXPIRY,
    VOLATILITY,
    bachelier_call,
    bachelier_put,
    bachelier_greeks,
    black76_call,
    black76_put,
    black76_greeks,
    black_gamma,
    black_implied_volatility,
    black_implied_volatility_adjoint,
    black_price,
    black_price_adjoint,
    normal_gamma,
    normal_implied_volatility,
    normal_implied_volatility_adjoint,
    normal_price,
    normal_price_adjoint,
    shifted_black_call,
)


def central_difference(f, args, index, h):
    up = list(args)
    down = list(args)
    up[index] += h
    down[index] -= h
    return (f(*up) - f(*down)) / (2 * h)


class TestBlackAdjoint:
    """Tests for Black price derivatives."""

    @pytest.mark.parametrize("K", [0.03, 0.04, 0.055])
    @pytest.mark.parametrize("is_call", [True, False])
    def test_against_finite_difference(self, K, is_call):
        F, T, vol = 0.04, 1.5, 0.25
        adj = black_price_adjoint(F, K, T, vol, is_call)

        def price(f, k, t, v):
            return black_price(f, k, t, v, is_call)

        args = (F, K, T, vol)
        for index, h in ((FORWARD, 1e-7), (STRIKE, 1e-7), (EXPIRY, 1e-6), (VOLATILITY, 1e-6)):
            fd = central_difference(price, args, index, h)
            np.testing.assert_allclose(adj.derivative(index), fd, rtol=1e-5, atol=1e-9)

    def test_value_matches_price(self):
        adj = black_price_adjoint(0.04, 0.045, 2.0, 0.3, True)
        assert adj.value == pytest.approx(black_price(0.04, 0.045, 2.0, 0.3, True))

    def test_zero_vol_is_intrinsic(self):
        adj = black_price_adjoint(0.05, 0.04, 1.0, 0.0, True)
        assert adj.value == pytest.approx(0.01)
        np.testing.assert_allclose(adj.derivatives, [1.0, -1.0, 0.0, 0.0])

    def test_expired_is_intrinsic(self):
        adj = black_price_adjoint(0.05, 0.04, 0.0, 0.2, False)
        assert adj.value == 0.0
        np.testing.assert_allclose(adj.derivatives, [0.0, 0.0, 0.0, 0.0])

    def test_negative_vol_rejected(self):
        with pytest.raises(InvalidInputError):
            black_price(0.04, 0.04, 1.0, -0.1)

    def test_gamma_against_delta(self):
        F, K, T, vol = 0.04, 0.042, 1.0, 0.2
        h = 1e-6
        fd = (black_price_adjoint(F + h, K, T, vol).derivative(FORWARD)
              - black_price_adjoint(F - h, K, T, vol).derivative(FORWARD)) / (2 * h)
        assert black_gamma(F, K, T, vol) == pytest.approx(fd, rel=1e-5)


class TestNormalAdjoint:
    """Tests for Bachelier price derivatives."""

    @pytest.mark.parametrize("K", [-0.005, 0.01, 0.02])
    @pytest.mark.parametrize("is_call", [True, False])
    def test_against_finite_difference(self, K, is_call):
        F, T, vol = 0.01, 2.0, 0.008
        adj = normal_price_adjoint(F, K, T, vol, is_call)

        def price(f, k, t, v):
            return normal_price(f, k, t, v, is_call)

        args = (F, K, T, vol)
        for index, h in ((FORWARD, 1e-7), (STRIKE, 1e-7), (EXPIRY, 1e-6), (VOLATILITY, 1e-7)):
            fd = central_difference(price, args, index, h)
            np.testing.assert_allclose(adj.derivative(index), fd, rtol=1e-5, atol=1e-9)

    def test_zero_vol_is_intrinsic(self):
        adj = normal_price_adjoint(-0.01, 0.0, 1.0, 0.0, False)
        assert adj.value == pytest.approx(0.01)
        np.testing.assert_allclose(adj.derivatives, [-1.0, 1.0, 0.0, 0.0])

    def test_gamma_positive(self):
        assert normal_gamma(0.01, 0.01, 1.0, 0.005) > 0
        assert normal_gamma(0.01, 0.01, 0.0, 0.005) == 0.0


class TestImpliedVolatility:
    """Tests for implied volatility inversion."""

    @pytest.mark.parametrize("K", [0.02, 0.04, 0.07])
    @pytest.mark.parametrize("is_call", [True, False])
    def test_black_round_trip(self, K, is_call):
        F, T, vol = 0.04, 1.0, 0.3
        price = black_price(F, K, T, vol, is_call)
        implied = black_implied_volatility(price, F, K, T, is_call)
        np.testing.assert_allclose(implied, vol, rtol=1e-10)

    @pytest.mark.parametrize("K", [-0.01, 0.005, 0.03])
    def test_normal_round_trip(self, K):
        F, T, vol = 0.01, 3.0, 0.007
        price = normal_price(F, K, T, vol, True)
        implied = normal_implied_volatility(price, F, K, T, True)
        np.testing.assert_allclose(implied, vol, rtol=1e-10)

    def test_black_adjoint_is_inverse_vega(self):
        F, K, T, vol = 0.04, 0.045, 2.0, 0.22
        price = black_price(F, K, T, vol)
        adj = black_implied_volatility_adjoint(price, F, K, T)
        h = 1e-9
        fd = (black_implied_volatility(price + h, F, K, T)
              - black_implied_volatility(price - h, F, K, T)) / (2 * h)
        assert adj.value == pytest.approx(vol, rel=1e-10)
        assert adj.derivative(0) == pytest.approx(fd, rel=1e-5)

    def test_normal_adjoint_is_inverse_vega(self):
        F, K, T, vol = 0.01, 0.012, 1.0, 0.006
        price = normal_price(F, K, T, vol)
        adj = normal_implied_volatility_adjoint(price, F, K, T)
        vega = normal_price_adjoint(F, K, T, vol).derivative(VOLATILITY)
        assert adj.derivative(0) == pytest.approx(1.0 / vega, rel=1e-8)

    def test_price_at_intrinsic_gives_zero_vol(self):
        assert black_implied_volatility(0.01, 0.05, 0.04, 1.0, True) == 0.0
        assert normal_implied_volatility(0.0, 0.01, 0.02, 1.0, True) == 0.0

    def test_price_below_intrinsic_rejected(self):
        with pytest.raises(InvalidInputError):
            black_implied_volatility(0.005, 0.05, 0.04, 1.0, True)

    def test_price_above_bound_rejected(self):
        with pytest.raises(InvalidInputError):
            black_implied_volatility(0.06, 0.05, 0.04, 1.0, True)

    def test_expired_rejected(self):
        with pytest.raises(InvalidInputError):
            black_implied_volatility(0.01, 0.05, 0.04, 0.0, True)


class TestDiscountedWrappers:
    """Tests for discount-factor scaled prices and Greeks."""

    def test_bachelier_put_call_parity(self):
        F, K, T, vol, df = 0.04, 0.035, 1.0, 0.005, 0.96
        call = bachelier_call(F, K, T, vol, df)
        put = bachelier_put(F, K, T, vol, df)
        np.testing.assert_allclose(call - put, df * (F - K), rtol=1e-12)

    def test_black76_put_call_parity(self):
        F, K, T, vol, df = 0.04, 0.035, 1.0, 0.20, 0.96
        call = black76_call(F, K, T, vol, df)
        put = black76_put(F, K, T, vol, df)
        np.testing.assert_allclose(call - put, df * (F - K), rtol=1e-12)

    def test_atm_greeks(self):
        df = 0.96
        greeks = black76_greeks(0.04, 0.04, 1.0, 0.20, df)
        np.testing.assert_allclose(greeks["delta"], 0.5 * df, rtol=0.1)
        assert greeks["gamma"] > 0
        assert greeks["vega"] > 0
        assert greeks["theta"] < 0

        normal = bachelier_greeks(0.04, 0.04, 1.0, 0.005, df)
        np.testing.assert_allclose(normal["delta"], 0.5 * df, rtol=1e-12)

    def test_black76_negative_rates_fail(self):
        with pytest.raises(ValueError):
            black76_call(-0.01, -0.01, 1.0, 0.20, 0.96)

    def test_shifted_black_handles_negative_rates(self):
        price = shifted_black_call(-0.01, -0.01, 1.0, 0.20, 0.03, 0.96)
        assert price > 0
        assert price == pytest.approx(black76_call(0.02, 0.02, 1.0, 0.20, 0.96))
