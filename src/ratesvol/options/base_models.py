"""
Base option pricing models.

Implements:
- Black'76 (lognormal) model, shifted Black via shifted inputs
- Bachelier (normal) model
- Price adjoints with derivatives w.r.t. (forward, strike, expiry, volatility)
- Implied volatility inversion for both models, with d(vol)/d(price)

All functions are undiscounted: prices are in forward terms, and callers
multiply by the discount factor or annuity. When the volatility is zero
or the option has expired the intrinsic value is returned without
evaluating the transcendental formula.
"""

from typing import Dict, Optional
import numpy as np
from scipy.stats import norm

from ..config import RootFinderConfig
from ..exceptions import InvalidInputError
from ..math.derivatives import ValueDerivatives
from ..math.rootfinding import newton_with_bisect


# Standard normal CDF and PDF
N = norm.cdf
n = norm.pdf

# Below this sigma*sqrt(T) the option is treated as intrinsic
SMALL = 1e-13

# Derivative positions in price adjoints
FORWARD, STRIKE, EXPIRY, VOLATILITY = 0, 1, 2, 3


def _omega(is_call: bool) -> float:
    return 1.0 if is_call else -1.0


def _intrinsic_adjoint(F: float, K: float, is_call: bool) -> ValueDerivatives:
    omega = _omega(is_call)
    intrinsic = max(omega * (F - K), 0.0)
    itm = 1.0 if intrinsic > 0 else 0.0
    return ValueDerivatives(intrinsic, [omega * itm, -omega * itm, 0.0, 0.0])


# ---------------------------------------------------------------------------
# Black (lognormal)
# ---------------------------------------------------------------------------

def _black_d1_d2(F: float, K: float, sigma_root_t: float):
    d1 = np.log(F / K) / sigma_root_t + 0.5 * sigma_root_t
    return d1, d1 - sigma_root_t


def black_price(F: float, K: float, T: float, vol: float, is_call: bool = True) -> float:
    """
    Undiscounted Black'76 option price.

    Args:
        F: Forward (shifted forward for shifted Black)
        K: Strike (shifted strike for shifted Black)
        T: Time to expiry (years)
        vol: Black (lognormal) volatility
        is_call: True for call, False for put

    Returns:
        Option price in forward terms
    """
    return black_price_adjoint(F, K, T, vol, is_call).value


def black_price_adjoint(
    F: float,
    K: float,
    T: float,
    vol: float,
    is_call: bool = True
) -> ValueDerivatives:
    """
    Black'76 price and its derivatives.

    Returns:
        ValueDerivatives with derivatives ordered (forward, strike, expiry, volatility)
    """
    if vol < 0:
        raise InvalidInputError(f"Volatility must be non-negative, got {vol}")
    if T <= 0 or vol * np.sqrt(T) < SMALL:
        return _intrinsic_adjoint(F, K, is_call)
    if F <= 0 or K <= 0:
        raise InvalidInputError(f"Forward ({F}) and strike ({K}) must be positive for Black model")

    omega = _omega(is_call)
    sqrt_t = np.sqrt(T)
    d1, d2 = _black_d1_d2(F, K, vol * sqrt_t)
    n_d1 = n(d1)

    price = omega * (F * N(omega * d1) - K * N(omega * d2))
    return ValueDerivatives(
        float(price),
        [
            omega * N(omega * d1),
            -omega * N(omega * d2),
            F * n_d1 * vol / (2 * sqrt_t),
            F * n_d1 * sqrt_t,
        ],
    )


def black_delta(F: float, K: float, T: float, vol: float, is_call: bool = True) -> float:
    """Forward delta dPrice/dF."""
    return black_price_adjoint(F, K, T, vol, is_call).derivative(FORWARD)


def black_vega(F: float, K: float, T: float, vol: float) -> float:
    """dPrice/dVol (same for calls and puts)."""
    return black_price_adjoint(F, K, T, vol, True).derivative(VOLATILITY)


def black_gamma(F: float, K: float, T: float, vol: float) -> float:
    """d2Price/dF2 (same for calls and puts)."""
    sigma_root_t = vol * np.sqrt(max(T, 0.0))
    if sigma_root_t < SMALL:
        return 0.0
    d1, _ = _black_d1_d2(F, K, sigma_root_t)
    return float(n(d1) / (F * sigma_root_t))


def black_driftless_theta(F: float, K: float, T: float, vol: float) -> float:
    """Driftless theta, -dPrice/dT (same for calls and puts)."""
    return -black_price_adjoint(F, K, T, vol, True).derivative(EXPIRY)


def _otm_time_value(price: float, F: float, K: float, is_call: bool) -> float:
    omega = _omega(is_call)
    intrinsic = max(omega * (F - K), 0.0)
    tolerance = 1e-15 * max(abs(F), abs(K), 1.0)
    if price < intrinsic - tolerance:
        raise InvalidInputError(f"Price {price} is below intrinsic value {intrinsic}")
    return max(price - intrinsic, 0.0)


def black_implied_volatility(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    config: Optional[RootFinderConfig] = None
) -> float:
    """
    Black implied volatility from an undiscounted price.

    The price is reduced to the time value of the out-of-the-money option
    (put-call parity), which is then inverted with Newton on vega and a
    Brent fallback.

    Args:
        price: Undiscounted option price
        F: Forward (shifted for shifted Black)
        K: Strike (shifted for shifted Black)
        T: Time to expiry
        is_call: True for call, False for put
        config: Root finder settings

    Returns:
        Implied Black volatility (0 when the price equals intrinsic)

    Raises:
        InvalidInputError: If the price lies outside the no-arbitrage bounds
    """
    if T <= 0:
        raise InvalidInputError("Cannot compute implied vol for expired option")
    if F <= 0 or K <= 0:
        raise InvalidInputError(f"Forward ({F}) and strike ({K}) must be positive")

    time_value = _otm_time_value(price, F, K, is_call)
    if time_value <= 1e-16 * min(F, K):
        return 0.0
    otm_call = K >= F
    upper_bound = F if otm_call else K
    if time_value >= upper_bound:
        raise InvalidInputError(f"Price {price} exceeds the Black upper bound")

    sqrt_t = np.sqrt(T)
    if abs(F - K) < 1e-3 * F:
        # Inverts F * (2N(v/2) - 1) = p, exact at the money
        guess = 2.0 * norm.ppf(0.5 * (time_value / F + 1.0)) / sqrt_t
    else:
        guess = np.sqrt(2 * np.pi / T) * time_value / np.sqrt(F * K)
    guess = float(max(guess, 1e-4))

    def objective(v: float):
        adj = black_price_adjoint(F, K, T, v, otm_call)
        return adj.value - time_value, adj.derivative(VOLATILITY)

    return newton_with_bisect(objective, guess, lower=0.0, config=config).root


def black_implied_volatility_adjoint(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    config: Optional[RootFinderConfig] = None
) -> ValueDerivatives:
    """
    Black implied volatility and its derivative w.r.t. the price.

    Returns:
        ValueDerivatives(vol, [dvol/dprice]); the derivative is 1/vega, and
        zero when the implied volatility is zero.
    """
    vol = black_implied_volatility(price, F, K, T, is_call, config)
    vega = black_vega(F, K, T, vol)
    return ValueDerivatives(vol, [1.0 / vega if vega > 0 else 0.0])


# ---------------------------------------------------------------------------
# Bachelier (normal)
# ---------------------------------------------------------------------------

def normal_price(F: float, K: float, T: float, vol: float, is_call: bool = True) -> float:
    """
    Undiscounted Bachelier option price.

    Args:
        F: Forward rate (may be negative)
        K: Strike (may be negative)
        T: Time to expiry
        vol: Normal volatility
        is_call: True for call, False for put

    Returns:
        Option price in forward terms
    """
    return normal_price_adjoint(F, K, T, vol, is_call).value


def normal_price_adjoint(
    F: float,
    K: float,
    T: float,
    vol: float,
    is_call: bool = True
) -> ValueDerivatives:
    """
    Bachelier price and its derivatives.

    Returns:
        ValueDerivatives with derivatives ordered (forward, strike, expiry, volatility)
    """
    if vol < 0:
        raise InvalidInputError(f"Volatility must be non-negative, got {vol}")
    if T <= 0 or vol * np.sqrt(T) < SMALL:
        return _intrinsic_adjoint(F, K, is_call)

    omega = _omega(is_call)
    sqrt_t = np.sqrt(T)
    sigma_root_t = vol * sqrt_t
    d = (F - K) / sigma_root_t
    n_d = n(d)
    cdf = N(omega * d)

    price = omega * (F - K) * cdf + sigma_root_t * n_d
    return ValueDerivatives(
        float(price),
        [omega * cdf, -omega * cdf, vol * n_d / (2 * sqrt_t), sqrt_t * n_d],
    )


def normal_delta(F: float, K: float, T: float, vol: float, is_call: bool = True) -> float:
    """Forward delta dPrice/dF."""
    return normal_price_adjoint(F, K, T, vol, is_call).derivative(FORWARD)


def normal_vega(F: float, K: float, T: float, vol: float) -> float:
    """dPrice/dVol (same for calls and puts)."""
    return normal_price_adjoint(F, K, T, vol, True).derivative(VOLATILITY)


def normal_gamma(F: float, K: float, T: float, vol: float) -> float:
    """d2Price/dF2 (same for calls and puts)."""
    sigma_root_t = vol * np.sqrt(max(T, 0.0))
    if sigma_root_t < SMALL:
        return 0.0
    return float(n((F - K) / sigma_root_t) / sigma_root_t)


def normal_theta(F: float, K: float, T: float, vol: float) -> float:
    """Driftless theta, -dPrice/dT (same for calls and puts)."""
    return -normal_price_adjoint(F, K, T, vol, True).derivative(EXPIRY)


def normal_implied_volatility(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    config: Optional[RootFinderConfig] = None
) -> float:
    """
    Bachelier implied volatility from an undiscounted price.

    Returns:
        Implied normal volatility (0 when the price equals intrinsic)
    """
    if T <= 0:
        raise InvalidInputError("Cannot compute implied vol for expired option")

    time_value = _otm_time_value(price, F, K, is_call)
    if time_value <= 0.0:
        return 0.0
    otm_call = K >= F

    guess = max(time_value * np.sqrt(2 * np.pi / T), abs(F - K) / np.sqrt(T) * 0.5, 1e-6)

    def objective(v: float):
        adj = normal_price_adjoint(F, K, T, v, otm_call)
        return adj.value - time_value, adj.derivative(VOLATILITY)

    return newton_with_bisect(objective, float(guess), lower=0.0, config=config).root


def normal_implied_volatility_adjoint(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    config: Optional[RootFinderConfig] = None
) -> ValueDerivatives:
    """Normal implied volatility and d(vol)/d(price) = 1/vega."""
    vol = normal_implied_volatility(price, F, K, T, is_call, config)
    vega = normal_vega(F, K, T, vol)
    return ValueDerivatives(vol, [1.0 / vega if vega > 0 else 0.0])


# ---------------------------------------------------------------------------
# Discounted convenience wrappers
# ---------------------------------------------------------------------------

def bachelier_call(F: float, K: float, T: float, sigma_n: float, df: float = 1.0) -> float:
    """Discounted Bachelier call price."""
    return df * normal_price(F, K, T, sigma_n, True)


def bachelier_put(F: float, K: float, T: float, sigma_n: float, df: float = 1.0) -> float:
    """Discounted Bachelier put price."""
    return df * normal_price(F, K, T, sigma_n, False)


def black76_call(F: float, K: float, T: float, sigma_b: float, df: float = 1.0) -> float:
    """Discounted Black'76 call price."""
    return df * black_price(F, K, T, sigma_b, True)


def black76_put(F: float, K: float, T: float, sigma_b: float, df: float = 1.0) -> float:
    """Discounted Black'76 put price."""
    return df * black_price(F, K, T, sigma_b, False)


def shifted_black_call(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    shift: float,
    df: float = 1.0
) -> float:
    """
    Shifted Black'76 call price.

    d(F + shift) = sigma_b * (F + shift) * dW
    """
    F_shifted = F + shift
    K_shifted = K + shift
    if F_shifted <= 0 or K_shifted <= 0:
        raise InvalidInputError(f"Shifted forward ({F_shifted}) and strike ({K_shifted}) must be positive")
    return black76_call(F_shifted, K_shifted, T, sigma_b, df)


def shifted_black_put(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    shift: float,
    df: float = 1.0
) -> float:
    """Shifted Black'76 put price."""
    F_shifted = F + shift
    K_shifted = K + shift
    if F_shifted <= 0 or K_shifted <= 0:
        raise InvalidInputError(f"Shifted forward ({F_shifted}) and strike ({K_shifted}) must be positive")
    return black76_put(F_shifted, K_shifted, T, sigma_b, df)


def black76_greeks(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    df: float = 1.0,
    is_call: bool = True
) -> Dict[str, float]:
    """
    Discounted Black'76 Greeks.

    Returns:
        Dict with delta, gamma, vega, theta
    """
    return {
        "delta": df * black_delta(F, K, T, sigma_b, is_call),
        "gamma": df * black_gamma(F, K, T, sigma_b),
        "vega": df * black_vega(F, K, T, sigma_b),
        "theta": df * black_driftless_theta(F, K, T, sigma_b),
    }


def bachelier_greeks(
    F: float,
    K: float,
    T: float,
    sigma_n: float,
    df: float = 1.0,
    is_call: bool = True
) -> Dict[str, float]:
    """
    Discounted Bachelier Greeks.

    Returns:
        Dict with delta, gamma, vega, theta
    """
    return {
        "delta": df * normal_delta(F, K, T, sigma_n, is_call),
        "gamma": df * normal_gamma(F, K, T, sigma_n),
        "vega": df * normal_vega(F, K, T, sigma_n),
        "theta": df * normal_theta(F, K, T, sigma_n),
    }


__all__ = [
    "FORWARD",
    "STRIKE",
    "EXPIRY",
    "VOLATILITY",
    "black_price",
    "black_price_adjoint",
    "black_delta",
    "black_gamma",
    "black_vega",
    "black_driftless_theta",
    "black_implied_volatility",
    "black_implied_volatility_adjoint",
    "normal_price",
    "normal_price_adjoint",
    "normal_delta",
    "normal_gamma",
    "normal_vega",
    "normal_theta",
    "normal_implied_volatility",
    "normal_implied_volatility_adjoint",
    "bachelier_call",
    "bachelier_put",
    "black76_call",
    "black76_put",
    "shifted_black_call",
    "shifted_black_put",
    "black76_greeks",
    "bachelier_greeks",
]
