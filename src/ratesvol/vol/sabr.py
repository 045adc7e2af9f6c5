"""
SABR stochastic volatility model.

Implements the SABR model for rates volatility:
- Hagan et al. implied Black volatility approximation
- Adjoint version returning derivatives w.r.t. forward, strike and the
  four SABR parameters (alpha, beta, rho, nu)
- Alpha inversion from an ATM volatility
- Least-squares smile fitter with beta held fixed

Forwards and strikes passed to the formulas are already shifted; the
shift is applied by callers (SabrModel, the surface view, the calibrator).

References:
- Hagan, P.S. et al. (2002). "Managing Smile Risk." Wilmott Magazine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from ..config import FitterConfig, RootFinderConfig
from ..exceptions import InvalidInputError
from ..math.derivatives import ValueDerivatives
from ..math.leastsquare import (
    DoubleBoundTransform,
    LeastSquareResult,
    LowerBoundTransform,
    NonLinearLeastSquare,
)
from ..math.rootfinding import newton_with_bisect

logger = logging.getLogger(__name__)

# Strikes below forward * CUTOFF_MONEYNESS are floored to that level
CUTOFF_MONEYNESS = 1e-12
SMALL_Z = 1e-6
LARGE_NEG_Z = -1e6
LARGE_POS_Z = 1e8
RHO_EPS = 1e-5
ATM_EPS = 1e-7

# Derivative positions in the volatility adjoint
D_FORWARD, D_STRIKE, D_ALPHA, D_BETA, D_RHO, D_NU = range(6)

PARAMETER_NAMES = ("alpha", "beta", "rho", "nu")


class SabrParameterType(Enum):
    """SABR surface kinds; values double as surface value types."""
    ALPHA = "SabrAlpha"
    BETA = "SabrBeta"
    RHO = "SabrRho"
    NU = "SabrNu"
    SHIFT = "SabrShift"

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class SabrParams:
    """
    SABR model parameters.

    Attributes:
        alpha: Initial volatility level (alpha > 0)
        beta: CEV exponent (0 = normal, 1 = lognormal, typically fixed)
        rho: Correlation between forward and vol (-1 < rho < 1)
        nu: Volatility of volatility (nu >= 0)
        shift: Shift for negative rates (default 0)
    """
    alpha: float
    beta: float
    rho: float
    nu: float
    shift: float = 0.0

    def __post_init__(self):
        if self.alpha < 0:
            raise ValueError(f"alpha must be non-negative, got {self.alpha}")
        if not 0 <= self.beta <= 1:
            raise ValueError(f"beta must be in [0, 1], got {self.beta}")
        if not -1 <= self.rho <= 1:
            raise ValueError(f"rho must be in [-1, 1], got {self.rho}")
        if self.nu < 0:
            raise ValueError(f"nu must be non-negative, got {self.nu}")

    def to_array(self) -> np.ndarray:
        """Parameters as [alpha, beta, rho, nu]."""
        return np.array([self.alpha, self.beta, self.rho, self.nu])

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "alpha": self.alpha,
            "beta": self.beta,
            "rho": self.rho,
            "nu": self.nu,
            "shift": self.shift,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "SabrParams":
        """Create from dictionary."""
        return cls(
            alpha=d["alpha"],
            beta=d["beta"],
            rho=d["rho"],
            nu=d["nu"],
            shift=d.get("shift", 0.0),
        )


def _z_over_chi(z: float, rho: float) -> Tuple[float, float, float]:
    """
    z / x(z) with x(z) = ln((sqrt(1 - 2 rho z + z^2) + z - rho) / (1 - rho)).

    Returns:
        (value, d/dz, d/drho)
    """
    if abs(z) < SMALL_Z:
        # Second-order expansion around z = 0
        return 1.0 - 0.5 * z * rho, -0.5 * rho, -0.5 * z

    rho_star = 1.0 - rho
    if abs(rho_star) < RHO_EPS:
        if z >= 1.0:
            if rho_star == 0.0:
                return 0.0, 0.0, -np.inf
            xz = np.log(2 * (z - 1)) - np.log(rho_star)
            dx_dz = 1.0 / (z - 1.0)
            dx_drho = 1.0 / rho_star
        else:
            ratio = z / (z - 1.0)
            xz = -np.log(1 - z) - 0.5 * ratio ** 2 * rho_star
            dx_dz = 1.0 / (1.0 - z) + rho_star * z / (z - 1.0) ** 3
            dx_drho = 0.5 * ratio ** 2
    elif z < LARGE_NEG_Z:
        # Avoid cancellation in sqrt(...) + z for very negative z
        xz = np.log((rho * rho - 1) / (2 * z) / rho_star)
        dx_dz = -1.0 / z
        dx_drho = 1.0 / (1.0 + rho)
    elif z > LARGE_POS_Z:
        xz = np.log(2 * (z - rho) / rho_star)
        dx_dz = 1.0 / (z - rho)
        dx_drho = -1.0 / (z - rho) + 1.0 / rho_star
    else:
        root = np.sqrt(1 - 2 * rho * z + z * z)
        arg = root + z - rho
        if arg <= 0.0:
            return 0.0, 0.0, 0.0
        xz = np.log(arg / rho_star)
        dx_dz = 1.0 / root
        dx_drho = (-z / root - 1.0) / arg + 1.0 / rho_star

    value = z / xz
    d_dx = -z / (xz * xz)
    return value, 1.0 / xz + d_dx * dx_dz, d_dx * dx_drho


def _floor_strike(forward: float, strike: float) -> float:
    cutoff = forward * CUTOFF_MONEYNESS
    if strike < cutoff:
        logger.info(
            "Given strike of %s is less than cutoff at %s, therefore the strike is taken as %s",
            strike, cutoff, cutoff
        )
        return cutoff
    return strike


def _check_inputs(forward: float, strike: float, T: float) -> None:
    if forward <= 0:
        raise InvalidInputError(f"Shifted forward must be positive, got {forward}")
    if strike <= 0:
        raise InvalidInputError(f"Shifted strike must be positive, got {strike}")
    if T < 0:
        raise InvalidInputError(f"Time to expiry must be non-negative, got {T}")


def hagan_black_vol(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float
) -> float:
    """
    Hagan et al. approximation for SABR Black implied volatility.

    Args:
        F: Shifted forward
        K: Shifted strike
        T: Time to expiry (years)
        alpha: SABR alpha
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol

    Returns:
        Black implied volatility of the shifted process
    """
    return hagan_black_vol_adjoint(F, K, T, alpha, beta, rho, nu).value


def hagan_black_vol_adjoint(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float
) -> ValueDerivatives:
    """
    Hagan Black volatility with its analytic derivatives.

    Forward sweep computes the volatility from intermediate quantities;
    the backward sweep accumulates adjoints of each intermediate.

    Returns:
        ValueDerivatives with derivatives ordered
        (forward, strike, alpha, beta, rho, nu)
    """
    _check_inputs(F, K, T)
    k = _floor_strike(F, K)
    beta_star = 1.0 - beta

    if alpha == 0.0:
        derivs = np.zeros(6)
        if abs(F - k) < ATM_EPS:
            derivs[D_ALPHA] = (1 + (2 - 3 * rho * rho) * nu * nu / 24 * T) / F ** beta_star
        else:
            # Infinite at alpha = 0 away from the money; a large finite slope
            derivs[D_ALPHA] = 1e7
        return ValueDerivatives(0.0, derivs)

    # Forward sweep
    sf_k = (F * k) ** (beta_star / 2)
    ln_fk = np.log(F / k)
    z = nu / alpha * sf_k * ln_fk
    r, dr_dz, dr_drho = _z_over_chi(z, rho)
    sf1 = sf_k * (1 + beta_star ** 2 / 24 * ln_fk ** 2 + beta_star ** 4 / 1920 * ln_fk ** 4)
    sf2 = 1 + (
        (beta_star * alpha / sf_k) ** 2 / 24
        + rho * beta * nu * alpha / (4 * sf_k)
        + (2 - 3 * rho * rho) * nu * nu / 24
    ) * T
    vol = alpha / sf1 * r * sf2

    # Backward sweep
    sf2_bar = alpha / sf1 * r
    sf1_bar = -vol / sf1
    r_bar = alpha / sf1 * sf2
    z_bar = r_bar * dr_dz

    ln_fk_bar = (
        sf_k * (beta_star ** 2 / 12 * ln_fk + beta_star ** 4 / 480 * ln_fk ** 3) * sf1_bar
        + nu / alpha * sf_k * z_bar
    )
    sf_k_bar = (
        nu / alpha * ln_fk * z_bar
        + sf1 / sf_k * sf1_bar
        - ((beta_star * alpha) ** 2 / sf_k ** 3 / 12 + rho * beta * nu * alpha / (4 * sf_k ** 2)) * T * sf2_bar
    )
    strike_bar = -ln_fk_bar / k + beta_star * sf_k / (2 * k) * sf_k_bar
    forward_bar = ln_fk_bar / F + beta_star * sf_k / (2 * F) * sf_k_bar
    alpha_bar = (
        -z / alpha * z_bar
        + (beta_star ** 2 * alpha / (12 * sf_k ** 2) + rho * beta * nu / (4 * sf_k)) * T * sf2_bar
        + r * sf2 / sf1
    )
    beta_bar = (
        -0.5 * np.log(F * k) * sf_k * sf_k_bar
        - sf_k * (beta_star / 12 * ln_fk ** 2 + beta_star ** 3 / 480 * ln_fk ** 4) * sf1_bar
        + (-beta_star * alpha ** 2 / (12 * sf_k ** 2) + rho * nu * alpha / (4 * sf_k)) * T * sf2_bar
    )
    rho_bar = r_bar * dr_drho + (beta * nu * alpha / (4 * sf_k) - rho * nu * nu / 4) * T * sf2_bar
    nu_bar = (
        sf_k * ln_fk / alpha * z_bar
        + (rho * beta * alpha / (4 * sf_k) + (2 - 3 * rho * rho) * nu / 12) * T * sf2_bar
    )

    return ValueDerivatives(
        float(vol),
        [forward_bar, strike_bar, alpha_bar, beta_bar, rho_bar, nu_bar],
    )


def alpha_from_atm_volatility(
    F: float,
    T: float,
    atm_vol: float,
    beta: float,
    rho: float,
    nu: float,
    config: Optional[RootFinderConfig] = None
) -> Tuple[float, float]:
    """
    Invert the ATM Hagan formula for alpha.

    Solves hagan_black_vol(F, F, T, alpha, ...) = atm_vol by Newton seeded
    from alpha0 = atm_vol * F^(1-beta), with a Brent fallback.

    Args:
        F: Shifted forward
        T: Time to expiry
        atm_vol: Target shifted Black ATM volatility
        beta, rho, nu: Fixed SABR parameters
        config: Root finder settings

    Returns:
        (alpha, d alpha / d atm_vol)
    """
    if atm_vol <= 0:
        raise InvalidInputError(f"ATM volatility must be positive, got {atm_vol}")

    def objective(alpha: float):
        adj = hagan_black_vol_adjoint(F, F, T, alpha, beta, rho, nu)
        return adj.value - atm_vol, adj.derivative(D_ALPHA)

    alpha0 = atm_vol * F ** (1.0 - beta)
    result = newton_with_bisect(objective, alpha0, lower=0.0, config=config)
    logger.debug("ATM alpha solved by %s in %s iterations: %s", result.method, result.iterations, result.root)
    dvol_dalpha = hagan_black_vol_adjoint(F, F, T, result.root, beta, rho, nu).derivative(D_ALPHA)
    return result.root, 1.0 / dvol_dalpha


class SabrModel:
    """
    SABR stochastic volatility model on unshifted rates.

    Applies the shift held by SabrParams before evaluating the Hagan formula.
    """

    def volatility(self, F: float, K: float, T: float, params: SabrParams) -> float:
        """Shifted Black implied volatility."""
        return hagan_black_vol(
            F + params.shift, K + params.shift, T,
            params.alpha, params.beta, params.rho, params.nu
        )

    def volatility_adjoint(self, F: float, K: float, T: float, params: SabrParams) -> ValueDerivatives:
        """Shifted Black implied volatility with (F, K, alpha, beta, rho, nu) derivatives."""
        return hagan_black_vol_adjoint(
            F + params.shift, K + params.shift, T,
            params.alpha, params.beta, params.rho, params.nu
        )

    def smile(self, F: float, strikes: Sequence[float], T: float, params: SabrParams) -> Dict[float, float]:
        """
        Compute implied vol smile across strikes.

        Returns:
            Dict of {strike: shifted Black vol}
        """
        return {K: self.volatility(F, K, T, params) for K in strikes}


@dataclass(frozen=True)
class FixedParameters:
    """Which of (alpha, beta, rho, nu) are held at their start values."""
    alpha: bool = False
    beta: bool = True
    rho: bool = False
    nu: bool = False

    def as_mask(self) -> np.ndarray:
        return np.array([self.alpha, self.beta, self.rho, self.nu], dtype=bool)

    @classmethod
    def beta_fixed(cls) -> "FixedParameters":
        return cls()


class SabrModelFitter:
    """
    Fits SABR to one smile of shifted Black volatilities.

    The model Jacobian is the analytic Hagan adjoint. alpha and nu are kept
    positive and rho inside (-1, 1) by fitting in transformed variables.

    Args:
        forward: Shifted forward
        strikes: Shifted strikes
        T: Time to expiry
        vols: Shifted Black volatilities to fit
        errors: Measurement error per volatility
        config: Fitter settings
    """

    def __init__(
        self,
        forward: float,
        strikes: Sequence[float],
        T: float,
        vols: Sequence[float],
        errors: Sequence[float],
        config: Optional[FitterConfig] = None
    ):
        self.forward = forward
        self.strikes = np.asarray(strikes, dtype=float)
        self.T = T
        self.vols = np.asarray(vols, dtype=float)
        self.errors = np.asarray(errors, dtype=float)
        if not (len(self.strikes) == len(self.vols) == len(self.errors)):
            raise InvalidInputError(
                f"Mismatched smile lengths: strikes={len(self.strikes)}, "
                f"vols={len(self.vols)}, errors={len(self.errors)}"
            )
        _check_inputs(forward, float(np.min(self.strikes)) if len(self.strikes) else 1.0, T)
        self._solver = NonLinearLeastSquare(config)
        self._transforms = [
            LowerBoundTransform(0.0),
            DoubleBoundTransform(0.0, 1.0),
            DoubleBoundTransform(-1.0, 1.0),
            LowerBoundTransform(0.0),
        ]

    def model_values(self, x: np.ndarray) -> np.ndarray:
        alpha, beta, rho, nu = x
        return np.array([
            hagan_black_vol(self.forward, K, self.T, alpha, beta, rho, nu) for K in self.strikes
        ])

    def model_jacobian(self, x: np.ndarray) -> np.ndarray:
        alpha, beta, rho, nu = x
        rows: List[np.ndarray] = []
        for K in self.strikes:
            adj = hagan_black_vol_adjoint(self.forward, K, self.T, alpha, beta, rho, nu)
            rows.append(adj.derivatives[D_ALPHA:])
        return np.array(rows)

    def solve(self, start: np.ndarray, fixed: FixedParameters) -> LeastSquareResult:
        """Fit from one starting point [alpha, beta, rho, nu]."""
        return self._solver.solve(
            self.vols,
            self.errors,
            self.model_values,
            self.model_jacobian,
            np.asarray(start, dtype=float),
            fixed.as_mask(),
            transforms=self._transforms,
        )


__all__ = [
    "CUTOFF_MONEYNESS",
    "PARAMETER_NAMES",
    "SabrParameterType",
    "SabrParams",
    "SabrModel",
    "FixedParameters",
    "SabrModelFitter",
    "hagan_black_vol",
    "hagan_black_vol_adjoint",
    "alpha_from_atm_volatility",
]
