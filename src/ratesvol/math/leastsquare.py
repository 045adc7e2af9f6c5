"""
Non-linear least-squares fitting with fixed parameters.

Provides:
- Parameter transforms mapping bounded model parameters to an
  unconstrained fitting space
- NonLinearLeastSquare: weighted least squares built on
  scipy.optimize.least_squares, returning fitted parameters, chi-square
  and the sensitivity of the fitted parameters to the observed data
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
import logging

import numpy as np
from scipy.optimize import least_squares

from ..config import FitterConfig
from ..exceptions import FitFailureError

logger = logging.getLogger(__name__)

ModelFunction = Callable[[np.ndarray], np.ndarray]
JacobianFunction = Callable[[np.ndarray], np.ndarray]


class ParameterTransform(ABC):
    """Maps a model parameter to and from an unconstrained fitting variable."""

    @abstractmethod
    def to_fitting(self, x: float) -> float:
        """Model parameter -> fitting variable."""
        pass

    @abstractmethod
    def to_model(self, y: float) -> float:
        """Fitting variable -> model parameter."""
        pass

    @abstractmethod
    def model_gradient(self, y: float) -> float:
        """d(model parameter) / d(fitting variable)."""
        pass


class IdentityTransform(ParameterTransform):
    """No transform."""

    def to_fitting(self, x: float) -> float:
        return x

    def to_model(self, y: float) -> float:
        return y

    def model_gradient(self, y: float) -> float:
        return 1.0


class LowerBoundTransform(ParameterTransform):
    """x = lower + exp(y), keeps x strictly above ``lower``."""

    def __init__(self, lower: float = 0.0):
        self.lower = lower

    def to_fitting(self, x: float) -> float:
        if x <= self.lower:
            raise ValueError(f"Value {x} not above lower bound {self.lower}")
        return float(np.log(x - self.lower))

    def to_model(self, y: float) -> float:
        return self.lower + float(np.exp(y))

    def model_gradient(self, y: float) -> float:
        return float(np.exp(y))


class DoubleBoundTransform(ParameterTransform):
    """x = mid + half_width * tanh(y), keeps x strictly inside (lower, upper)."""

    def __init__(self, lower: float, upper: float):
        if upper <= lower:
            raise ValueError(f"upper ({upper}) must exceed lower ({lower})")
        self.mid = 0.5 * (lower + upper)
        self.half_width = 0.5 * (upper - lower)

    def to_fitting(self, x: float) -> float:
        u = (x - self.mid) / self.half_width
        if not -1.0 < u < 1.0:
            raise ValueError(f"Value {x} outside open interval")
        return float(np.arctanh(u))

    def to_model(self, y: float) -> float:
        return self.mid + self.half_width * float(np.tanh(y))

    def model_gradient(self, y: float) -> float:
        t = np.tanh(y)
        return float(self.half_width * (1.0 - t * t))


@dataclass(frozen=True)
class LeastSquareResult:
    """
    Result of a weighted least-squares fit.

    Attributes:
        parameters: Fitted model parameters (fixed ones at their start values)
        chi_sq: Sum of squared weighted residuals at the optimum
        inverse_jacobian: d(parameters)/d(observed values), shape
            (n_parameters, n_observations); rows of fixed parameters are zero
        n_evaluations: Number of model evaluations used
    """
    parameters: np.ndarray
    chi_sq: float
    inverse_jacobian: np.ndarray
    n_evaluations: int


class NonLinearLeastSquare:
    """
    Weighted non-linear least squares with a fixed-parameter mask.

    Minimises chi^2 = sum(((observed - model(x)) / sigma)^2) over the free
    parameters. Bounded parameters are fitted in a transformed space; the
    reported sensitivities are in model parameters.
    """

    def __init__(self, config: Optional[FitterConfig] = None):
        self.config = config or FitterConfig.default()

    def solve(
        self,
        observed: np.ndarray,
        sigma: np.ndarray,
        model: ModelFunction,
        jacobian: JacobianFunction,
        start: np.ndarray,
        fixed: np.ndarray,
        transforms: Optional[Sequence[ParameterTransform]] = None
    ) -> LeastSquareResult:
        """
        Fit the model to observed data.

        Args:
            observed: Observed values, shape (m,)
            sigma: Measurement errors, shape (m,)
            model: Model values at parameters x, shape (m,)
            jacobian: d(model)/d(x), shape (m, n)
            start: Starting parameters, shape (n,)
            fixed: Boolean mask, True where the parameter is held at its start
            transforms: Per-parameter transforms (identity when omitted)

        Returns:
            LeastSquareResult

        Raises:
            FitFailureError: If the optimiser fails or produces non-finite values
        """
        observed = np.asarray(observed, dtype=float)
        sigma = np.asarray(sigma, dtype=float)
        start = np.asarray(start, dtype=float)
        fixed = np.asarray(fixed, dtype=bool)
        n_params = len(start)

        if observed.shape != sigma.shape:
            raise ValueError(f"observed and sigma lengths differ: {observed.shape} vs {sigma.shape}")
        if fixed.shape != start.shape:
            raise ValueError(f"fixed mask length {fixed.shape} does not match parameters {start.shape}")
        if np.any(sigma <= 0):
            raise ValueError("Measurement errors must be positive")
        if transforms is None:
            transforms = [IdentityTransform()] * n_params
        if len(transforms) != n_params:
            raise ValueError(f"Expected {n_params} transforms, got {len(transforms)}")

        free = np.flatnonzero(~fixed)
        if len(free) == 0:
            raise ValueError("At least one parameter must be free")

        def to_model(y: np.ndarray) -> np.ndarray:
            x = start.copy()
            for j, idx in enumerate(free):
                x[idx] = transforms[idx].to_model(y[j])
            return x

        def residuals(y: np.ndarray) -> np.ndarray:
            return (model(to_model(y)) - observed) / sigma

        def residual_jacobian(y: np.ndarray) -> np.ndarray:
            jac = np.asarray(jacobian(to_model(y)), dtype=float)[:, free]
            grad = np.array([transforms[idx].model_gradient(y[j]) for j, idx in enumerate(free)])
            return jac * grad[None, :] / sigma[:, None]

        try:
            y0 = np.array([transforms[idx].to_fitting(start[idx]) for idx in free])
        except ValueError as exc:
            raise FitFailureError(f"Invalid starting point {start}: {exc}") from exc

        method = "lm" if len(observed) >= len(free) else "trf"
        cfg = self.config
        try:
            sol = least_squares(
                residuals,
                y0,
                jac=residual_jacobian,
                method=method,
                ftol=cfg.ftol,
                xtol=cfg.xtol,
                gtol=cfg.gtol,
                max_nfev=cfg.max_iter,
            )
        except (ValueError, np.linalg.LinAlgError) as exc:
            raise FitFailureError(str(exc)) from exc

        if sol.status <= 0:
            raise FitFailureError(f"Optimiser stopped with status {sol.status}: {sol.message}")

        x_fit = to_model(sol.x)
        res = residuals(sol.x)
        if not (np.all(np.isfinite(x_fit)) and np.all(np.isfinite(res))):
            raise FitFailureError(f"Non-finite fit result at parameters {x_fit}")
        chi_sq = float(np.dot(res, res))

        inverse_jacobian = np.zeros((n_params, len(observed)))
        model_jac = np.asarray(jacobian(x_fit), dtype=float)[:, free]
        if not np.all(np.isfinite(model_jac)):
            raise FitFailureError(f"Non-finite model Jacobian at parameters {x_fit}")
        weighted = model_jac / sigma[:, None]
        try:
            inverse_jacobian[free, :] = np.linalg.pinv(weighted) / sigma[None, :]
        except np.linalg.LinAlgError as exc:
            raise FitFailureError(f"Singular model Jacobian: {exc}") from exc

        logger.debug(
            "Least-squares fit: method=%s nfev=%s chi_sq=%.3e params=%s",
            method, sol.nfev, chi_sq, x_fit
        )
        return LeastSquareResult(
            parameters=x_fit,
            chi_sq=chi_sq,
            inverse_jacobian=inverse_jacobian,
            n_evaluations=int(sol.nfev),
        )


__all__ = [
    "ParameterTransform",
    "IdentityTransform",
    "LowerBoundTransform",
    "DoubleBoundTransform",
    "LeastSquareResult",
    "NonLinearLeastSquare",
]
