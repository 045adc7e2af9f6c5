"""
One-dimensional root finding.

Newton-Raphson seeded from an analytic guess, with a bracketing fallback
to Brent's method when Newton diverges, hits a flat derivative or leaves
the admissible domain.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import logging

import numpy as np
from scipy.optimize import brentq

from ..config import RootFinderConfig
from ..exceptions import RootFindingError

logger = logging.getLogger(__name__)

FuncDeriv = Callable[[float], Tuple[float, float]]
Func = Callable[[float], float]

_BRENT_RTOL = 4 * np.finfo(float).eps


@dataclass(frozen=True)
class RootResult:
    """Outcome of a root search."""
    root: float
    iterations: int
    converged: bool
    method: str


def _find_bracket(
    func: Func,
    guess: float,
    lower: float,
    upper: Optional[float],
    config: RootFinderConfig
) -> Tuple[float, float]:
    """
    Grow an interval around ``guess`` until the function changes sign.

    The interval shrinks geometrically towards ``lower`` on the left and
    grows geometrically (or towards ``upper``) on the right, so it never
    leaves the open domain (lower, upper).
    """
    a = b = guess
    f_a = f_b = func(guess)
    if f_a == 0.0:
        return guess, guess

    for _ in range(config.max_bracket_steps):
        a = lower + (a - lower) / config.bracket_expansion
        if upper is None:
            b = lower + (b - lower) * config.bracket_expansion
        else:
            b = upper - (upper - b) / config.bracket_expansion
        f_a = func(a)
        f_b = func(b)
        if np.isfinite(f_a) and np.isfinite(f_b) and f_a * f_b <= 0:
            return a, b
    raise RootFindingError(
        f"Failed to bracket the root around {guess} after {config.max_bracket_steps} expansions"
    )


def newton_with_bisect(
    func_and_deriv: FuncDeriv,
    initial_guess: float,
    *,
    lower: float = 0.0,
    upper: Optional[float] = None,
    bracket: Optional[Tuple[float, float]] = None,
    config: Optional[RootFinderConfig] = None
) -> RootResult:
    """
    Newton-Raphson root finder with a bracketing fallback.

    Args:
        func_and_deriv: Callable returning (value, derivative) at a point
        initial_guess: Starting point for Newton iterations
        lower: Exclusive lower bound of the domain
        upper: Exclusive upper bound of the domain (None = unbounded)
        bracket: Optional explicit bracket used by the fallback
        config: Solver settings (defaults to RootFinderConfig.default())

    Returns:
        RootResult with the root and the method that produced it

    Raises:
        RootFindingError: If no sign change can be found for the fallback
    """
    config = config or RootFinderConfig.default()
    x = float(initial_guess)
    if x <= lower or (upper is not None and x >= upper):
        raise ValueError(f"Initial guess {x} outside domain ({lower}, {upper})")

    iteration = 0
    for iteration in range(1, config.max_iter + 1):
        value, deriv = func_and_deriv(x)
        logger.debug("Newton iter %s: x=%s value=%s deriv=%s", iteration, x, value, deriv)
        if not (np.isfinite(value) and np.isfinite(deriv)):
            logger.debug("Non-finite evaluation; aborting Newton at iter %s", iteration)
            break
        if abs(value) <= config.abs_tol:
            return RootResult(x, iteration, True, "newton")
        if deriv == 0.0:
            logger.debug("Zero derivative; aborting Newton at iter %s", iteration)
            break
        x_new = x - value / deriv
        # Damp steps that leave the domain
        if x_new <= lower:
            x_new = 0.5 * (x + lower)
        elif upper is not None and x_new >= upper:
            x_new = 0.5 * (x + upper)
        if abs(x_new - x) <= config.rel_tol * abs(x_new):
            return RootResult(x_new, iteration, True, "newton")
        x = x_new

    def func_only(v: float) -> float:
        return func_and_deriv(v)[0]

    if bracket is None:
        bracket = _find_bracket(func_only, float(initial_guess), lower, upper, config)
    a, b = bracket
    if a == b:
        return RootResult(a, iteration, True, "bracket")

    try:
        root, info = brentq(
            func_only, a, b, xtol=1e-300, rtol=max(config.rel_tol, _BRENT_RTOL),
            maxiter=500, full_output=True
        )
    except (ValueError, RuntimeError) as exc:
        raise RootFindingError(f"Brent fallback failed on [{a}, {b}]: {exc}") from exc

    logger.debug("Brent fallback converged to %s in %s iterations", root, info.iterations)
    return RootResult(float(root), iteration + info.iterations, bool(info.converged), "brent")


__all__ = ["RootResult", "newton_with_bisect"]
