"""
Configuration objects for the numerical routines.

Configuration is passed explicitly to solvers and calibrators; each class
exposes a ``default()`` constructor used at call sites.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class RootFinderConfig:
    """
    Settings for the one-dimensional Newton/bisection solver.

    Attributes:
        rel_tol: Relative step tolerance for Newton convergence
        abs_tol: Absolute tolerance on the function value
        max_iter: Maximum Newton iterations before falling back to bisection
        bracket_expansion: Multiplicative factor used to grow a bracket
        max_bracket_steps: Maximum number of bracket expansions
    """
    rel_tol: float = 1e-12
    abs_tol: float = 0.0
    max_iter: int = 50
    bracket_expansion: float = 1.6
    max_bracket_steps: int = 60

    def __post_init__(self):
        if self.rel_tol <= 0 or self.abs_tol < 0:
            raise ValueError(f"Tolerances must be positive, got rel_tol={self.rel_tol}, abs_tol={self.abs_tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
        if self.bracket_expansion <= 1.0:
            raise ValueError(f"bracket_expansion must exceed 1, got {self.bracket_expansion}")

    @classmethod
    def default(cls) -> "RootFinderConfig":
        return cls()


@dataclass(frozen=True)
class FitterConfig:
    """
    Settings for the SABR least-squares fit.

    Attributes:
        error: Uniform measurement error applied to every volatility quote
        max_iter: Maximum function evaluations per starting point
        ftol: Relative tolerance on the cost function
        xtol: Relative tolerance on the parameters
        gtol: Tolerance on the gradient norm
        alpha_start_vol: Normal-vol level used for the low alpha starting point
        alpha_high_multiplier: Ratio of the high alpha start to the low one
        nu_starts: Low and high vol-of-vol starting points
    """
    error: float = 1.0e-4
    max_iter: int = 2000
    ftol: float = 1e-15
    xtol: float = 1e-15
    gtol: float = 1e-15
    alpha_start_vol: float = 0.0025
    alpha_high_multiplier: float = 4.0
    nu_starts: Tuple[float, float] = (0.10, 0.50)

    def __post_init__(self):
        if self.error <= 0:
            raise ValueError(f"error must be positive, got {self.error}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
        if len(self.nu_starts) != 2:
            raise ValueError(f"nu_starts must hold a low and a high value, got {self.nu_starts}")

    @classmethod
    def default(cls) -> "FitterConfig":
        return cls()


@dataclass(frozen=True)
class CalibrationConfig:
    """
    Settings for a full grid calibration.

    Attributes:
        fitter: Least-squares settings used at each node
        root_finder: Solver settings used for ATM alpha recalibration
        stop_on_failure: Abort on the first failed node when True; skip and
            log the node when False. Skipping drops market data from the result.
        max_workers: Thread count for node-level parallelism (None = serial)
    """
    fitter: FitterConfig = field(default_factory=FitterConfig)
    root_finder: RootFinderConfig = field(default_factory=RootFinderConfig)
    stop_on_failure: bool = True
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

    @classmethod
    def default(cls) -> "CalibrationConfig":
        return cls()


__all__ = ["RootFinderConfig", "FitterConfig", "CalibrationConfig"]
