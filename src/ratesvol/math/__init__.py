"""
Numerical building blocks.

Provides:
- Value-and-derivatives container for adjoint formulas
- Newton root finder with Brent fallback
- Non-linear least squares with fixed parameters
"""

from .derivatives import ValueDerivatives
from .rootfinding import RootResult, newton_with_bisect
from .leastsquare import (
    NonLinearLeastSquare,
    LeastSquareResult,
    ParameterTransform,
    IdentityTransform,
    LowerBoundTransform,
    DoubleBoundTransform,
)

__all__ = [
    "ValueDerivatives",
    "RootResult",
    "newton_with_bisect",
    "NonLinearLeastSquare",
    "LeastSquareResult",
    "ParameterTransform",
    "IdentityTransform",
    "LowerBoundTransform",
    "DoubleBoundTransform",
]
