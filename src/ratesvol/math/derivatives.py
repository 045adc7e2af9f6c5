"""
Value-and-derivatives container returned by adjoint formulas.
"""

from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class ValueDerivatives:
    """
    A function value together with its first-order partial derivatives.

    The order of ``derivatives`` is a fixed convention of the formula that
    produced it, e.g. (forward, strike, expiry, volatility) for option prices.

    Attributes:
        value: Function value
        derivatives: Partial derivatives in the formula's documented order
    """
    value: float
    derivatives: np.ndarray

    def __post_init__(self):
        derivs = np.array(self.derivatives, dtype=float)
        derivs.setflags(write=False)
        object.__setattr__(self, "derivatives", derivs)

    def derivative(self, index: int) -> float:
        """Return one partial derivative by position."""
        return float(self.derivatives[index])


__all__ = ["ValueDerivatives"]
