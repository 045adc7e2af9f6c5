"""
Exception types for volatility calibration and risk.

Three families are distinguished:
- Input errors: bad shapes, unknown quote types, mixed currencies.
  These subclass ValueError and are raised before any numerical work.
- Numerical failures: root finding or least-squares fits that do not
  converge. These carry the (expiry, tenor) node when one is known.
- Unsupported operations: a model asked for a quantity it does not define.
"""

from typing import Optional


class RatesVolError(Exception):
    """Base class for all library errors."""

    pass


class InvalidInputError(RatesVolError, ValueError):
    """Raised when inputs fail validation."""

    pass


class UnsupportedQuoteTypeError(InvalidInputError):
    """Raised when a raw quote type has no conversion to shifted Black volatility."""

    def __init__(self, quote_type: object, supported_types: list):
        super().__init__(
            f"Unsupported quote type '{quote_type}'. Supported types: {', '.join(supported_types)}"
        )
        self.quote_type = quote_type


class CurrencyMismatchError(InvalidInputError):
    """Raised when sensitivities in different currencies are combined."""

    def __init__(self, currencies: list):
        super().__init__(
            f"Sensitivities must share a single currency, found: {', '.join(sorted(currencies))}"
        )
        self.currencies = currencies


class MathError(RatesVolError, ArithmeticError):
    """Base class for numerical failures."""

    pass


class RootFindingError(MathError):
    """Raised when a one-dimensional root search fails."""

    pass


class FitFailureError(MathError):
    """
    Raised when a least-squares fit does not converge.

    Attributes:
        expiry: Expiry tenor of the failing node, if known
        tenor: Swap tenor of the failing node, if known
        details: Description of the failure
    """

    def __init__(
        self,
        details: str = "",
        expiry: Optional[str] = None,
        tenor: Optional[str] = None
    ):
        self.details = details
        self.expiry = expiry
        self.tenor = tenor
        message = "Least-squares fit failed to converge."
        if expiry is not None or tenor is not None:
            message += f" Node: expiry={expiry}, tenor={tenor}."
        if details:
            message += f" Details: {details}"
        super().__init__(message)

    def with_node(self, expiry: str, tenor: str) -> "FitFailureError":
        """Return a copy of this error tagged with node coordinates."""
        return FitFailureError(self.details, expiry=expiry, tenor=tenor)


class UnsupportedOperationError(RatesVolError, NotImplementedError):
    """Raised when a model does not define the requested quantity."""

    def __init__(self, operation: str, model: str):
        super().__init__(f"{operation} is not supported by the {model} model")
        self.operation = operation
        self.model = model


__all__ = [
    "RatesVolError",
    "InvalidInputError",
    "UnsupportedQuoteTypeError",
    "CurrencyMismatchError",
    "MathError",
    "RootFindingError",
    "FitFailureError",
    "UnsupportedOperationError",
]
