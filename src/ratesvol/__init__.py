"""
RatesVol: SABR Swaption Volatility Calibration & Raw-Data Risk

A modular library for:
- Converting swaption price, normal vol and shifted Black vol quotes
- Calibrating SABR parameter surfaces over an expiry x tenor grid
- Pricing swaptions off the calibrated surfaces
- Propagating SABR parameter sensitivities back to the raw quotes

Scope: European swaptions; beta and shift supplied, alpha/rho/nu fitted.
"""

__version__ = "0.1.0"

# Core modules
from .conventions import DayCount, BusinessDayConvention, SwapConvention, year_fraction
from .dates import DateUtils, ScheduleInfo
from .config import CalibrationConfig, FitterConfig, RootFinderConfig
from .exceptions import (
    RatesVolError,
    InvalidInputError,
    UnsupportedQuoteTypeError,
    CurrencyMismatchError,
    MathError,
    RootFindingError,
    FitFailureError,
    UnsupportedOperationError,
)
from .logging_config import setup_logging
from .market_state import (
    RatesProvider,
    ResolvedSwap,
    DiscountCurve,
    CurveRatesProvider,
    FlatRatesProvider,
)

# Volatility (SABR)
from .vol import (
    SabrParams,
    SabrModel,
    SabrParameterType,
    ValueType,
    StrikeType,
    RawOptionData,
    ConstantSurface,
    InterpolatedNodalSurface,
    SabrParametersSwaptionVolatilities,
    SabrSwaptionCalibrator,
    SabrCalibrationResult,
    AtmCalibrationResult,
)

# Risk
from .risk import (
    SwaptionSabrSensitivity,
    CurrencyParameterSensitivity,
    CurrencyParameterSensitivities,
    SabrRawDataSensitivityCalculator,
)

# Options
from .options import Swaption, SabrSwaptionPricer

__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "SwapConvention",
    "year_fraction",
    "DateUtils",
    "ScheduleInfo",
    "CalibrationConfig",
    "FitterConfig",
    "RootFinderConfig",
    "RatesVolError",
    "InvalidInputError",
    "UnsupportedQuoteTypeError",
    "CurrencyMismatchError",
    "MathError",
    "RootFindingError",
    "FitFailureError",
    "UnsupportedOperationError",
    "setup_logging",
    "RatesProvider",
    "ResolvedSwap",
    "DiscountCurve",
    "CurveRatesProvider",
    "FlatRatesProvider",
    "SabrParams",
    "SabrModel",
    "SabrParameterType",
    "ValueType",
    "StrikeType",
    "RawOptionData",
    "ConstantSurface",
    "InterpolatedNodalSurface",
    "SabrParametersSwaptionVolatilities",
    "SabrSwaptionCalibrator",
    "SabrCalibrationResult",
    "AtmCalibrationResult",
    "SwaptionSabrSensitivity",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
    "SabrRawDataSensitivityCalculator",
    "Swaption",
    "SabrSwaptionPricer",
]
