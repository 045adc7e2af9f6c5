"""
Volatility module - SABR model and calibration.

Provides:
- SABR stochastic volatility model (Hagan approximation and its adjoint)
- Raw quote containers and conversion to shifted Black volatility
- Parameter surfaces over (expiry, tenor)
- SABR swaption volatilities and their calibration
"""

from .sabr import (
    SabrParameterType,
    SabrParams,
    SabrModel,
    SabrModelFitter,
    FixedParameters,
    hagan_black_vol,
    hagan_black_vol_adjoint,
    alpha_from_atm_volatility,
)
from .surfaces import (
    SwaptionNodeMetadata,
    ParameterSurface,
    InterpolatedNodalSurface,
    ConstantSurface,
)
from .quotes import (
    ValueType,
    StrikeType,
    RawOptionData,
    strikes_from_strike_like,
    normalize_quotes,
)
from .sabr_surface import SabrParametersSwaptionVolatilities, tenor_year_fraction
from .calibration import (
    SabrSwaptionCalibrator,
    SabrCalibrationResult,
    AtmCalibrationResult,
    SabrNodeResult,
    FailedNode,
    select_best_fit,
)

__all__ = [
    "SabrParameterType",
    "SabrParams",
    "SabrModel",
    "SabrModelFitter",
    "FixedParameters",
    "hagan_black_vol",
    "hagan_black_vol_adjoint",
    "alpha_from_atm_volatility",
    "SwaptionNodeMetadata",
    "ParameterSurface",
    "InterpolatedNodalSurface",
    "ConstantSurface",
    "ValueType",
    "StrikeType",
    "RawOptionData",
    "strikes_from_strike_like",
    "normalize_quotes",
    "SabrParametersSwaptionVolatilities",
    "tenor_year_fraction",
    "SabrSwaptionCalibrator",
    "SabrCalibrationResult",
    "AtmCalibrationResult",
    "SabrNodeResult",
    "FailedNode",
    "select_best_fit",
]
