"""
Risk package - SABR parameter and raw market-data sensitivities.

Provides:
- Point sensitivities to SABR parameters
- Surface-node parameter sensitivities by currency
- Aggregation of node sensitivities to raw calibration quotes
"""

from .sensitivities import (
    SwaptionSabrSensitivity,
    CurrencyParameterSensitivity,
    CurrencyParameterSensitivities,
    SabrRawDataSensitivityCalculator,
)

__all__ = [
    "SwaptionSabrSensitivity",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
    "SabrRawDataSensitivityCalculator",
]
