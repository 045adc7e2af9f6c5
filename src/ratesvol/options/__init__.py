"""
Options module - swaption pricing.

Provides:
- Black'76 (shifted) and Bachelier (normal) price formulas with adjoints
- Implied volatility inversion for both models
- SABR swaption pricer producing parameter point sensitivities
"""

from .base_models import (
    black_price,
    black_price_adjoint,
    black_implied_volatility,
    black_implied_volatility_adjoint,
    normal_price,
    normal_price_adjoint,
    normal_implied_volatility,
    normal_implied_volatility_adjoint,
    bachelier_call,
    bachelier_put,
    black76_call,
    black76_put,
    shifted_black_call,
    shifted_black_put,
    bachelier_greeks,
    black76_greeks,
)
from .swaption import Swaption, SwaptionResult, SabrSwaptionPricer

__all__ = [
    "black_price",
    "black_price_adjoint",
    "black_implied_volatility",
    "black_implied_volatility_adjoint",
    "normal_price",
    "normal_price_adjoint",
    "normal_implied_volatility",
    "normal_implied_volatility_adjoint",
    "bachelier_call",
    "bachelier_put",
    "black76_call",
    "black76_put",
    "shifted_black_call",
    "shifted_black_put",
    "bachelier_greeks",
    "black76_greeks",
    "Swaption",
    "SwaptionResult",
    "SabrSwaptionPricer",
]
