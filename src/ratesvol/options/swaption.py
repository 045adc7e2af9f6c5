"""
Swaption pricing with SABR volatilities.

A swaption is an option to enter into an interest rate swap.
- Payer swaption: right to pay fixed, receive floating (call on the swap rate)
- Receiver swaption: right to receive fixed, pay floating (put on the swap rate)

Pricing:
    V_swaption = Annuity * ShiftedBlack(S + shift, K + shift, T, sigma_SABR)

where:
    - Annuity = sum of discounted fixed-leg accrual fractions (PV01)
    - S = forward swap rate from the rates provider
    - sigma_SABR = SABR volatility at (T, tenor, K, S)

The pricer also produces point sensitivities to the SABR parameters,
which the volatilities map onto their surface nodes.
"""

from dataclasses import dataclass
from datetime import date
from typing import List

from ..exceptions import InvalidInputError
from ..market_state import RatesProvider, ResolvedSwap
from ..risk.sensitivities import CurrencyParameterSensitivities, SwaptionSabrSensitivity
from ..vol.sabr import D_ALPHA, D_BETA, D_NU, D_RHO, SabrParameterType
from ..vol.sabr_surface import SabrParametersSwaptionVolatilities


@dataclass(frozen=True)
class Swaption:
    """
    European physically settled swaption.

    Attributes:
        expiry_date: Exercise date
        tenor: Underlying swap tenor, e.g. "5Y"
        strike: Fixed rate of the underlying swap
        notional: Notional amount
        is_payer: True for payer, False for receiver
        is_long: True if the option is bought
    """
    expiry_date: date
    tenor: str
    strike: float
    notional: float = 1.0
    is_payer: bool = True
    is_long: bool = True

    @property
    def sign(self) -> float:
        return 1.0 if self.is_long else -1.0


@dataclass
class SwaptionResult:
    """Result from swaption pricing."""
    present_value: float
    forward_swap_rate: float
    strike: float
    expiry: float
    tenor: float
    annuity: float
    implied_vol: float
    shift: float
    notional: float
    payer_receiver: str


class SabrSwaptionPricer:
    """
    Prices swaptions off SABR swaption volatilities.

    Args:
        rates_provider: Forward swap rates and discount factors
        volatilities: Calibrated SABR volatilities
    """

    def __init__(self, rates_provider: RatesProvider, volatilities: SabrParametersSwaptionVolatilities):
        self.rates_provider = rates_provider
        self.volatilities = volatilities

    def _underlying(self, swaption: Swaption):
        vols = self.volatilities
        expiry = vols.relative_time(swaption.expiry_date)
        if expiry <= 0:
            raise InvalidInputError(f"Swaption expired on {swaption.expiry_date}")
        swap = ResolvedSwap.from_convention(vols.convention, swaption.expiry_date, swaption.tenor)
        tenor = vols.tenor(swap.effective_date, swap.maturity_date)
        forward = self.rates_provider.forward_rate(swap)
        annuity = self.rates_provider.annuity(swap)
        return expiry, tenor, forward, annuity

    def price(self, swaption: Swaption) -> SwaptionResult:
        """Full pricing result of a swaption."""
        expiry, tenor, forward, annuity = self._underlying(swaption)
        vols = self.volatilities
        vol = vols.volatility(expiry, tenor, swaption.strike, forward)
        undiscounted = vols.price(expiry, tenor, swaption.is_payer, swaption.strike, forward, vol)
        return SwaptionResult(
            present_value=swaption.sign * swaption.notional * annuity * undiscounted,
            forward_swap_rate=forward,
            strike=swaption.strike,
            expiry=expiry,
            tenor=tenor,
            annuity=annuity,
            implied_vol=vol,
            shift=vols.shift(expiry, tenor),
            notional=swaption.notional,
            payer_receiver="PAYER" if swaption.is_payer else "RECEIVER",
        )

    def present_value(self, swaption: Swaption) -> float:
        return self.price(swaption).present_value

    def present_value_vega(self, swaption: Swaption) -> float:
        """Change in present value for a unit change of the shifted Black volatility."""
        expiry, tenor, forward, annuity = self._underlying(swaption)
        vega = self.volatilities.price_vega(expiry, tenor, swaption.is_payer, swaption.strike, forward)
        return swaption.sign * swaption.notional * annuity * vega

    def present_value_sensitivity_model_params_sabr(self, swaption: Swaption) -> List[SwaptionSabrSensitivity]:
        """
        Point sensitivities of the present value to alpha, beta, rho and nu.

        dPV/dp = sign * notional * annuity * vega * dsigma/dp
        """
        expiry, tenor, forward, annuity = self._underlying(swaption)
        vols = self.volatilities
        vol_adjoint = vols.volatility_adjoint(expiry, tenor, swaption.strike, forward)
        vega = vols.price_vega(expiry, tenor, swaption.is_payer, swaption.strike, forward, vol_adjoint.value)
        factor = swaption.sign * swaption.notional * annuity * vega
        return [
            SwaptionSabrSensitivity(
                volatilities_name=vols.name,
                expiry=expiry,
                tenor=tenor,
                sensitivity_type=parameter_type,
                currency=vols.currency,
                sensitivity=factor * vol_adjoint.derivative(position),
            )
            for parameter_type, position in (
                (SabrParameterType.ALPHA, D_ALPHA),
                (SabrParameterType.BETA, D_BETA),
                (SabrParameterType.RHO, D_RHO),
                (SabrParameterType.NU, D_NU),
            )
        ]

    def parameter_sensitivity(self, swaption: Swaption) -> CurrencyParameterSensitivities:
        """Present value sensitivity to every SABR surface node."""
        return self.volatilities.parameter_sensitivity(
            self.present_value_sensitivity_model_params_sabr(swaption)
        )


__all__ = [
    "Swaption",
    "SwaptionResult",
    "SabrSwaptionPricer",
]
