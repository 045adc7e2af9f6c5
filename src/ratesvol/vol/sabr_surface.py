"""
SABR swaption volatilities.

Provides:
- SabrParametersSwaptionVolatilities: immutable view over calibrated
  alpha/beta/rho/nu/shift surfaces, queried by (time to expiry, tenor)
- tenor_year_fraction: swap tenor in years, rounded to whole months

Volatility, price, delta and vega are available for any (expiry, tenor,
strike, forward). Gamma and theta are not supported for SABR and raise
UnsupportedOperationError.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union
import logging

import numpy as np

from ..conventions import DayCount, SwapConvention, year_fraction
from ..exceptions import InvalidInputError, UnsupportedOperationError
from ..math.derivatives import ValueDerivatives
from ..options.base_models import (
    black_delta,
    black_price,
    black_vega,
)
from ..risk.sensitivities import (
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    SwaptionSabrSensitivity,
)
from .sabr import SabrParameterType, SabrParams, hagan_black_vol, hagan_black_vol_adjoint
from .surfaces import ParameterSurface, SwaptionNodeMetadata

logger = logging.getLogger(__name__)

DataSensitivity = Optional[Tuple[np.ndarray, ...]]

# Surface order used for global parameter indexing
_SURFACE_ORDER = (
    SabrParameterType.ALPHA,
    SabrParameterType.BETA,
    SabrParameterType.RHO,
    SabrParameterType.NU,
    SabrParameterType.SHIFT,
)


def tenor_year_fraction(start: date, end: date) -> float:
    """
    Swap tenor in years, rounded to the nearest whole month.

    Args:
        start: Swap start date
        end: Swap end date

    Returns:
        round((end - start) days / 365.25 * 12) / 12
    """
    months = np.floor((end - start).days / 365.25 * 12 + 0.5)
    return float(months / 12)


def _as_date(d: Union[date, datetime]) -> date:
    return d.date() if isinstance(d, datetime) else d


def _freeze_rows(rows: Optional[Sequence[Sequence[float]]]) -> DataSensitivity:
    if rows is None:
        return None
    frozen = []
    for row in rows:
        arr = np.array(row, dtype=float)
        arr.setflags(write=False)
        frozen.append(arr)
    return tuple(frozen)


@dataclass(frozen=True, eq=False)
class SabrParametersSwaptionVolatilities:
    """
    Swaption volatilities from SABR parameter surfaces.

    Surfaces are indexed by (time to expiry, tenor) in years. Strikes and
    forwards passed to the query methods are unshifted; the shift surface
    is applied before evaluating the SABR formula.

    Attributes:
        name: Volatilities name
        convention: Convention of the underlying swaps
        valuation_date_time: Valuation date and time
        day_count: Day count used for time to expiry
        alpha_surface: Calibrated alpha
        beta_surface: User-supplied beta
        rho_surface: Calibrated rho
        nu_surface: Calibrated nu
        shift_surface: User-supplied shift
        data_sensitivity_alpha: d alpha / d raw quote, one array per alpha node
        data_sensitivity_beta: d beta / d raw quote (normally None)
        data_sensitivity_rho: d rho / d raw quote, one array per rho node
        data_sensitivity_nu: d nu / d raw quote, one array per nu node
    """
    name: str
    convention: SwapConvention
    valuation_date_time: datetime
    day_count: DayCount
    alpha_surface: ParameterSurface
    beta_surface: ParameterSurface
    rho_surface: ParameterSurface
    nu_surface: ParameterSurface
    shift_surface: ParameterSurface
    data_sensitivity_alpha: DataSensitivity = field(default=None)
    data_sensitivity_beta: DataSensitivity = field(default=None)
    data_sensitivity_rho: DataSensitivity = field(default=None)
    data_sensitivity_nu: DataSensitivity = field(default=None)

    def __post_init__(self):
        for t in (SabrParameterType.ALPHA, SabrParameterType.BETA, SabrParameterType.RHO, SabrParameterType.NU):
            attr = f"data_sensitivity_{t.name.lower()}"
            rows = _freeze_rows(getattr(self, attr))
            surface = self.surface(t)
            if rows is not None and len(rows) != surface.parameter_count:
                raise InvalidInputError(
                    f"{surface.name} has {surface.parameter_count} nodes but "
                    f"{len(rows)} data sensitivity rows were given"
                )
            object.__setattr__(self, attr, rows)

    # ------------------------------------------------------------------
    # Dates and times
    # ------------------------------------------------------------------

    @property
    def valuation_date(self) -> date:
        return _as_date(self.valuation_date_time)

    @property
    def currency(self) -> str:
        return self.convention.currency

    def relative_time(self, d: Union[date, datetime]) -> float:
        """Year fraction from the valuation date under the day count."""
        return year_fraction(self.valuation_date, _as_date(d), self.day_count)

    def tenor(self, start: date, end: date) -> float:
        """Swap tenor in years, rounded to whole months."""
        return tenor_year_fraction(start, end)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def surface(self, parameter_type: SabrParameterType) -> ParameterSurface:
        match parameter_type:
            case SabrParameterType.ALPHA:
                return self.alpha_surface
            case SabrParameterType.BETA:
                return self.beta_surface
            case SabrParameterType.RHO:
                return self.rho_surface
            case SabrParameterType.NU:
                return self.nu_surface
            case SabrParameterType.SHIFT:
                return self.shift_surface
        raise InvalidInputError(f"Unknown SABR parameter type: {parameter_type}")

    def alpha(self, expiry: float, tenor: float) -> float:
        return self.alpha_surface.z_value(expiry, tenor)

    def beta(self, expiry: float, tenor: float) -> float:
        return self.beta_surface.z_value(expiry, tenor)

    def rho(self, expiry: float, tenor: float) -> float:
        return self.rho_surface.z_value(expiry, tenor)

    def nu(self, expiry: float, tenor: float) -> float:
        return self.nu_surface.z_value(expiry, tenor)

    def shift(self, expiry: float, tenor: float) -> float:
        return self.shift_surface.z_value(expiry, tenor)

    def parameters(self, expiry: float, tenor: float) -> SabrParams:
        """Interpolated SABR parameters at (expiry, tenor)."""
        return SabrParams(
            alpha=self.alpha(expiry, tenor),
            beta=self.beta(expiry, tenor),
            rho=self.rho(expiry, tenor),
            nu=self.nu(expiry, tenor),
            shift=self.shift(expiry, tenor),
        )

    def node_metadata(self) -> Tuple[SwaptionNodeMetadata, ...]:
        """Calibration node metadata, in (expiry, tenor) order."""
        return self.alpha_surface.parameter_metadata_list

    def data_sensitivity(self, parameter_type: SabrParameterType) -> DataSensitivity:
        """Stored d param / d raw quote rows, or None."""
        match parameter_type:
            case SabrParameterType.ALPHA:
                return self.data_sensitivity_alpha
            case SabrParameterType.BETA:
                return self.data_sensitivity_beta
            case SabrParameterType.RHO:
                return self.data_sensitivity_rho
            case SabrParameterType.NU:
                return self.data_sensitivity_nu
        return None

    def with_data_sensitivities(
        self,
        alpha: Optional[Sequence[Sequence[float]]] = None,
        beta: Optional[Sequence[Sequence[float]]] = None,
        rho: Optional[Sequence[Sequence[float]]] = None,
        nu: Optional[Sequence[Sequence[float]]] = None
    ) -> "SabrParametersSwaptionVolatilities":
        """Copy carrying the given data sensitivities."""
        return replace(
            self,
            data_sensitivity_alpha=alpha,
            data_sensitivity_beta=beta,
            data_sensitivity_rho=rho,
            data_sensitivity_nu=nu,
        )

    # ------------------------------------------------------------------
    # Volatility and price
    # ------------------------------------------------------------------

    def volatility(self, expiry: float, tenor: float, strike: float, forward: float) -> float:
        """
        Shifted Black volatility.

        Args:
            expiry: Time to expiry (years)
            tenor: Swap tenor (years)
            strike: Unshifted strike
            forward: Unshifted forward swap rate

        Returns:
            Black volatility of the shifted rate
        """
        p = self.parameters(expiry, tenor)
        return hagan_black_vol(forward + p.shift, strike + p.shift, expiry, p.alpha, p.beta, p.rho, p.nu)

    def volatility_adjoint(
        self,
        expiry: float,
        tenor: float,
        strike: float,
        forward: float
    ) -> ValueDerivatives:
        """Shifted Black volatility with (forward, strike, alpha, beta, rho, nu) derivatives."""
        p = self.parameters(expiry, tenor)
        return hagan_black_vol_adjoint(forward + p.shift, strike + p.shift, expiry, p.alpha, p.beta, p.rho, p.nu)

    def _shifted(self, expiry: float, tenor: float, strike: float, forward: float,
                 volatility: Optional[float]) -> Tuple[float, float, float]:
        shift = self.shift(expiry, tenor)
        if volatility is None:
            volatility = self.volatility(expiry, tenor, strike, forward)
        return forward + shift, strike + shift, volatility

    def price(self, expiry: float, tenor: float, is_call: bool, strike: float, forward: float,
              volatility: Optional[float] = None) -> float:
        """Undiscounted shifted Black price; SABR volatility used if none given."""
        F, K, vol = self._shifted(expiry, tenor, strike, forward, volatility)
        return black_price(F, K, expiry, vol, is_call)

    def price_delta(self, expiry: float, tenor: float, is_call: bool, strike: float, forward: float,
                    volatility: Optional[float] = None) -> float:
        """Black delta at fixed volatility."""
        F, K, vol = self._shifted(expiry, tenor, strike, forward, volatility)
        return black_delta(F, K, expiry, vol, is_call)

    def price_vega(self, expiry: float, tenor: float, is_call: bool, strike: float, forward: float,
                   volatility: Optional[float] = None) -> float:
        """Black vega."""
        F, K, vol = self._shifted(expiry, tenor, strike, forward, volatility)
        return black_vega(F, K, expiry, vol)

    def price_gamma(self, expiry: float, tenor: float, is_call: bool, strike: float, forward: float,
                    volatility: Optional[float] = None) -> float:
        raise UnsupportedOperationError("price_gamma", "SABR")

    def price_theta(self, expiry: float, tenor: float, is_call: bool, strike: float, forward: float,
                    volatility: Optional[float] = None) -> float:
        raise UnsupportedOperationError("price_theta", "SABR")

    # ------------------------------------------------------------------
    # Sensitivities
    # ------------------------------------------------------------------

    def parameter_sensitivity(
        self,
        point_sensitivities: Iterable[SwaptionSabrSensitivity]
    ) -> CurrencyParameterSensitivities:
        """
        Map point sensitivities onto surface nodes.

        Each point sensitivity is spread over the nodes of the surface of its
        parameter type using the interpolation weights at its (expiry, tenor).
        Point sensitivities of other volatilities are ignored.
        """
        result = CurrencyParameterSensitivities()
        for point in point_sensitivities:
            if point.volatilities_name != self.name:
                continue
            surface = self.surface(point.sensitivity_type)
            weights = surface.z_value_parameter_sensitivity(point.expiry, point.tenor)
            result = result.combined_with(CurrencyParameterSensitivity(
                surface.name,
                point.currency,
                surface.parameter_metadata_list,
                weights * point.sensitivity,
            ))
        return result

    # ------------------------------------------------------------------
    # Parameter access and copy-on-write updates
    # ------------------------------------------------------------------

    def find_surface(self, name: str) -> Optional[ParameterSurface]:
        for t in _SURFACE_ORDER:
            surface = self.surface(t)
            if surface.name == name:
                return surface
        return None

    @property
    def parameter_count(self) -> int:
        return sum(self.surface(t).parameter_count for t in _SURFACE_ORDER)

    def _locate(self, index: int) -> Tuple[SabrParameterType, int]:
        if index < 0:
            raise IndexError(f"Parameter index {index} out of range")
        remaining = index
        for t in _SURFACE_ORDER:
            count = self.surface(t).parameter_count
            if remaining < count:
                return t, remaining
            remaining -= count
        raise IndexError(f"Parameter index {index} out of range for {self.parameter_count} parameters")

    def parameter(self, index: int) -> float:
        t, local = self._locate(index)
        return self.surface(t).parameter(local)

    def parameter_metadata(self, index: int) -> SwaptionNodeMetadata:
        t, local = self._locate(index)
        return self.surface(t).parameter_metadata(local)

    def _with_surface(self, parameter_type: SabrParameterType,
                      surface: ParameterSurface) -> "SabrParametersSwaptionVolatilities":
        return replace(self, **{f"{parameter_type.name.lower()}_surface": surface})

    def with_parameter(self, index: int, value: float) -> "SabrParametersSwaptionVolatilities":
        """Copy with one parameter changed; indices run over alpha, beta, rho, nu, shift."""
        t, local = self._locate(index)
        return self._with_surface(t, self.surface(t).with_parameter(local, value))

    def with_perturbation(
        self,
        perturbation: Callable[[int, float, SwaptionNodeMetadata], float]
    ) -> "SabrParametersSwaptionVolatilities":
        """Copy with every parameter passed through ``perturbation(index, value, metadata)``."""
        result = self
        offset = 0
        for t in _SURFACE_ORDER:
            surface = self.surface(t)
            start = offset
            result = result._with_surface(
                t, surface.with_perturbation(lambda i, v, m, start=start: perturbation(start + i, v, m))
            )
            offset += surface.parameter_count
        return result

    def __repr__(self) -> str:
        return (
            f"SabrParametersSwaptionVolatilities(name={self.name!r}, "
            f"valuation_date={self.valuation_date}, nodes={self.alpha_surface.parameter_count})"
        )


__all__ = [
    "SabrParametersSwaptionVolatilities",
    "tenor_year_fraction",
]
