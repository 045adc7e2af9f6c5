"""
Sensitivity types and raw market-data risk.

Provides:
- SwaptionSabrSensitivity: point sensitivity of a price to one SABR
  parameter at an (expiry, tenor) point of a volatility object
- CurrencyParameterSensitivity: sensitivity to every node of one surface
- CurrencyParameterSensitivities: collection keyed by (name, currency)
- SabrRawDataSensitivityCalculator: maps surface-node sensitivities back
  to the raw quotes used in calibration through the stored Jacobians
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from ..exceptions import CurrencyMismatchError
from ..vol.sabr import SabrParameterType
from ..vol.surfaces import SwaptionNodeMetadata

if TYPE_CHECKING:
    from ..vol.sabr_surface import SabrParametersSwaptionVolatilities

logger = logging.getLogger(__name__)

_SENSITIVITY_TYPES = (
    SabrParameterType.ALPHA,
    SabrParameterType.BETA,
    SabrParameterType.RHO,
    SabrParameterType.NU,
)


@dataclass(frozen=True)
class SwaptionSabrSensitivity:
    """
    Sensitivity to one SABR parameter at a point of a volatility object.

    Attributes:
        volatilities_name: Name of the SABR volatilities
        expiry: Time to expiry (years)
        tenor: Underlying tenor (years)
        sensitivity_type: Which SABR parameter
        currency: Currency of the sensitivity
        sensitivity: Value
    """
    volatilities_name: str
    expiry: float
    tenor: float
    sensitivity_type: SabrParameterType
    currency: str
    sensitivity: float

    def multiplied_by(self, factor: float) -> "SwaptionSabrSensitivity":
        return replace(self, sensitivity=self.sensitivity * factor)


@dataclass(frozen=True)
class CurrencyParameterSensitivity:
    """
    Sensitivity to each parameter of one named market-data object.

    Attributes:
        market_data_name: Surface or volatilities name
        currency: Currency of the values
        parameter_metadata: Metadata aligned with ``sensitivity``
        sensitivity: One value per parameter
    """
    market_data_name: str
    currency: str
    parameter_metadata: Tuple[SwaptionNodeMetadata, ...]
    sensitivity: np.ndarray

    def __post_init__(self):
        values = np.array(self.sensitivity, dtype=float)
        if values.ndim != 1 or len(values) != len(self.parameter_metadata):
            raise ValueError(
                f"Sensitivity length {values.shape} does not match "
                f"{len(self.parameter_metadata)} metadata entries"
            )
        values.setflags(write=False)
        object.__setattr__(self, "parameter_metadata", tuple(self.parameter_metadata))
        object.__setattr__(self, "sensitivity", values)

    @property
    def parameter_count(self) -> int:
        return len(self.sensitivity)

    def total(self) -> float:
        return float(np.sum(self.sensitivity))

    def multiplied_by(self, factor: float) -> "CurrencyParameterSensitivity":
        return replace(self, sensitivity=self.sensitivity * factor)

    def plus(self, other: "CurrencyParameterSensitivity") -> "CurrencyParameterSensitivity":
        """Add a sensitivity to the same object."""
        if other.market_data_name != self.market_data_name:
            raise ValueError(f"Cannot add {other.market_data_name} to {self.market_data_name}")
        if other.currency != self.currency:
            raise CurrencyMismatchError([self.currency, other.currency])
        if other.parameter_count != self.parameter_count:
            raise ValueError("Cannot add sensitivities with different parameter counts")
        return replace(self, sensitivity=self.sensitivity + other.sensitivity)

    def to_dataframe(self) -> pd.DataFrame:
        """Table of [name, currency, expiry, tenor, label, sensitivity]."""
        return pd.DataFrame({
            "name": self.market_data_name,
            "currency": self.currency,
            "expiry": [m.expiry for m in self.parameter_metadata],
            "tenor": [m.tenor for m in self.parameter_metadata],
            "label": [m.label for m in self.parameter_metadata],
            "sensitivity": self.sensitivity,
        })


@dataclass(frozen=True)
class CurrencyParameterSensitivities:
    """Collection of parameter sensitivities, at most one per (name, currency)."""
    sensitivities: Tuple[CurrencyParameterSensitivity, ...] = ()

    @classmethod
    def of(cls, sensitivities: Iterable[CurrencyParameterSensitivity]) -> "CurrencyParameterSensitivities":
        result = cls()
        for s in sensitivities:
            result = result.combined_with(s)
        return result

    def combined_with(
        self,
        other: "CurrencyParameterSensitivity | CurrencyParameterSensitivities"
    ) -> "CurrencyParameterSensitivities":
        """Merge, adding entries with the same name and currency."""
        incoming = other.sensitivities if isinstance(other, CurrencyParameterSensitivities) else (other,)
        merged: Dict[Tuple[str, str], CurrencyParameterSensitivity] = {
            (s.market_data_name, s.currency): s for s in self.sensitivities
        }
        for s in incoming:
            key = (s.market_data_name, s.currency)
            merged[key] = merged[key].plus(s) if key in merged else s
        return CurrencyParameterSensitivities(tuple(merged.values()))

    def find(self, name: str, currency: Optional[str] = None) -> Optional[CurrencyParameterSensitivity]:
        for s in self.sensitivities:
            if s.market_data_name == name and (currency is None or s.currency == currency):
                return s
        return None

    def get(self, name: str, currency: str) -> CurrencyParameterSensitivity:
        found = self.find(name, currency)
        if found is None:
            raise KeyError(f"No sensitivity for {name} in {currency}")
        return found

    def size(self) -> int:
        return len(self.sensitivities)

    def currencies(self) -> List[str]:
        return sorted({s.currency for s in self.sensitivities})

    def total(self, currency: str) -> float:
        return float(sum(s.total() for s in self.sensitivities if s.currency == currency))

    def __iter__(self):
        return iter(self.sensitivities)

    def __len__(self) -> int:
        return len(self.sensitivities)


class SabrRawDataSensitivityCalculator:
    """
    Converts SABR parameter-surface sensitivities to raw-quote sensitivities.

    Each calibrated node n stores d(param_n)/d(raw quote) for the quotes
    used at that node. The parallel sensitivity of node n is the change in
    value for a unit shift of all of its raw quotes:

        out[n] += sens[param][n] * sum(data_sensitivity[param][n])

    accumulated over alpha, beta, rho and nu.
    """

    def _parameter_entries(
        self,
        param_sensitivities: CurrencyParameterSensitivities,
        volatilities: "SabrParametersSwaptionVolatilities"
    ) -> Tuple[str, List[Tuple[CurrencyParameterSensitivity, Sequence[np.ndarray]]]]:
        currencies = param_sensitivities.currencies()
        if len(currencies) > 1:
            raise CurrencyMismatchError(currencies)

        if all(volatilities.data_sensitivity(t) is None for t in _SENSITIVITY_TYPES):
            raise ValueError("At least one SABR parameter must carry data sensitivity")

        entries = []
        for t in _SENSITIVITY_TYPES:
            data_sens = volatilities.data_sensitivity(t)
            surface = volatilities.surface(t)
            found = param_sensitivities.find(surface.name)
            if found is None or data_sens is None:
                continue
            if len(data_sens) != found.parameter_count:
                raise ValueError(
                    f"{surface.name}: {found.parameter_count} node sensitivities but "
                    f"{len(data_sens)} data sensitivity rows"
                )
            entries.append((found, data_sens))
        currency = currencies[0] if currencies else volatilities.currency
        return currency, entries

    def parallel_sensitivity(
        self,
        param_sensitivities: CurrencyParameterSensitivities,
        volatilities: "SabrParametersSwaptionVolatilities"
    ) -> CurrencyParameterSensitivity:
        """
        Sensitivity to a parallel shift of each node's raw quotes.

        Args:
            param_sensitivities: Sensitivities to the SABR parameter surfaces
            volatilities: Calibrated volatilities carrying data sensitivities

        Returns:
            Sensitivity named after the volatilities, indexed by calibration node

        Raises:
            CurrencyMismatchError: If the inputs mix currencies
            ValueError: If no parameter carries data sensitivity
        """
        currency, entries = self._parameter_entries(param_sensitivities, volatilities)
        metadata = volatilities.node_metadata()
        out = np.zeros(len(metadata))
        for sens, data_sens in entries:
            for node, row in enumerate(data_sens):
                out[node] += sens.sensitivity[node] * float(np.sum(row))
        logger.debug("Parallel raw-data sensitivity for %s: total %.6g", volatilities.name, out.sum())
        return CurrencyParameterSensitivity(volatilities.name, currency, metadata, out)

    def raw_data_sensitivity(
        self,
        param_sensitivities: CurrencyParameterSensitivities,
        volatilities: "SabrParametersSwaptionVolatilities"
    ) -> List[np.ndarray]:
        """
        Sensitivity to each individual raw quote.

        Returns:
            One array per calibration node, with one entry per raw quote used
            at that node (in strike order)
        """
        _, entries = self._parameter_entries(param_sensitivities, volatilities)
        reference = next(
            d for d in (volatilities.data_sensitivity(t) for t in _SENSITIVITY_TYPES) if d is not None
        )
        out = [np.zeros(len(row)) for row in reference]
        for sens, data_sens in entries:
            for node, row in enumerate(data_sens):
                out[node] = out[node] + sens.sensitivity[node] * np.asarray(row)
        return out


__all__ = [
    "SwaptionSabrSensitivity",
    "CurrencyParameterSensitivity",
    "CurrencyParameterSensitivities",
    "SabrRawDataSensitivityCalculator",
]
