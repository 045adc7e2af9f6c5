"""
Raw swaption volatility quotes and their normalisation.

Provides:
- RawOptionData: one tenor's expiry x strike grid of market quotes
- Strike-like conventions (absolute strike, simple and log moneyness)
- Conversion of price, normal vol and shifted Black vol quotes to shifted
  Black volatilities at a target shift, together with the derivative of
  each converted volatility w.r.t. its raw quote
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union
import logging

import numpy as np
import pandas as pd

from ..config import RootFinderConfig
from ..dates import DateUtils
from ..exceptions import InvalidInputError, UnsupportedQuoteTypeError
from ..options.base_models import (
    black_implied_volatility,
    black_price,
    black_vega,
    normal_price,
    normal_vega,
)

logger = logging.getLogger(__name__)


class ValueType(Enum):
    """Type of a raw option quote."""
    NORMAL_VOLATILITY = "NormalVolatility"
    BLACK_VOLATILITY = "BlackVolatility"
    PRICE = "Price"


class StrikeType(Enum):
    """Meaning of the strike-like axis of RawOptionData."""
    STRIKE = "Strike"
    SIMPLE_MONEYNESS = "SimpleMoneyness"
    LOG_MONEYNESS = "LogMoneyness"


@dataclass(frozen=True)
class RawOptionData:
    """
    Raw option quotes for one swap tenor.

    Attributes:
        expiries: Expiry tenors, e.g. ("1Y", "2Y")
        strikes: Strike-like values shared by all expiries
        strike_type: Meaning of ``strikes``
        data: Quotes, shape (len(expiries), len(strikes)); NaN marks a missing quote
        data_type: Type of the quotes
        shift: Shift of the input Black volatilities (BLACK_VOLATILITY only);
            None means unshifted
    """
    expiries: Tuple[str, ...]
    strikes: np.ndarray
    strike_type: StrikeType
    data: np.ndarray
    data_type: ValueType
    shift: Optional[float] = None

    def __post_init__(self):
        expiries = tuple(str(e).upper() for e in self.expiries)
        strikes = np.array(self.strikes, dtype=float)
        data = np.array(self.data, dtype=float)

        if strikes.ndim != 1:
            raise InvalidInputError(f"strikes must be one-dimensional, got shape {strikes.shape}")
        if data.shape != (len(expiries), len(strikes)):
            raise InvalidInputError(
                f"data shape {data.shape} does not match expiries x strikes "
                f"({len(expiries)}, {len(strikes)})"
            )
        if len(set(expiries)) != len(expiries):
            raise InvalidInputError(f"Duplicate expiries: {expiries}")
        if not isinstance(self.data_type, ValueType):
            raise UnsupportedQuoteTypeError(self.data_type, [t.name for t in ValueType])
        if not isinstance(self.strike_type, StrikeType):
            raise InvalidInputError(f"Unsupported strike type: {self.strike_type}")
        for e in expiries:
            DateUtils.parse_tenor(e)

        strikes.setflags(write=False)
        data.setflags(write=False)
        object.__setattr__(self, "expiries", expiries)
        object.__setattr__(self, "strikes", strikes)
        object.__setattr__(self, "data", data)

    def expiry_index(self, expiry: str) -> int:
        """Position of an expiry tenor in the grid."""
        key = str(expiry).upper()
        try:
            return self.expiries.index(key)
        except ValueError:
            raise InvalidInputError(f"Expiry {expiry} not in {self.expiries}") from None

    def available_smile_at_expiry(self, expiry: Union[str, int]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Strike-like values and quotes present at one expiry.

        Args:
            expiry: Expiry tenor or its index

        Returns:
            (strikes, values) with missing (NaN) quotes removed
        """
        idx = expiry if isinstance(expiry, (int, np.integer)) else self.expiry_index(expiry)
        row = self.data[idx]
        mask = ~np.isnan(row)
        return self.strikes[mask], row[mask]

    def to_dataframe(self) -> pd.DataFrame:
        """Long-format table with columns [expiry, strike, value]; missing quotes dropped."""
        records = []
        for i, expiry in enumerate(self.expiries):
            strikes, values = self.available_smile_at_expiry(i)
            for k, v in zip(strikes, values):
                records.append({"expiry": expiry, "strike": float(k), "value": float(v)})
        return pd.DataFrame(records, columns=["expiry", "strike", "value"])

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        strike_type: StrikeType,
        data_type: ValueType,
        shift: Optional[float] = None
    ) -> "RawOptionData":
        """
        Build from a long-format table.

        Args:
            df: DataFrame with columns [expiry, strike, value]
            strike_type: Meaning of the strike column
            data_type: Type of the value column
            shift: Input shift for Black volatility quotes

        Returns:
            RawOptionData with expiries sorted by tenor length
        """
        df = df.copy()
        df.columns = [c.strip().lower() for c in df.columns]
        missing = {"expiry", "strike", "value"} - set(df.columns)
        if missing:
            raise InvalidInputError(f"Missing columns: {sorted(missing)}")

        df["expiry"] = df["expiry"].astype(str).str.strip().str.upper()
        grid = df.pivot_table(index="expiry", columns="strike", values="value", aggfunc="last")
        expiries = sorted(grid.index, key=DateUtils.tenor_to_years)
        grid = grid.loc[expiries].sort_index(axis=1)

        return cls(
            expiries=tuple(expiries),
            strikes=grid.columns.to_numpy(dtype=float),
            strike_type=strike_type,
            data=grid.to_numpy(dtype=float),
            data_type=data_type,
            shift=shift,
        )


def strikes_from_strike_like(
    forward: float,
    strike_like: Sequence[float],
    strike_type: StrikeType
) -> np.ndarray:
    """
    Absolute (unshifted) strikes from strike-like values.

    STRIKE: k; SIMPLE_MONEYNESS: forward + k; LOG_MONEYNESS: forward * exp(k).
    """
    k = np.asarray(strike_like, dtype=float)
    match strike_type:
        case StrikeType.STRIKE:
            return k.copy()
        case StrikeType.SIMPLE_MONEYNESS:
            return forward + k
        case StrikeType.LOG_MONEYNESS:
            return forward * np.exp(k)
    raise InvalidInputError(f"Unsupported strike type: {strike_type}")


def _check_lengths(strikes: np.ndarray, values: np.ndarray) -> None:
    if strikes.shape != values.shape:
        raise InvalidInputError(
            f"strikes and quotes lengths differ: {strikes.shape} vs {values.shape}"
        )


def _vol_derivative(vega_in: float, vega_out: float, strike: float) -> float:
    """Ratio of vegas; zero when the output vega has underflowed."""
    if vega_out > 0:
        return vega_in / vega_out
    logger.debug("Black vega underflow at strike %s, quote sensitivity set to 0", strike)
    return 0.0


def black_vols_shifted_from_prices(
    forward: float,
    shift_output: float,
    T: float,
    strikes: Sequence[float],
    prices: Sequence[float],
    config: Optional[RootFinderConfig] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Shifted Black volatilities implied from undiscounted call (payer) prices.

    Args:
        forward: Forward rate
        shift_output: Shift of the output Black volatilities
        T: Time to expiry
        strikes: Absolute strikes
        prices: Undiscounted call prices

    Returns:
        (vols, dvol/dprice)
    """
    strikes = np.asarray(strikes, dtype=float)
    prices = np.asarray(prices, dtype=float)
    _check_lengths(strikes, prices)
    f_out = forward + shift_output
    vols = np.empty(len(strikes))
    derivs = np.empty(len(strikes))
    for i, (k, p) in enumerate(zip(strikes, prices)):
        k_out = k + shift_output
        vols[i] = black_implied_volatility(p, f_out, k_out, T, True, config)
        vega = black_vega(f_out, k_out, T, vols[i])
        derivs[i] = _vol_derivative(1.0, vega, k)
    return vols, derivs


def black_vols_shifted_from_normal_vols(
    forward: float,
    shift_output: float,
    T: float,
    strikes: Sequence[float],
    normal_vols: Sequence[float],
    config: Optional[RootFinderConfig] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Shifted Black volatilities from normal (Bachelier) volatilities.

    Each quote is priced under the normal model, then the price is inverted
    under shifted Black. The derivative is normal vega / Black vega.

    Returns:
        (vols, dvol/dnormal_vol)
    """
    strikes = np.asarray(strikes, dtype=float)
    normal_vols = np.asarray(normal_vols, dtype=float)
    _check_lengths(strikes, normal_vols)
    f_out = forward + shift_output
    vols = np.empty(len(strikes))
    derivs = np.empty(len(strikes))
    for i, (k, sigma_n) in enumerate(zip(strikes, normal_vols)):
        k_out = k + shift_output
        price = normal_price(forward, k, T, sigma_n, True)
        vols[i] = black_implied_volatility(price, f_out, k_out, T, True, config)
        vega_out = black_vega(f_out, k_out, T, vols[i])
        derivs[i] = _vol_derivative(normal_vega(forward, k, T, sigma_n), vega_out, k)
    return vols, derivs


def black_vols_shifted_from_black_vols_shifted(
    forward: float,
    shift_output: float,
    T: float,
    strikes: Sequence[float],
    black_vols: Sequence[float],
    shift_input: float,
    config: Optional[RootFinderConfig] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Shifted Black volatilities at one shift from those at another.

    Identity with unit derivative when the shifts are equal; otherwise the
    quote is priced at the input shift and inverted at the output shift.

    Returns:
        (vols, dvol_out/dvol_in)
    """
    strikes = np.asarray(strikes, dtype=float)
    black_vols = np.asarray(black_vols, dtype=float)
    _check_lengths(strikes, black_vols)
    if shift_input == shift_output:
        return black_vols.copy(), np.ones(len(black_vols))

    f_in, f_out = forward + shift_input, forward + shift_output
    vols = np.empty(len(strikes))
    derivs = np.empty(len(strikes))
    for i, (k, sigma) in enumerate(zip(strikes, black_vols)):
        k_in, k_out = k + shift_input, k + shift_output
        price = black_price(f_in, k_in, T, sigma, True)
        vols[i] = black_implied_volatility(price, f_out, k_out, T, True, config)
        vega_out = black_vega(f_out, k_out, T, vols[i])
        derivs[i] = _vol_derivative(black_vega(f_in, k_in, T, sigma), vega_out, k)
    return vols, derivs


def normalize_quotes(
    data_type: ValueType,
    forward: float,
    shift_output: float,
    T: float,
    strikes: Sequence[float],
    values: Sequence[float],
    shift_input: Optional[float] = None,
    config: Optional[RootFinderConfig] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert raw quotes of any type to shifted Black volatilities.

    Args:
        data_type: Type of the raw quotes
        forward: Forward rate
        shift_output: Target shift
        T: Time to expiry
        strikes: Absolute strikes
        values: Raw quotes
        shift_input: Input shift (BLACK_VOLATILITY only), zero when None

    Returns:
        (shifted Black vols, derivative of each vol w.r.t. its raw quote)
    """
    match data_type:
        case ValueType.BLACK_VOLATILITY:
            shift_in = 0.0 if shift_input is None else shift_input
            return black_vols_shifted_from_black_vols_shifted(
                forward, shift_output, T, strikes, values, shift_in, config
            )
        case ValueType.PRICE:
            return black_vols_shifted_from_prices(forward, shift_output, T, strikes, values, config)
        case ValueType.NORMAL_VOLATILITY:
            return black_vols_shifted_from_normal_vols(forward, shift_output, T, strikes, values, config)
    raise UnsupportedQuoteTypeError(data_type, [t.name for t in ValueType])


__all__ = [
    "ValueType",
    "StrikeType",
    "RawOptionData",
    "strikes_from_strike_like",
    "black_vols_shifted_from_prices",
    "black_vols_shifted_from_normal_vols",
    "black_vols_shifted_from_black_vols_shifted",
    "normalize_quotes",
]
