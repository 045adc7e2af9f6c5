"""
SABR swaption calibration.

Calibrates SABR parameter surfaces from raw swaption quotes:
- Quotes may be prices, normal vols or shifted Black vols
- Beta and shift are supplied as surfaces and held fixed
- Alpha, rho and nu are fitted per (expiry, tenor) node by least squares
  from four starting points
- The Jacobian of the fitted parameters w.r.t. the raw quotes is stored
  with the result for raw-data risk
- Alpha alone can be re-solved from ATM quotes, keeping beta/rho/nu/shift
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar, Union
import logging

import numpy as np
import pandas as pd

from ..config import CalibrationConfig
from ..conventions import DayCount, SwapConvention, year_fraction
from ..dates import DateUtils
from ..exceptions import FitFailureError, InvalidInputError, RootFindingError
from ..market_state import RatesProvider, ResolvedSwap
from ..math.leastsquare import LeastSquareResult
from .quotes import RawOptionData, StrikeType, ValueType, normalize_quotes, strikes_from_strike_like
from .sabr import (
    FixedParameters,
    SabrModelFitter,
    SabrParameterType,
    SabrParams,
    alpha_from_atm_volatility,
)
from .sabr_surface import SabrParametersSwaptionVolatilities, tenor_year_fraction
from .surfaces import InterpolatedNodalSurface, ParameterSurface, SwaptionNodeMetadata

logger = logging.getLogger(__name__)

# Chi-square a starting point must beat to be retained
INITIAL_BEST_CHI_SQ = 1e12

R = TypeVar("R")


@dataclass(frozen=True, eq=False)
class SabrNodeResult:
    """
    Calibrated SABR parameters at one (expiry, tenor) node.

    Attributes:
        expiry: Expiry tenor, e.g. "1Y"
        tenor: Swap tenor, e.g. "5Y"
        time_to_expiry: Year fraction to the exercise date
        tenor_years: Swap tenor in years
        forward: Forward swap rate
        params: Fitted parameters (beta and shift as supplied)
        chi_sq: Chi-square of the best fit
        strikes: Absolute strikes of the quotes used
        inverse_jacobian: d(alpha, beta, rho, nu) / d(shifted Black vols)
        data_sensitivity: d(alpha, beta, rho, nu) / d(raw quotes)
    """
    expiry: str
    tenor: str
    time_to_expiry: float
    tenor_years: float
    forward: float
    params: SabrParams
    chi_sq: float
    strikes: np.ndarray
    inverse_jacobian: np.ndarray
    data_sensitivity: np.ndarray

    @property
    def n_quotes(self) -> int:
        return len(self.strikes)

    @property
    def metadata(self) -> SwaptionNodeMetadata:
        return SwaptionNodeMetadata.of(self.time_to_expiry, self.tenor_years, f"{self.expiry} x {self.tenor}")


@dataclass(frozen=True)
class FailedNode:
    """A node skipped because its fit failed."""
    expiry: str
    tenor: str
    error: FitFailureError


@dataclass(frozen=True, eq=False)
class SabrCalibrationResult:
    """
    Output of a grid calibration.

    Attributes:
        volatilities: Calibrated volatilities with data sensitivities
        nodes: Calibrated nodes in (expiry, tenor) order
        failed_nodes: Nodes skipped when stop_on_failure is False
    """
    volatilities: SabrParametersSwaptionVolatilities
    nodes: Tuple[SabrNodeResult, ...]
    failed_nodes: Tuple[FailedNode, ...] = ()

    def report(self) -> pd.DataFrame:
        """One row per node with fitted parameters and fit status."""
        rows = []
        for node in self.nodes:
            rows.append({
                "expiry": node.expiry,
                "tenor": node.tenor,
                "time_to_expiry": node.time_to_expiry,
                "tenor_years": node.tenor_years,
                "forward": node.forward,
                **node.params.to_dict(),
                "chi_sq": node.chi_sq,
                "n_quotes": node.n_quotes,
                "status": "calibrated",
            })
        for failed in self.failed_nodes:
            rows.append({
                "expiry": failed.expiry,
                "tenor": failed.tenor,
                "status": "failed",
            })
        columns = [
            "expiry", "tenor", "time_to_expiry", "tenor_years", "forward",
            "alpha", "beta", "rho", "nu", "shift", "chi_sq", "n_quotes", "status",
        ]
        return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True, eq=False)
class AtmCalibrationResult:
    """
    Output of an ATM alpha recalibration.

    Attributes:
        volatilities: Volatilities on the ATM nodes with alpha data sensitivity
        failed_nodes: Nodes skipped when stop_on_failure is False
    """
    volatilities: SabrParametersSwaptionVolatilities
    failed_nodes: Tuple[FailedNode, ...] = ()


def select_best_fit(fits: Sequence[Optional[LeastSquareResult]]) -> Optional[int]:
    """
    Index of the fit with the lowest chi-square.

    Failed starts are passed as None. A fit replaces the current best only
    if its chi-square is strictly lower, so the first of equal fits is kept.
    """
    best_index = None
    best_chi_sq = INITIAL_BEST_CHI_SQ
    for i, fit in enumerate(fits):
        if fit is not None and fit.chi_sq < best_chi_sq:
            best_index, best_chi_sq = i, fit.chi_sq
    return best_index


def _as_date(d: Union[date, datetime]) -> date:
    return d.date() if isinstance(d, datetime) else d


@dataclass(frozen=True)
class _NodeDates:
    exercise_date: date
    time_to_expiry: float
    swap: ResolvedSwap
    tenor_years: float


class SabrSwaptionCalibrator:
    """
    Calibrator of SABR swaption volatilities with fixed beta and shift.

    Args:
        config: Fitter, root finder and failure policy settings
    """

    def __init__(self, config: Optional[CalibrationConfig] = None):
        self.config = config or CalibrationConfig.default()

    # ------------------------------------------------------------------
    # Node dates
    # ------------------------------------------------------------------

    def node_dates(
        self,
        convention: SwapConvention,
        calibration_date: date,
        day_count: DayCount,
        expiry: str,
        tenor: str
    ) -> _NodeDates:
        """Exercise date, time to expiry and underlying swap of one node."""
        exercise_date = convention.adjust(DateUtils.add_tenor(calibration_date, expiry, convention.holidays))
        time_to_expiry = year_fraction(calibration_date, exercise_date, day_count)
        if time_to_expiry <= 0:
            raise InvalidInputError(f"Expiry {expiry} gives non-positive time to expiry {time_to_expiry}")
        swap = ResolvedSwap.from_convention(convention, exercise_date, tenor)
        return _NodeDates(
            exercise_date=exercise_date,
            time_to_expiry=time_to_expiry,
            swap=swap,
            tenor_years=tenor_year_fraction(swap.effective_date, swap.maturity_date),
        )

    @staticmethod
    def _surface_value(surface: ParameterSurface, x: float, y: float) -> float:
        value = surface.z_value(x, y)
        if not np.isfinite(value):
            raise InvalidInputError(f"Surface {surface.name} has no value at expiry={x:.4f}, tenor={y:.4f}")
        return value

    # ------------------------------------------------------------------
    # Single node
    # ------------------------------------------------------------------

    def calibrate_node(
        self,
        convention: SwapConvention,
        calibration_date: Union[date, datetime],
        day_count: DayCount,
        expiry: str,
        tenor: str,
        strike_like: Sequence[float],
        values: Sequence[float],
        strike_type: StrikeType,
        data_type: ValueType,
        rates_provider: RatesProvider,
        beta_surface: ParameterSurface,
        shift_surface: ParameterSurface,
        shift_input: Optional[float] = None
    ) -> SabrNodeResult:
        """
        Calibrate alpha, rho and nu at one node.

        Args:
            convention: Underlying swap convention
            calibration_date: Calibration date
            day_count: Day count for time to expiry
            expiry: Expiry tenor
            tenor: Swap tenor
            strike_like: Strike-like values of the quotes
            values: Raw quotes
            strike_type: Meaning of ``strike_like``
            data_type: Type of the raw quotes
            rates_provider: Source of the forward swap rate
            beta_surface: Fixed beta
            shift_surface: Fixed shift
            shift_input: Shift of Black volatility quotes

        Returns:
            SabrNodeResult

        Raises:
            FitFailureError: If the quotes cannot be converted or no start converges
            InvalidInputError: If beta or shift is missing at the node
        """
        cfg = self.config.fitter
        dates = self.node_dates(convention, _as_date(calibration_date), day_count, expiry, tenor)
        T = dates.time_to_expiry
        beta = self._surface_value(beta_surface, T, dates.tenor_years)
        shift = self._surface_value(shift_surface, T, dates.tenor_years)
        forward = rates_provider.forward_rate(dates.swap)

        strikes = strikes_from_strike_like(forward, strike_like, strike_type)
        if forward + shift <= 0 or np.any(strikes + shift <= 0):
            raise FitFailureError(
                f"Shifted forward {forward + shift:.6g} and strikes {strikes + shift} must be positive",
                expiry, tenor,
            )
        try:
            vols, dvol_dquote = normalize_quotes(
                data_type, forward, shift, T, strikes, values, shift_input, self.config.root_finder
            )
        except (InvalidInputError, RootFindingError) as exc:
            raise FitFailureError(f"Quote conversion failed: {exc}", expiry, tenor) from exc

        fitter = SabrModelFitter(
            forward + shift, strikes + shift, T, vols, np.full(len(vols), cfg.error), cfg
        )
        alpha0 = cfg.alpha_start_vol / (forward + shift) ** beta
        rho0 = -0.5 * beta + 0.5 * (1 - beta)
        starts = [
            (alpha, nu)
            for alpha in (alpha0, cfg.alpha_high_multiplier * alpha0)
            for nu in cfg.nu_starts
        ]

        fits: List[Optional[LeastSquareResult]] = []
        last_error: Optional[FitFailureError] = None
        for alpha, nu in starts:
            try:
                fits.append(fitter.solve(np.array([alpha, beta, rho0, nu]), FixedParameters.beta_fixed()))
            except FitFailureError as exc:
                logger.debug("Start (alpha=%.6g, nu=%.3g) failed at %s x %s: %s", alpha, nu, expiry, tenor, exc)
                fits.append(None)
                last_error = exc

        best_index = select_best_fit(fits)
        if best_index is None:
            raise FitFailureError(f"All {len(starts)} starting points failed. Last error: {last_error}", expiry, tenor)
        best = fits[best_index]
        logger.debug(
            "Calibrated %s x %s from start %d: chi_sq=%.3e, %d evaluations",
            expiry, tenor, best_index, best.chi_sq, best.n_evaluations
        )

        alpha, _, rho, nu = best.parameters
        return SabrNodeResult(
            expiry=expiry,
            tenor=tenor,
            time_to_expiry=T,
            tenor_years=dates.tenor_years,
            forward=forward,
            params=SabrParams(alpha=alpha, beta=beta, rho=rho, nu=nu, shift=shift),
            chi_sq=best.chi_sq,
            strikes=strikes,
            inverse_jacobian=best.inverse_jacobian,
            data_sensitivity=best.inverse_jacobian * dvol_dquote[np.newaxis, :],
        )

    # ------------------------------------------------------------------
    # Grid
    # ------------------------------------------------------------------

    def _map(self, fn: Callable[..., R], tasks: Sequence[tuple]) -> List[R]:
        workers = self.config.max_workers
        if workers is None or workers == 1 or len(tasks) < 2:
            return [fn(*task) for task in tasks]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(lambda task: fn(*task), tasks))

    @staticmethod
    def _handle_failure(
        exc: FitFailureError,
        expiry: str,
        tenor: str,
        stop_on_failure: bool
    ) -> FailedNode:
        if exc.expiry is not None:
            tagged = exc
            if stop_on_failure:
                raise exc
        else:
            tagged = exc.with_node(expiry, tenor)
            if stop_on_failure:
                raise tagged from exc
        logger.warning(
            "SABR calibration failed at expiry %s, tenor %s; node dropped from the surfaces: %s",
            expiry, tenor, exc.details
        )
        return FailedNode(expiry, tenor, tagged)

    def calibrate_grid(
        self,
        name: str,
        convention: SwapConvention,
        calibration_datetime: Union[date, datetime],
        day_count: DayCount,
        tenors: Sequence[str],
        data: Sequence[RawOptionData],
        rates_provider: RatesProvider,
        beta_surface: ParameterSurface,
        shift_surface: ParameterSurface,
        stop_on_failure: Optional[bool] = None
    ) -> SabrCalibrationResult:
        """
        Calibrate every (expiry, tenor) node that has quotes.

        Args:
            name: Name of the resulting volatilities
            convention: Underlying swap convention
            calibration_datetime: Valuation date-time
            day_count: Day count for time to expiry
            tenors: Swap tenors, aligned with ``data``
            data: Raw quotes, one RawOptionData per tenor
            rates_provider: Source of forward swap rates
            beta_surface: Fixed beta
            shift_surface: Fixed shift
            stop_on_failure: Overrides the configured failure policy

        Returns:
            SabrCalibrationResult with nodes sorted by (expiry, tenor)

        Raises:
            FitFailureError: On a failed node when stopping on failure, or
                when no node calibrates
        """
        if len(tenors) != len(data):
            raise InvalidInputError(f"Got {len(tenors)} tenors but {len(data)} data sets")
        stop = self.config.stop_on_failure if stop_on_failure is None else stop_on_failure
        calibration_date = _as_date(calibration_datetime)

        tasks = []
        for tenor, raw in zip(tenors, data):
            for i, expiry in enumerate(raw.expiries):
                strike_like, values = raw.available_smile_at_expiry(i)
                if len(values) == 0:
                    logger.debug("No quotes at %s x %s", expiry, tenor)
                    continue
                tasks.append((tenor, raw, expiry, strike_like, values))

        def run(tenor, raw, expiry, strike_like, values):
            try:
                return self.calibrate_node(
                    convention, calibration_date, day_count, expiry, tenor,
                    strike_like, values, raw.strike_type, raw.data_type,
                    rates_provider, beta_surface, shift_surface, raw.shift,
                )
            except FitFailureError as exc:
                return self._handle_failure(exc, expiry, tenor, stop)

        outcomes = self._map(run, tasks)
        nodes = sorted(
            (o for o in outcomes if isinstance(o, SabrNodeResult)),
            key=lambda node: (node.time_to_expiry, node.tenor_years),
        )
        failed = tuple(o for o in outcomes if isinstance(o, FailedNode))
        if not nodes:
            raise FitFailureError(f"No node of {name} could be calibrated")
        logger.info("Calibrated %d SABR nodes for %s (%d failed)", len(nodes), name, len(failed))

        volatilities = self._build_volatilities(
            name, convention, calibration_datetime, day_count, nodes
        )
        return SabrCalibrationResult(volatilities, tuple(nodes), failed)

    def calibrate_with_fixed_beta_and_shift(
        self,
        name: str,
        convention: SwapConvention,
        calibration_datetime: Union[date, datetime],
        day_count: DayCount,
        tenors: Sequence[str],
        data: Sequence[RawOptionData],
        rates_provider: RatesProvider,
        beta_surface: ParameterSurface,
        shift_surface: ParameterSurface,
        stop_on_failure: Optional[bool] = None
    ) -> SabrParametersSwaptionVolatilities:
        """Calibrate the grid and return only the volatilities (see calibrate_grid)."""
        return self.calibrate_grid(
            name, convention, calibration_datetime, day_count, tenors, data,
            rates_provider, beta_surface, shift_surface, stop_on_failure,
        ).volatilities

    @staticmethod
    def _build_volatilities(
        name: str,
        convention: SwapConvention,
        calibration_datetime: Union[date, datetime],
        day_count: DayCount,
        nodes: Sequence[SabrNodeResult]
    ) -> SabrParametersSwaptionVolatilities:
        x = [n.time_to_expiry for n in nodes]
        y = [n.tenor_years for n in nodes]
        metadata = [n.metadata for n in nodes]

        def surface(parameter_type: SabrParameterType, values) -> InterpolatedNodalSurface:
            return InterpolatedNodalSurface(
                f"{name}-{parameter_type.label}", parameter_type.value, x, y, values, metadata
            )

        return SabrParametersSwaptionVolatilities(
            name=name,
            convention=convention,
            valuation_date_time=calibration_datetime,
            day_count=day_count,
            alpha_surface=surface(SabrParameterType.ALPHA, [n.params.alpha for n in nodes]),
            beta_surface=surface(SabrParameterType.BETA, [n.params.beta for n in nodes]),
            rho_surface=surface(SabrParameterType.RHO, [n.params.rho for n in nodes]),
            nu_surface=surface(SabrParameterType.NU, [n.params.nu for n in nodes]),
            shift_surface=surface(SabrParameterType.SHIFT, [n.params.shift for n in nodes]),
            data_sensitivity_alpha=[n.data_sensitivity[0] for n in nodes],
            data_sensitivity_rho=[n.data_sensitivity[2] for n in nodes],
            data_sensitivity_nu=[n.data_sensitivity[3] for n in nodes],
        )

    # ------------------------------------------------------------------
    # ATM alpha
    # ------------------------------------------------------------------

    def _solve_atm_node(
        self,
        sabr: SabrParametersSwaptionVolatilities,
        calibration_date: date,
        expiry: str,
        tenor: str,
        quote: float,
        data_type: ValueType,
        rates_provider: RatesProvider,
        shift_input: Optional[float]
    ) -> Tuple[SwaptionNodeMetadata, SabrParams, float]:
        dates = self.node_dates(sabr.convention, calibration_date, sabr.day_count, expiry, tenor)
        T, ty = dates.time_to_expiry, dates.tenor_years
        p = sabr.parameters(T, ty)
        forward = rates_provider.forward_rate(dates.swap)
        try:
            vols, dvol = normalize_quotes(
                data_type, forward, p.shift, T, [forward], [quote], shift_input, self.config.root_finder
            )
            alpha, dalpha_dvol = alpha_from_atm_volatility(
                forward + p.shift, T, vols[0], p.beta, p.rho, p.nu, self.config.root_finder
            )
        except (InvalidInputError, RootFindingError) as exc:
            raise FitFailureError(f"ATM alpha solve failed: {exc}", expiry, tenor) from exc
        metadata = SwaptionNodeMetadata.of(T, ty, f"{expiry} x {tenor}")
        return metadata, SabrParams(alpha, p.beta, p.rho, p.nu, p.shift), dalpha_dvol * dvol[0]

    def calibrate_alpha_grid_with_atm(
        self,
        name: str,
        sabr: SabrParametersSwaptionVolatilities,
        calibration_datetime: Union[date, datetime],
        data_atm: pd.DataFrame,
        data_type: ValueType,
        rates_provider: RatesProvider,
        shift_input: Optional[float] = None,
        stop_on_failure: Optional[bool] = None
    ) -> AtmCalibrationResult:
        """
        Re-solve alpha from ATM quotes, keeping beta, rho, nu and shift.

        Args:
            name: Name of the resulting volatilities
            sabr: Existing calibration supplying beta, rho, nu and shift
            calibration_datetime: Valuation date-time
            data_atm: ATM quotes, index = expiry tenors, columns = swap tenors;
                NaN marks a missing quote
            data_type: NORMAL_VOLATILITY or BLACK_VOLATILITY
            rates_provider: Source of forward swap rates
            shift_input: Shift of Black volatility quotes (None = unshifted)
            stop_on_failure: Overrides the configured failure policy

        Returns:
            AtmCalibrationResult whose volatilities sit on the ATM nodes and
            carry alpha data sensitivity only

        Raises:
            FitFailureError: On a failed node when stopping on failure, or
                when no node calibrates
        """
        if data_type not in (ValueType.NORMAL_VOLATILITY, ValueType.BLACK_VOLATILITY):
            raise InvalidInputError(f"ATM alpha calibration needs volatility quotes, got {data_type}")
        stop = self.config.stop_on_failure if stop_on_failure is None else stop_on_failure
        calibration_date = _as_date(calibration_datetime)

        tasks = []
        for expiry in data_atm.index:
            for tenor in data_atm.columns:
                quote = data_atm.loc[expiry, tenor]
                if pd.notna(quote):
                    tasks.append((str(expiry).upper(), str(tenor).upper(), float(quote)))

        def run(expiry, tenor, quote):
            try:
                return self._solve_atm_node(
                    sabr, calibration_date, expiry, tenor, quote, data_type, rates_provider, shift_input
                )
            except FitFailureError as exc:
                return self._handle_failure(exc, expiry, tenor, stop)

        results = self._map(run, tasks)
        failed = tuple(o for o in results if isinstance(o, FailedNode))
        outcomes = [o for o in results if not isinstance(o, FailedNode)]
        if not outcomes:
            raise FitFailureError(f"No ATM node of {name} could be calibrated")
        outcomes.sort(key=lambda o: (o[0].expiry, o[0].tenor))
        logger.info("Re-solved alpha at %d ATM nodes for %s (%d failed)", len(outcomes), name, len(failed))

        x = [m.expiry for m, _, _ in outcomes]
        y = [m.tenor for m, _, _ in outcomes]
        metadata = [m for m, _, _ in outcomes]

        def surface(parameter_type: SabrParameterType, attr: str) -> InterpolatedNodalSurface:
            return InterpolatedNodalSurface(
                f"{name}-{parameter_type.label}", parameter_type.value, x, y,
                [getattr(p, attr) for _, p, _ in outcomes], metadata,
            )

        volatilities = SabrParametersSwaptionVolatilities(
            name=name,
            convention=sabr.convention,
            valuation_date_time=calibration_datetime,
            day_count=sabr.day_count,
            alpha_surface=surface(SabrParameterType.ALPHA, "alpha"),
            beta_surface=surface(SabrParameterType.BETA, "beta"),
            rho_surface=surface(SabrParameterType.RHO, "rho"),
            nu_surface=surface(SabrParameterType.NU, "nu"),
            shift_surface=surface(SabrParameterType.SHIFT, "shift"),
            data_sensitivity_alpha=[[sens] for _, _, sens in outcomes],
        )
        return AtmCalibrationResult(volatilities, failed)

    def calibrate_alpha_with_atm(
        self,
        name: str,
        sabr: SabrParametersSwaptionVolatilities,
        calibration_datetime: Union[date, datetime],
        data_atm: pd.DataFrame,
        data_type: ValueType,
        rates_provider: RatesProvider,
        shift_input: Optional[float] = None,
        stop_on_failure: Optional[bool] = None
    ) -> SabrParametersSwaptionVolatilities:
        """Re-solve alpha from ATM quotes and return only the volatilities (see calibrate_alpha_grid_with_atm)."""
        return self.calibrate_alpha_grid_with_atm(
            name, sabr, calibration_datetime, data_atm, data_type,
            rates_provider, shift_input, stop_on_failure,
        ).volatilities


__all__ = [
    "SabrNodeResult",
    "FailedNode",
    "SabrCalibrationResult",
    "AtmCalibrationResult",
    "SabrSwaptionCalibrator",
    "select_best_fit",
]
