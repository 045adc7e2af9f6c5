#!/usr/bin/env python3
"""
SABR Swaption Calibration Demo

Demonstrates the complete workflow:
1. Build raw swaption quotes for a grid of expiries and tenors
2. Calibrate SABR surfaces with fixed beta and shift
3. Price a swaption off the calibrated surfaces
4. Map SABR parameter risk back to the raw quotes
5. Re-solve alpha from ATM volatilities
"""

import sys
from pathlib import Path
from datetime import datetime

import numpy as np
import pandas as pd

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ratesvol import (
    ConstantSurface,
    CurveRatesProvider,
    DayCount,
    DiscountCurve,
    RawOptionData,
    SabrParameterType,
    SabrRawDataSensitivityCalculator,
    SabrSwaptionCalibrator,
    SabrSwaptionPricer,
    StrikeType,
    SwapConvention,
    Swaption,
    ValueType,
    setup_logging,
)

VALUATION = datetime(2024, 1, 15, 10, 0)


def print_section(title: str):
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def build_market():
    """Discount curve and normal-vol quotes for 1Y/5Y/10Y tenors."""
    print_section("1. Market Data")

    curve = DiscountCurve.from_zero_rates(
        VALUATION.date(),
        ["1Y", "2Y", "5Y", "10Y", "20Y"],
        [0.045, 0.043, 0.040, 0.039, 0.038],
    )
    rates_provider = CurveRatesProvider(curve)

    moneyness = [-0.01, -0.005, 0.0, 0.005, 0.01]
    expiries = ("1Y", "2Y", "5Y")
    # Normal vols in decimal, one row per expiry
    smiles = {
        "1Y": [[0.0105, 0.0098, 0.0094, 0.0096, 0.0101],
               [0.0102, 0.0096, 0.0092, 0.0094, 0.0099],
               [0.0098, np.nan, 0.0089, 0.0091, 0.0096]],
        "5Y": [[0.0100, 0.0094, 0.0090, 0.0092, 0.0097],
               [0.0097, 0.0092, 0.0088, 0.0090, 0.0095],
               [0.0093, 0.0088, 0.0085, 0.0087, 0.0091]],
        "10Y": [[0.0095, 0.0090, 0.0087, 0.0089, 0.0093],
                [0.0093, 0.0088, 0.0085, 0.0087, 0.0091],
                [0.0090, 0.0085, 0.0082, 0.0084, 0.0088]],
    }
    data = [
        RawOptionData(
            expiries=expiries,
            strikes=moneyness,
            strike_type=StrikeType.SIMPLE_MONEYNESS,
            data=rows,
            data_type=ValueType.NORMAL_VOLATILITY,
        )
        for rows in smiles.values()
    ]

    print(f"Valuation: {VALUATION:%Y-%m-%d}")
    for tenor, raw in zip(smiles, data):
        print(f"\nTenor {tenor} (normal vols, bps):")
        print(raw.to_dataframe().assign(value=lambda df: df["value"] * 10000).to_string(index=False))

    return rates_provider, list(smiles), data


def demo_calibration(rates_provider, tenors, data):
    """Calibrate SABR with beta = 0.5 and a 2% shift."""
    print_section("2. SABR Calibration")

    calibrator = SabrSwaptionCalibrator()
    result = calibrator.calibrate_grid(
        name="USD-SABR",
        convention=SwapConvention.usd_sofr(),
        calibration_datetime=VALUATION,
        day_count=DayCount.ACT_365,
        tenors=tenors,
        data=data,
        rates_provider=rates_provider,
        beta_surface=ConstantSurface("USD-Beta", SabrParameterType.BETA.value, 0.5),
        shift_surface=ConstantSurface("USD-Shift", SabrParameterType.SHIFT.value, 0.02),
    )

    report = result.report()
    pd.set_option("display.width", 120)
    print(report[["expiry", "tenor", "forward", "alpha", "rho", "nu", "chi_sq", "n_quotes"]]
          .to_string(index=False, float_format=lambda v: f"{v:.5f}"))
    return calibrator, result.volatilities


def demo_pricing(rates_provider, volatilities):
    """Price a 2Y x 5Y payer swaption."""
    print_section("3. Swaption Pricing")

    swaption = Swaption(
        expiry_date=datetime(2026, 1, 15).date(),
        tenor="5Y",
        strike=0.042,
        notional=10_000_000,
    )
    pricer = SabrSwaptionPricer(rates_provider, volatilities)
    result = pricer.price(swaption)

    print(f"  Expiry      = {result.expiry:.4f}Y")
    print(f"  Tenor       = {result.tenor:.2f}Y")
    print(f"  Swap Rate   = {result.forward_swap_rate*100:.3f}%")
    print(f"  Strike      = {result.strike*100:.3f}%")
    print(f"  Annuity     = {result.annuity:.4f}")
    print(f"  SABR Vol    = {result.implied_vol*100:.2f}% (shift {result.shift*100:.1f}%)")
    print(f"  PV          = ${result.present_value:,.2f}")
    print(f"  Vega        = ${pricer.present_value_vega(swaption) / 100:,.2f} per 1% vol")

    return pricer, swaption


def demo_raw_data_risk(pricer, swaption, volatilities):
    """Sensitivity of the swaption to each calibration node's quotes."""
    print_section("4. Raw Data Risk")

    node_sensitivities = pricer.parameter_sensitivity(swaption)
    for sens in node_sensitivities:
        print(f"\n{sens.market_data_name}:")
        nonzero = sens.to_dataframe().query("sensitivity != 0")
        print(nonzero[["label", "sensitivity"]].to_string(index=False, float_format=lambda v: f"{v:,.0f}"))

    parallel = SabrRawDataSensitivityCalculator().parallel_sensitivity(node_sensitivities, volatilities)
    print(f"\nPV change per 1bp parallel move of each node's normal vol quotes:")
    table = parallel.to_dataframe()
    table["per_bp"] = table["sensitivity"] * 1e-4
    print(table.query("per_bp != 0")[["label", "per_bp"]]
          .to_string(index=False, float_format=lambda v: f"{v:,.2f}"))


def demo_atm_recalibration(calibrator, rates_provider, volatilities):
    """Move ATM vols up 5bp and re-solve alpha only."""
    print_section("5. ATM Alpha Recalibration")

    data_atm = pd.DataFrame(
        {"1Y": [0.0099, 0.0097], "5Y": [0.0095, 0.0093]},
        index=["1Y", "2Y"],
    )
    print("ATM normal vols (bps):")
    print((data_atm * 10000).to_string())

    updated = calibrator.calibrate_alpha_with_atm(
        "USD-SABR-ATM", volatilities, VALUATION, data_atm,
        ValueType.NORMAL_VOLATILITY, rates_provider,
    )
    print(f"\n{'Node':>10} {'alpha':>10} {'dalpha/dvol':>12}")
    print("-" * 35)
    sens = updated.data_sensitivity(SabrParameterType.ALPHA)
    for i, meta in enumerate(updated.node_metadata()):
        print(f"{meta.label:>10} {updated.alpha_surface.parameter(i):>10.5f} {sens[i][0]:>12.4f}")


def main():
    """Run all demos."""
    setup_logging()

    print("\n" + "="*60)
    print(" SABR SWAPTION CALIBRATION DEMO")
    print("="*60)

    rates_provider, tenors, data = build_market()
    calibrator, volatilities = demo_calibration(rates_provider, tenors, data)
    pricer, swaption = demo_pricing(rates_provider, volatilities)
    demo_raw_data_risk(pricer, swaption, volatilities)
    demo_atm_recalibration(calibrator, rates_provider, volatilities)

    print("\n" + "="*60)
    print(" Demo Complete!")
    print("="*60 + "\n")


if __name__ == "__main__":
    main()
