"""
Return Metrics

Post-processing of a ledger and its solved rate: nominal and inflation
adjusted profit, the Fisher real rate, and a passive market benchmark.

All rates here are decimals (e.g., 0.06 for 6%).
"""

from typing import List, Optional, Sequence
from datetime import date
from dataclasses import dataclass

from property_returns.calculations.calendar import years_between


def nominal_profit(cash_flows: Sequence[float]) -> float:
    """Total inflows minus total outflows, not time-weighted."""
    return sum(cash_flows)


def real_profit(profit: float, inflation_rate: float, holding_years: float) -> float:
    """
    Deflate a nominal profit over the holding period.

    Args:
        profit: Nominal profit or loss
        inflation_rate: Annual inflation as decimal
        holding_years: Holding period in years (Actual/365)
    """
    return profit / ((1 + inflation_rate) ** holding_years)


def real_rate(nominal_rate: Optional[float], inflation_rate: float) -> Optional[float]:
    """
    Convert a nominal rate to a real rate via the Fisher relation.

    Returns None when the nominal rate is undefined or either rate is
    exactly -100%.
    """
    if nominal_rate is None or nominal_rate == -1 or inflation_rate == -1:
        return None
    return (1 + nominal_rate) / (1 + inflation_rate) - 1


def absolute_return_percent(profit: float, equity: float, asset_price: float) -> float:
    """
    Net profit as a percentage of the equity contributed.

    A fully financed purchase has no equity, so the return is measured
    against the asset price instead.
    """
    if equity > 0:
        return profit / equity * 100
    if asset_price > 0:
        return profit / asset_price * 100
    return 0.0


@dataclass(frozen=True)
class BenchmarkComparison:
    """What the same cash movements would have grown to in the market."""

    market_rate: float
    final_value: float
    total_injected: float
    running_values: List[float]

    @property
    def appreciation(self) -> float:
        return self.final_value - self.total_injected


def future_value_of_market_injections(
    cash_flows: Sequence[float],
    dates: Sequence[date],
    annual_rate: float,
    final_date: date,
) -> float:
    """
    Compound the absolute value of every cash flow to final_date.

    Every movement, in or out, is treated as money put into the market on
    its date, so signs are deliberately ignored. Flows after final_date
    are skipped.
    """
    fv = 0.0
    for cf, cf_date in zip(cash_flows, dates):
        if cf_date > final_date:
            continue
        fv += abs(cf) * (1 + annual_rate) ** years_between(cf_date, final_date)
    return fv


def running_market_values(
    cash_flows: Sequence[float], dates: Sequence[date], annual_rate: float
) -> List[float]:
    """Cumulative market value after each injection, for a per-row column."""
    values = []
    current = 0.0
    previous = None

    for cf, cf_date in zip(cash_flows, dates):
        if previous is not None:
            current *= (1 + annual_rate) ** years_between(previous, cf_date)
        current += abs(cf)
        values.append(current)
        previous = cf_date

    return values


def compare_with_market(
    cash_flows: Sequence[float],
    dates: Sequence[date],
    annual_rate: float,
    final_date: date,
) -> BenchmarkComparison:
    """Build the market benchmark for a date-sorted series of cash flows."""
    return BenchmarkComparison(
        market_rate=annual_rate,
        final_value=future_value_of_market_injections(
            cash_flows, dates, annual_rate, final_date
        ),
        total_injected=sum(abs(cf) for cf in cash_flows),
        running_values=running_market_values(cash_flows, dates, annual_rate),
    )
