"""
Return Calculation Engine

Core calculation modules for leveraged investment returns: amortization,
cash flow ledgers, XIRR, and derived metrics.
"""

from property_returns.calculations import (
    calendar,
    amortization,
    streams,
    ledger,
    xirr,
    metrics,
    simulation,
    bond_arbitrage,
)

__all__ = [
    "calendar",
    "amortization",
    "streams",
    "ledger",
    "xirr",
    "metrics",
    "simulation",
    "bond_arbitrage",
]
