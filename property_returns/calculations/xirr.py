"""
XIRR and XNPV Calculations

Implements XIRR using the Newton-Raphson method on Actual/365 discounting,
matching Excel's XIRR/XNPV functions for irregular, dated cash flows.

Convergence: the solver stops as soon as |XNPV| < TOLERANCE or two
successive iterates differ by less than STEP_TOLERANCE. A solver that
exhausts MAX_ITERATIONS raises XIRRConvergenceError instead of returning
its last iterate.
"""

import logging
from typing import Sequence, Tuple
from datetime import date
import numpy as np

from property_returns.calculations.calendar import DAYS_PER_YEAR
from property_returns.calculations.errors import (
    XIRRConvergenceError,
    XIRRNotComputableError,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-6
STEP_TOLERANCE = 1e-7
DEFAULT_GUESS = 0.1
ZERO_DERIVATIVE_NUDGE = 0.01


def _year_fractions(
    cash_flows: Sequence[float], dates: Sequence[date]
) -> Tuple[np.ndarray, np.ndarray]:
    """Return (amounts, years since earliest date) as arrays."""
    if len(cash_flows) != len(dates):
        raise ValueError("Cash flows and dates arrays must have same length")
    if len(dates) == 0:
        raise XIRRNotComputableError("At least 2 cash flows required")

    base_date = min(dates)
    amounts = np.asarray(cash_flows, dtype=float)
    years = np.array([(d - base_date).days for d in dates], dtype=float) / DAYS_PER_YEAR
    return amounts, years


def _xnpv(amounts: np.ndarray, years: np.ndarray, rate: float) -> float:
    return float(np.sum(amounts / (1.0 + rate) ** years))


def _xnpv_derivative(amounts: np.ndarray, years: np.ndarray, rate: float) -> float:
    """Derivative of XNPV with respect to rate."""
    return float(np.sum(-amounts * years * (1.0 + rate) ** (-years - 1.0)))


def calculate_xnpv(
    cash_flows: Sequence[float], dates: Sequence[date], discount_rate: float
) -> float:
    """
    Calculate XNPV (NPV with specific dates).

    Flows are discounted to the earliest date in `dates`.

    Args:
        cash_flows: Cash flows (negative = outflow, positive = inflow)
        dates: Date of each cash flow, in any order
        discount_rate: Annual discount rate (e.g., 0.10 for 10%)
    """
    if discount_rate <= -1:
        raise ValueError("Discount rate must be greater than -100%")
    amounts, years = _year_fractions(cash_flows, dates)
    return _xnpv(amounts, years, discount_rate)


def calculate_xirr(
    cash_flows: Sequence[float],
    dates: Sequence[date],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
) -> float:
    """
    Calculate XIRR (IRR with specific dates).

    Matches Excel's XIRR() function behavior for irregular cash flows.
    Input order does not matter.

    Args:
        cash_flows: Array of cash flows
        dates: Array of dates corresponding to each cash flow
        guess: Initial guess for rate (default 0.1 = 10%)
        max_iterations: Newton-Raphson iteration cap

    Returns:
        Annual rate as decimal

    Raises:
        XIRRNotComputableError: Fewer than two dates or no sign change
        XIRRConvergenceError: No root found within the iteration cap
    """
    if guess <= -1:
        raise ValueError("Initial guess must be greater than -100%")

    amounts, years = _year_fractions(cash_flows, dates)

    if len(amounts) < 2:
        raise XIRRNotComputableError("At least 2 cash flows required")
    if len(set(dates)) < 2:
        raise XIRRNotComputableError("Cash flows must span more than one date")
    if not (np.any(amounts > 0) and np.any(amounts < 0)):
        raise XIRRNotComputableError(
            "Cash flows must contain both positive and negative values"
        )

    rate = guess

    for iteration in range(max_iterations):
        xnpv = _xnpv(amounts, years, rate)

        if abs(xnpv) < TOLERANCE:
            logger.debug("XIRR converged to %.8f after %d iterations", rate, iteration)
            return rate

        dxnpv = _xnpv_derivative(amounts, years, rate)

        if dxnpv == 0:
            rate += ZERO_DERIVATIVE_NUDGE
            continue

        new_rate = rate - xnpv / dxnpv

        # Keep the iterate inside the domain (1 + rate) > 0
        if new_rate <= -1:
            new_rate = (rate - 1) / 2

        if abs(new_rate - rate) < STEP_TOLERANCE:
            logger.debug(
                "XIRR converged to %.8f after %d iterations", new_rate, iteration + 1
            )
            return new_rate

        rate = new_rate

    logger.warning(
        "XIRR did not converge after %d iterations (last rate %.6f)",
        max_iterations,
        rate,
    )
    raise XIRRConvergenceError("XIRR calculation did not converge")


def calculate_xirr_for_entries(entries, guess: float = DEFAULT_GUESS, **kwargs) -> float:
    """Calculate XIRR from objects with `date` and `amount` attributes."""
    return calculate_xirr(
        [entry.amount for entry in entries],
        [entry.date for entry in entries],
        guess=guess,
        **kwargs,
    )
