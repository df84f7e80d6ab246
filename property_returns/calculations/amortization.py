"""
Loan Amortization Calculations

Implements the fixed installment (EMI), the payment-by-payment amortization
schedule, and the closed-form outstanding balance of an amortizing loan.

Interest rates are annual nominal percentages (e.g., 8.5 for 8.5%),
compounded monthly.
"""

import logging
from typing import List, Dict, Optional
from datetime import date
from dataclasses import dataclass, asdict

from property_returns.calculations.calendar import add_months
from property_returns.calculations.errors import InputValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmortizationRow:
    """A single installment of an amortization schedule."""

    month: int  # 1-based installment number
    due_date: date
    installment: float
    principal: float
    interest: float
    balance: float  # Remaining principal after this installment

    def to_dict(self) -> Dict:
        row = asdict(self)
        row["due_date"] = self.due_date.isoformat()
        for key in ("installment", "principal", "interest", "balance"):
            row[key] = round(row[key], 2)
        return row


def monthly_rate(annual_rate_percent: float) -> float:
    """Convert an annual percentage rate to a monthly decimal rate."""
    return annual_rate_percent / 100 / 12


def calculate_emi(
    principal: float, annual_rate_percent: float, term_months: int
) -> float:
    """
    Calculate the equated monthly installment.

    A non-positive principal or term, or a negative rate, means "no loan"
    and yields 0 rather than an error.

    Args:
        principal: Loan principal amount
        annual_rate_percent: Annual interest rate in percent (e.g., 8.5)
        term_months: Number of monthly installments

    Returns:
        Monthly installment amount (positive number)
    """
    if principal <= 0 or annual_rate_percent < 0 or term_months <= 0:
        return 0.0

    rate = monthly_rate(annual_rate_percent)

    if rate == 0:
        return principal / term_months

    growth = (1 + rate) ** term_months
    return principal * rate * growth / (growth - 1)


def _check_loan(principal: float, annual_rate_percent: float, term_months: int):
    if principal <= 0:
        raise InputValidationError("principal", "must be greater than zero")
    if annual_rate_percent < 0:
        raise InputValidationError("annual_rate_percent", "cannot be negative")
    if term_months <= 0:
        raise InputValidationError("term_months", "must be greater than zero")


def calculate_loan_balance(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    months_elapsed: int,
) -> float:
    """
    Calculate remaining loan principal after N installments.

    Closed form: P(1+r)^k - E((1+r)^k - 1)/r, floored at zero.
    """
    _check_loan(principal, annual_rate_percent, term_months)

    if months_elapsed <= 0:
        return principal
    if months_elapsed >= term_months:
        return 0.0

    rate = monthly_rate(annual_rate_percent)
    emi = calculate_emi(principal, annual_rate_percent, term_months)

    if rate == 0:
        return max(0.0, principal - emi * months_elapsed)

    growth = (1 + rate) ** months_elapsed
    balance = principal * growth - emi * (growth - 1) / rate

    return max(0.0, balance)


def generate_amortization_schedule(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    start_date: date,
    first_payment_date: Optional[date] = None,
) -> List[AmortizationRow]:
    """
    Generate a full amortization schedule.

    Args:
        principal: Loan principal amount
        annual_rate_percent: Annual interest rate in percent
        term_months: Number of monthly installments
        start_date: Disbursal date of the loan
        first_payment_date: Due date of the first installment
            (default: one month after start_date)

    Returns:
        List of amortization rows, one per installment
    """
    _check_loan(principal, annual_rate_percent, term_months)

    if first_payment_date is None:
        first_payment_date = add_months(start_date, 1)

    schedule = []
    balance = principal
    rate = monthly_rate(annual_rate_percent)
    emi = calculate_emi(principal, annual_rate_percent, term_months)

    for month in range(1, term_months + 1):
        interest = balance * rate

        if month == term_months:
            # Final installment absorbs accumulated rounding
            principal_pmt = balance
        else:
            principal_pmt = min(emi - interest, balance)

        balance = max(0.0, balance - principal_pmt)

        schedule.append(
            AmortizationRow(
                month=month,
                due_date=add_months(first_payment_date, month - 1),
                installment=principal_pmt + interest,
                principal=principal_pmt,
                interest=interest,
                balance=balance,
            )
        )

        if balance == 0:
            break

    logger.debug(
        "Generated amortization schedule: %d installments of %.2f",
        len(schedule),
        emi,
    )
    return schedule


def calculate_total_interest(schedule: List[AmortizationRow]) -> float:
    """Calculate total interest paid over loan term."""
    return sum(row.interest for row in schedule)


def calculate_total_principal(schedule: List[AmortizationRow]) -> float:
    """Calculate total principal repaid over loan term."""
    return sum(row.principal for row in schedule)
