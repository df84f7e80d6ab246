"""
Loan-Funded Bond Purchase

Borrows an amortizing loan, spends it on as many bonds as it can buy, and
tracks coupon income against EMIs until the bonds mature.

Coupons accrue daily (annual coupon / 365) and are credited on monthly
dates starting at the first payment date, each covering the days since
the previous credit. Tax withheld at source (TDS) is deducted from every
coupon. At maturity the investor receives face value plus the final
stub coupon and settles whatever principal is still outstanding.

Both a post-tax and a pre-tax view of the net cash flows are produced.
"""

import logging
import math
from typing import List, Dict, Optional, Tuple
from datetime import date
from dataclasses import dataclass

from property_returns.calculations import metrics
from property_returns.calculations.amortization import (
    AmortizationRow,
    calculate_emi,
    generate_amortization_schedule,
)
from property_returns.calculations.calendar import (
    DAYS_PER_YEAR,
    days_between,
    monthly_dates,
    months_elapsed,
)
from property_returns.calculations.errors import InputValidationError
from property_returns.calculations.simulation import RateStatus, solve_rate
from property_returns.calculations.xirr import DEFAULT_GUESS, MAX_ITERATIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BondArbitrageInputs:
    """Inputs of a bond arbitrage calculation. Percentages are in percent."""

    loan_amount: float
    loan_rate_percent: float
    loan_tenure_years: int
    bond_face_value: float
    bond_coupon_rate_percent: float
    bond_market_price: float
    bond_accrued_interest: float
    bond_maturity_date: date
    tds_rate_percent: float
    loan_start_date: date
    first_payment_date: date
    previous_coupon_date: date
    inflation_rate_percent: float = 0.0
    market_return_percent: float = 0.0

    @property
    def loan_tenure_months(self) -> int:
        return self.loan_tenure_years * 12

    @property
    def cost_per_bond(self) -> float:
        return self.bond_market_price + self.bond_accrued_interest


def validate_bond_inputs(inputs: BondArbitrageInputs) -> None:
    """
    Reject inputs that cannot produce a meaningful calculation.

    Raises:
        InputValidationError: naming the first offending field
    """
    if inputs.loan_amount <= 0:
        raise InputValidationError("loan_amount", "must be greater than zero")
    if inputs.loan_rate_percent < 0:
        raise InputValidationError("loan_rate_percent", "cannot be negative")
    if inputs.loan_tenure_years <= 0:
        raise InputValidationError("loan_tenure_years", "must be greater than zero")
    if inputs.bond_face_value <= 0:
        raise InputValidationError("bond_face_value", "must be greater than zero")
    if inputs.bond_coupon_rate_percent < 0:
        raise InputValidationError("bond_coupon_rate_percent", "cannot be negative")
    if inputs.cost_per_bond <= 0:
        raise InputValidationError(
            "bond_market_price", "price plus accrued interest must be positive"
        )
    if inputs.bond_maturity_date <= inputs.first_payment_date:
        raise InputValidationError(
            "bond_maturity_date", "must be after the first payment date"
        )
    if inputs.first_payment_date <= inputs.loan_start_date:
        raise InputValidationError(
            "first_payment_date", "must be after the loan start date"
        )
    if inputs.previous_coupon_date >= inputs.first_payment_date:
        raise InputValidationError(
            "previous_coupon_date", "must be before the first payment date"
        )
    if inputs.inflation_rate_percent < 0:
        raise InputValidationError("inflation_rate_percent", "cannot be negative")
    if not 0 <= inputs.tds_rate_percent <= 100:
        raise InputValidationError("tds_rate_percent", "must be between 0% and 100%")
    if inputs.market_return_percent <= -100:
        raise InputValidationError("market_return_percent", "must be greater than -100%")
    if math.floor(inputs.loan_amount / inputs.cost_per_bond) <= 0:
        raise InputValidationError(
            "loan_amount", "cannot purchase any bonds at the given price"
        )


@dataclass(frozen=True)
class BondLedgerRow:
    """One dated row of the bond arbitrage ledger."""

    date: date
    interest_credited: float
    tax_withheld: float
    installment: float
    interest_paid: float
    principal_paid: float
    outstanding_balance: float
    net_cash_flow_post_tax: float
    net_cash_flow_pre_tax: float

    @property
    def post_tax_interest(self) -> float:
        return self.interest_credited - self.tax_withheld

    def to_dict(self) -> Dict:
        return {
            "date": self.date.isoformat(),
            "interest_credited": round(self.interest_credited, 2),
            "tax_withheld": round(self.tax_withheld, 2),
            "post_tax_interest": round(self.post_tax_interest, 2),
            "installment": round(self.installment, 2),
            "interest_paid": round(self.interest_paid, 2),
            "principal_paid": round(self.principal_paid, 2),
            "outstanding_balance": round(self.outstanding_balance, 2),
            "net_cash_flow_post_tax": round(self.net_cash_flow_post_tax, 2),
            "net_cash_flow_pre_tax": round(self.net_cash_flow_pre_tax, 2),
        }


@dataclass(frozen=True)
class ReturnSummary:
    """Rates and totals for one view (post-tax or pre-tax) of the ledger."""

    nominal_xirr: Optional[float]
    real_xirr: Optional[float]
    rate_status: RateStatus
    net_cash_flow: float
    benchmark: metrics.BenchmarkComparison


@dataclass(frozen=True)
class BondArbitrageResult:
    """Results of one bond arbitrage calculation."""

    num_bonds: int
    total_bond_investment: float
    emi: float
    post_tax: ReturnSummary
    pre_tax: ReturnSummary
    rows: Tuple[BondLedgerRow, ...]
    amortization_schedule: Tuple[AmortizationRow, ...]

    def ledger_table(self) -> List[Dict]:
        """Ledger rows with the post-tax running market value appended."""
        table = []
        running = self.post_tax.benchmark.running_values
        for row, market_value in zip(self.rows, running):
            record = row.to_dict()
            record["cumulative_market_value"] = round(market_value, 2)
            table.append(record)
        return table


def _coupon_dates(first_payment_date: date, maturity_date: date) -> List[date]:
    """Monthly credit dates from the first payment up to (not including) maturity."""
    count = months_elapsed(first_payment_date, maturity_date) + 1
    return [
        d
        for d in monthly_dates(first_payment_date, count, first_offset=0)
        if d < maturity_date
    ]


def _summarize(
    cash_flows: List[float],
    dates: List[date],
    inflation: float,
    market_rate: float,
    maturity_date: date,
    guess: float,
    max_iterations: int,
) -> ReturnSummary:
    nominal_xirr, status = solve_rate(cash_flows, dates, guess, max_iterations)
    return ReturnSummary(
        nominal_xirr=nominal_xirr,
        real_xirr=metrics.real_rate(nominal_xirr, inflation),
        rate_status=status,
        net_cash_flow=metrics.nominal_profit(cash_flows),
        benchmark=metrics.compare_with_market(
            cash_flows, dates, market_rate, maturity_date
        ),
    )


def run_bond_arbitrage(
    inputs: BondArbitrageInputs,
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
) -> BondArbitrageResult:
    """
    Calculate returns of a loan-funded bond purchase held to maturity.

    Args:
        inputs: Calculation inputs
        guess: Initial XIRR guess
        max_iterations: XIRR iteration cap
    """
    validate_bond_inputs(inputs)

    num_bonds = math.floor(inputs.loan_amount / inputs.cost_per_bond)
    total_investment = num_bonds * inputs.cost_per_bond
    tds_rate = inputs.tds_rate_percent / 100

    emi = calculate_emi(inputs.loan_amount, inputs.loan_rate_percent, inputs.loan_tenure_months)
    schedule = generate_amortization_schedule(
        inputs.loan_amount,
        inputs.loan_rate_percent,
        inputs.loan_tenure_months,
        inputs.loan_start_date,
        first_payment_date=inputs.first_payment_date,
    )

    annual_coupon = num_bonds * inputs.bond_face_value * inputs.bond_coupon_rate_percent / 100
    daily_coupon = annual_coupon / DAYS_PER_YEAR

    # === LOAN DRAWDOWN, BONDS BOUGHT ===
    initial_cf = inputs.loan_amount - total_investment
    rows = [
        BondLedgerRow(
            date=inputs.loan_start_date,
            interest_credited=0.0,
            tax_withheld=0.0,
            installment=0.0,
            interest_paid=0.0,
            principal_paid=0.0,
            outstanding_balance=inputs.loan_amount,
            net_cash_flow_post_tax=initial_cf,
            net_cash_flow_pre_tax=initial_cf,
        )
    ]

    # === MONTHLY COUPONS AGAINST EMIs ===
    previous_credit = inputs.previous_coupon_date
    outstanding = inputs.loan_amount

    for index, credit_date in enumerate(
        _coupon_dates(inputs.first_payment_date, inputs.bond_maturity_date)
    ):
        coupon = daily_coupon * days_between(previous_credit, credit_date)
        tds = coupon * tds_rate
        previous_credit = credit_date

        installment = interest_paid = principal_paid = 0.0
        if index < len(schedule):
            payment = schedule[index]
            installment = payment.installment
            interest_paid = payment.interest
            principal_paid = payment.principal
            outstanding = payment.balance

        rows.append(
            BondLedgerRow(
                date=credit_date,
                interest_credited=coupon,
                tax_withheld=tds,
                installment=installment,
                interest_paid=interest_paid,
                principal_paid=principal_paid,
                outstanding_balance=outstanding,
                net_cash_flow_post_tax=coupon - tds - installment,
                net_cash_flow_pre_tax=coupon - installment,
            )
        )

    # === MATURITY: FACE VALUE IN, LOAN SETTLED ===
    face_value_received = num_bonds * inputs.bond_face_value
    final_coupon = daily_coupon * days_between(previous_credit, inputs.bond_maturity_date)
    final_tds = final_coupon * tds_rate

    rows.append(
        BondLedgerRow(
            date=inputs.bond_maturity_date,
            interest_credited=final_coupon,
            tax_withheld=final_tds,
            installment=outstanding,
            interest_paid=0.0,
            principal_paid=outstanding,
            outstanding_balance=0.0,
            net_cash_flow_post_tax=face_value_received + final_coupon - final_tds - outstanding,
            net_cash_flow_pre_tax=face_value_received + final_coupon - outstanding,
        )
    )

    dates = [row.date for row in rows]
    inflation = inputs.inflation_rate_percent / 100
    market_rate = inputs.market_return_percent / 100

    post_tax = _summarize(
        [row.net_cash_flow_post_tax for row in rows],
        dates,
        inflation,
        market_rate,
        inputs.bond_maturity_date,
        guess,
        max_iterations,
    )
    pre_tax = _summarize(
        [row.net_cash_flow_pre_tax for row in rows],
        dates,
        inflation,
        market_rate,
        inputs.bond_maturity_date,
        guess,
        max_iterations,
    )

    logger.info(
        "Bond arbitrage complete: %d bonds, outstanding at maturity %.2f, status=%s",
        num_bonds,
        outstanding,
        post_tax.rate_status.value,
    )

    return BondArbitrageResult(
        num_bonds=num_bonds,
        total_bond_investment=total_investment,
        emi=emi,
        post_tax=post_tax,
        pre_tax=pre_tax,
        rows=tuple(rows),
        amortization_schedule=tuple(schedule),
    )
