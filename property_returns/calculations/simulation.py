"""
Property Investment Returns

Runs a complete leveraged property calculation: validated inputs in,
ledger, amortization schedule, profit and XIRR figures out.

Each call is a pure function of its PropertyInvestment; results are
never shared between calls.
"""

import logging
from typing import List, Dict, Optional, Sequence, Tuple
from datetime import date
from dataclasses import dataclass, field
import enum

from property_returns.calculations import metrics
from property_returns.calculations.amortization import (
    AmortizationRow,
    calculate_emi,
    generate_amortization_schedule,
)
from property_returns.calculations.calendar import years_between
from property_returns.calculations.errors import (
    InputValidationError,
    XIRRConvergenceError,
    XIRRNotComputableError,
)
from property_returns.calculations.ledger import (
    CashFlowEntry,
    build_cash_flow_table,
    build_ledger,
    solver_inputs,
)
from property_returns.calculations.streams import (
    NO_ESCALATION,
    EscalationPolicy,
    FlowDirection,
    Frequency,
    LoanTerms,
    OneOffFlow,
    RecurringStream,
    Stream,
)
from property_returns.calculations.xirr import (
    DEFAULT_GUESS,
    MAX_ITERATIONS,
    calculate_xirr,
)

logger = logging.getLogger(__name__)


class RateStatus(str, enum.Enum):
    """Outcome of solving for a rate."""

    converged = "converged"
    not_computable = "not_computable"
    did_not_converge = "did_not_converge"


def solve_rate(
    cash_flows: Sequence[float],
    dates: Sequence[date],
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
) -> Tuple[Optional[float], RateStatus]:
    """Solve XIRR, turning solver failures into a status instead of a rate."""
    try:
        rate = calculate_xirr(cash_flows, dates, guess=guess, max_iterations=max_iterations)
    except XIRRNotComputableError as e:
        logger.warning("XIRR not computable: %s", e)
        return None, RateStatus.not_computable
    except XIRRConvergenceError:
        return None, RateStatus.did_not_converge
    return rate, RateStatus.converged


@dataclass(frozen=True)
class PropertyInvestment:
    """Inputs of a single property calculation. Percentages are in percent."""

    asset_price: float
    purchase_date: date
    sale_price: float
    sale_date: date
    loan: Optional[LoanTerms] = None
    monthly_rental: float = 0.0
    other_monthly_inflow: float = 0.0
    annual_expense: float = 0.0
    rent_escalation: EscalationPolicy = NO_ESCALATION
    expense_escalation: EscalationPolicy = NO_ESCALATION
    sale_costs: float = 0.0
    one_off_flows: Tuple[OneOffFlow, ...] = ()
    inflation_rate_percent: float = 0.0
    market_return_percent: Optional[float] = None

    @property
    def loan_amount(self) -> float:
        return self.loan.principal if self.loan else 0.0

    @property
    def equity(self) -> float:
        """Cash the investor puts in at purchase."""
        return self.asset_price - self.loan_amount

    @property
    def holding_years(self) -> float:
        return years_between(self.purchase_date, self.sale_date)

    def streams(self) -> List[Stream]:
        """Typed cash flow streams for the ledger builder."""
        streams: List[Stream] = []
        if self.loan:
            streams.append(self.loan)
        if self.monthly_rental > 0:
            streams.append(
                RecurringStream(
                    name="monthly_rental",
                    amount=self.monthly_rental,
                    start_date=self.purchase_date,
                    escalation=self.rent_escalation,
                )
            )
        if self.other_monthly_inflow > 0:
            streams.append(
                RecurringStream(
                    name="other_monthly_inflow",
                    amount=self.other_monthly_inflow,
                    start_date=self.purchase_date,
                )
            )
        if self.annual_expense > 0:
            streams.append(
                RecurringStream(
                    name="annual_expense",
                    amount=self.annual_expense,
                    direction=FlowDirection.outflow,
                    frequency=Frequency.annual,
                    start_date=self.purchase_date,
                    escalation=self.expense_escalation,
                )
            )
        streams.extend(self.one_off_flows)
        return streams


def validate_investment(investment: PropertyInvestment) -> None:
    """
    Reject inputs that cannot produce a meaningful calculation.

    Raises:
        InputValidationError: naming the first offending field
    """
    if investment.asset_price <= 0:
        raise InputValidationError("asset_price", "must be greater than zero")
    if investment.sale_price <= 0:
        raise InputValidationError("sale_price", "must be greater than zero")
    if investment.sale_date <= investment.purchase_date:
        raise InputValidationError("sale_date", "must be after the purchase date")
    if investment.loan_amount > investment.asset_price:
        raise InputValidationError("loan.principal", "cannot exceed the asset price")

    for name in ("monthly_rental", "other_monthly_inflow", "annual_expense", "sale_costs"):
        if getattr(investment, name) < 0:
            raise InputValidationError(name, "cannot be negative")

    if investment.inflation_rate_percent < 0:
        raise InputValidationError("inflation_rate_percent", "cannot be negative")
    if (
        investment.market_return_percent is not None
        and investment.market_return_percent <= -100
    ):
        raise InputValidationError(
            "market_return_percent", "must be greater than -100%"
        )


@dataclass(frozen=True)
class SimulationResult:
    """Results of one property calculation."""

    nominal_profit: float
    real_profit: float
    nominal_xirr: Optional[float]
    real_xirr: Optional[float]
    rate_status: RateStatus
    absolute_return_percent: float
    equity: float
    emi: float
    holding_years: float
    ledger: Tuple[CashFlowEntry, ...]
    amortization_schedule: Tuple[AmortizationRow, ...] = ()
    benchmark: Optional[metrics.BenchmarkComparison] = field(default=None)

    def cash_flow_table(self) -> List[Dict]:
        """Date / Inflow / Outflow / Net Flow / Cumulative Amount rows."""
        return build_cash_flow_table(self.ledger)


def run_property_simulation(
    investment: PropertyInvestment,
    guess: float = DEFAULT_GUESS,
    max_iterations: int = MAX_ITERATIONS,
) -> SimulationResult:
    """
    Calculate returns for a leveraged property investment.

    Args:
        investment: Validated calculation inputs
        guess: Initial XIRR guess
        max_iterations: XIRR iteration cap

    Returns:
        SimulationResult; rate fields are None when rate_status is not
        `converged`
    """
    validate_investment(investment)

    ledger = build_ledger(
        purchase_date=investment.purchase_date,
        sale_date=investment.sale_date,
        purchase_price=investment.asset_price,
        sale_price=investment.sale_price,
        streams=investment.streams(),
        sale_costs=investment.sale_costs,
    )

    cash_flows, dates = solver_inputs(ledger)
    nominal_xirr, status = solve_rate(cash_flows, dates, guess, max_iterations)

    inflation = investment.inflation_rate_percent / 100
    profit = metrics.nominal_profit([entry.amount for entry in ledger])

    schedule: Tuple[AmortizationRow, ...] = ()
    emi = 0.0
    loan = investment.loan
    if loan:
        emi = calculate_emi(loan.principal, loan.annual_rate_percent, loan.term_months)
        schedule = tuple(
            generate_amortization_schedule(
                loan.principal, loan.annual_rate_percent, loan.term_months, loan.start_date
            )
        )

    benchmark = None
    if investment.market_return_percent is not None:
        benchmark = metrics.compare_with_market(
            [entry.amount for entry in ledger],
            [entry.date for entry in ledger],
            investment.market_return_percent / 100,
            investment.sale_date,
        )

    result = SimulationResult(
        nominal_profit=profit,
        real_profit=metrics.real_profit(profit, inflation, investment.holding_years),
        nominal_xirr=nominal_xirr,
        real_xirr=metrics.real_rate(nominal_xirr, inflation),
        rate_status=status,
        absolute_return_percent=metrics.absolute_return_percent(
            profit, investment.equity, investment.asset_price
        ),
        equity=investment.equity,
        emi=emi,
        holding_years=investment.holding_years,
        ledger=tuple(ledger),
        amortization_schedule=schedule,
        benchmark=benchmark,
    )

    logger.info(
        "Property simulation complete: profit=%.2f xirr=%s status=%s",
        result.nominal_profit,
        "n/a" if nominal_xirr is None else f"{nominal_xirr:.6f}",
        status.value,
    )
    return result
