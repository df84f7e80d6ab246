"""
Financial calculation API endpoints.

These endpoints accept inputs and return calculated results. Validation
failures are returned as 400 responses naming the offending field.
"""

import logging
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from datetime import date

from property_returns.calculations import (
    amortization,
    bond_arbitrage,
    metrics,
    simulation,
    xirr,
)
from property_returns.calculations.errors import InputValidationError
from property_returns.calculations.streams import (
    EscalationPolicy,
    EscalationType,
    LoanStatus,
    LoanTerms,
    OneOffFlow,
)
from property_returns.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _validation_error(error: InputValidationError) -> HTTPException:
    logger.info("Rejected input %s: %s", error.field, error.message)
    return HTTPException(
        status_code=400,
        detail={"field": error.field, "message": error.message},
    )


class OneOffFlowInput(BaseModel):
    """A single dated amount (negative = outflow)."""

    name: str
    flow_date: date
    amount: float


class PropertyReturnsInput(BaseModel):
    """Input for a property returns calculation."""

    # Acquisition and exit
    asset_price: float
    purchase_date: date
    sale_price: float
    sale_date: date
    sale_costs: float = 0.0

    # Financing (optional); rates in percent
    loan_amount: float = 0.0
    loan_interest_rate: float = 0.0
    loan_tenure_years: int = 0
    loan_start_date: Optional[date] = None
    loan_closed_on: Optional[date] = None

    # Recurring flows
    monthly_rental: float = 0.0
    other_monthly_inflow: float = 0.0
    annual_expense: float = 0.0
    rent_escalation_type: EscalationType = EscalationType.none
    rent_escalation_value: float = 0.0
    expense_escalation_type: EscalationType = EscalationType.none
    expense_escalation_value: float = 0.0

    one_off_flows: List[OneOffFlowInput] = []

    # Comparison rates in percent
    inflation_rate: float = 0.0
    market_return: Optional[float] = None

    def to_investment(self) -> simulation.PropertyInvestment:
        loan = None
        if self.loan_amount > 0:
            loan = LoanTerms(
                principal=self.loan_amount,
                annual_rate_percent=self.loan_interest_rate,
                term_months=self.loan_tenure_years * 12,
                start_date=self.loan_start_date or self.purchase_date,
                status=LoanStatus.closed if self.loan_closed_on else LoanStatus.running,
                end_date=self.loan_closed_on,
            )

        return simulation.PropertyInvestment(
            asset_price=self.asset_price,
            purchase_date=self.purchase_date,
            sale_price=self.sale_price,
            sale_date=self.sale_date,
            loan=loan,
            monthly_rental=self.monthly_rental,
            other_monthly_inflow=self.other_monthly_inflow,
            annual_expense=self.annual_expense,
            rent_escalation=EscalationPolicy(
                self.rent_escalation_type, self.rent_escalation_value
            ),
            expense_escalation=EscalationPolicy(
                self.expense_escalation_type, self.expense_escalation_value
            ),
            sale_costs=self.sale_costs,
            one_off_flows=tuple(
                OneOffFlow(name=f.name, date=f.flow_date, amount=f.amount)
                for f in self.one_off_flows
            ),
            inflation_rate_percent=self.inflation_rate,
            market_return_percent=self.market_return,
        )


class BenchmarkMetrics(BaseModel):
    """Market benchmark for the same cash movements."""

    market_rate: float
    final_value: float
    total_injected: float
    appreciation: float


class PropertyReturnMetrics(BaseModel):
    """Calculated return metrics."""

    nominal_profit: float
    real_profit: float
    absolute_return_percent: float
    nominal_xirr: Optional[float] = None
    real_xirr: Optional[float] = None
    rate_status: str
    equity: float
    emi: float
    holding_years: float
    benchmark: Optional[BenchmarkMetrics] = None


class PropertyReturnsResponse(BaseModel):
    """Response with metrics, ledger and amortization schedule."""

    metrics: PropertyReturnMetrics
    cash_flows: List[dict]
    amortization_schedule: List[dict]


def _benchmark(comparison) -> Optional[BenchmarkMetrics]:
    if comparison is None:
        return None
    return BenchmarkMetrics(
        market_rate=comparison.market_rate,
        final_value=round(comparison.final_value, 2),
        total_injected=round(comparison.total_injected, 2),
        appreciation=round(comparison.appreciation, 2),
    )


@router.post("/property-returns", response_model=PropertyReturnsResponse)
async def calculate_property_returns(inputs: PropertyReturnsInput):
    """Calculate ledger, profit and XIRR for a property investment."""
    settings = get_settings()

    try:
        result = simulation.run_property_simulation(
            inputs.to_investment(),
            guess=settings.xirr_default_guess,
            max_iterations=settings.xirr_max_iterations,
        )
    except InputValidationError as e:
        raise _validation_error(e)

    return PropertyReturnsResponse(
        metrics=PropertyReturnMetrics(
            nominal_profit=round(result.nominal_profit, 2),
            real_profit=round(result.real_profit, 2),
            absolute_return_percent=result.absolute_return_percent,
            nominal_xirr=result.nominal_xirr,
            real_xirr=result.real_xirr,
            rate_status=result.rate_status.value,
            equity=result.equity,
            emi=round(result.emi, 2),
            holding_years=result.holding_years,
            benchmark=_benchmark(result.benchmark),
        ),
        cash_flows=result.cash_flow_table(),
        amortization_schedule=[row.to_dict() for row in result.amortization_schedule],
    )


class BondArbitrageInput(BaseModel):
    """Input for a loan-funded bond purchase; rates in percent."""

    loan_amount: float
    loan_interest_rate: float
    loan_tenure_years: int
    bond_face_value: float
    bond_coupon_rate: float
    bond_market_price: float
    bond_accrued_interest: float = 0.0
    bond_maturity_date: date
    tds_rate: float = 0.0
    loan_start_date: date
    first_payment_date: date
    previous_coupon_date: date
    inflation_rate: float = 0.0
    market_return: float = 0.0


class BondReturnSummary(BaseModel):
    """Rates and totals for one tax view of the bond ledger."""

    nominal_xirr: Optional[float] = None
    real_xirr: Optional[float] = None
    rate_status: str
    net_cash_flow: float
    benchmark: BenchmarkMetrics


class BondArbitrageResponse(BaseModel):
    """Response with bond arbitrage metrics and ledger."""

    num_bonds: int
    total_bond_investment: float
    emi: float
    post_tax: BondReturnSummary
    pre_tax: BondReturnSummary
    cash_flows: List[dict]


def _bond_summary(summary: bond_arbitrage.ReturnSummary) -> BondReturnSummary:
    return BondReturnSummary(
        nominal_xirr=summary.nominal_xirr,
        real_xirr=summary.real_xirr,
        rate_status=summary.rate_status.value,
        net_cash_flow=round(summary.net_cash_flow, 2),
        benchmark=_benchmark(summary.benchmark),
    )


@router.post("/bond-arbitrage", response_model=BondArbitrageResponse)
async def calculate_bond_arbitrage(inputs: BondArbitrageInput):
    """Calculate returns of buying bonds with an amortizing loan."""
    settings = get_settings()

    try:
        result = bond_arbitrage.run_bond_arbitrage(
            bond_arbitrage.BondArbitrageInputs(
                loan_amount=inputs.loan_amount,
                loan_rate_percent=inputs.loan_interest_rate,
                loan_tenure_years=inputs.loan_tenure_years,
                bond_face_value=inputs.bond_face_value,
                bond_coupon_rate_percent=inputs.bond_coupon_rate,
                bond_market_price=inputs.bond_market_price,
                bond_accrued_interest=inputs.bond_accrued_interest,
                bond_maturity_date=inputs.bond_maturity_date,
                tds_rate_percent=inputs.tds_rate,
                loan_start_date=inputs.loan_start_date,
                first_payment_date=inputs.first_payment_date,
                previous_coupon_date=inputs.previous_coupon_date,
                inflation_rate_percent=inputs.inflation_rate,
                market_return_percent=inputs.market_return,
            ),
            guess=settings.xirr_default_guess,
            max_iterations=settings.xirr_max_iterations,
        )
    except InputValidationError as e:
        raise _validation_error(e)

    return BondArbitrageResponse(
        num_bonds=result.num_bonds,
        total_bond_investment=round(result.total_bond_investment, 2),
        emi=round(result.emi, 2),
        post_tax=_bond_summary(result.post_tax),
        pre_tax=_bond_summary(result.pre_tax),
        cash_flows=result.ledger_table(),
    )


class XIRRInput(BaseModel):
    """Input for XIRR calculation."""

    cash_flows: List[float]
    dates: List[date]
    guess: Optional[float] = None


class XIRRResponse(BaseModel):
    """Response with XIRR calculation."""

    xirr: float
    profit: float
    npv_at_10_percent: float


@router.post("/xirr", response_model=XIRRResponse)
async def calculate_xirr_endpoint(inputs: XIRRInput):
    """Calculate XIRR for given dated cash flows."""
    settings = get_settings()
    guess = inputs.guess if inputs.guess is not None else settings.xirr_default_guess

    try:
        rate = xirr.calculate_xirr(
            inputs.cash_flows,
            inputs.dates,
            guess=guess,
            max_iterations=settings.xirr_max_iterations,
        )
        npv = xirr.calculate_xnpv(inputs.cash_flows, inputs.dates, 0.10)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return XIRRResponse(
        xirr=rate,
        profit=metrics.nominal_profit(inputs.cash_flows),
        npv_at_10_percent=npv,
    )


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    principal: float
    annual_rate: float  # percent
    term_months: int
    start_date: date
    first_payment_date: Optional[date] = None


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Generate loan amortization schedule."""
    try:
        schedule = amortization.generate_amortization_schedule(
            principal=inputs.principal,
            annual_rate_percent=inputs.annual_rate,
            term_months=inputs.term_months,
            start_date=inputs.start_date,
            first_payment_date=inputs.first_payment_date,
        )
    except InputValidationError as e:
        raise _validation_error(e)

    return {
        "emi": round(
            amortization.calculate_emi(inputs.principal, inputs.annual_rate, inputs.term_months),
            2,
        ),
        "schedule": [row.to_dict() for row in schedule],
        "total_interest": round(amortization.calculate_total_interest(schedule), 2),
        "total_principal": round(amortization.calculate_total_principal(schedule), 2),
    }
