"""
Cash Flow Ledger

Builds the dated ledger of an investment from a purchase, a sale, and a
set of cash flow streams (see streams.py).

Sign convention: money leaving the investor is negative, money received
is positive. Each entry keeps its gross inflow and outflow so the same
ledger can drive both the XIRR solver and a Date / Inflow / Outflow /
Net Flow / Cumulative Amount table.

Loan principal disbursed on the purchase date is netted into the purchase
row, so the first entry is the equity actually contributed. A loan
disbursed later is a separate inflow on its own start date, and its EMIs
are separate entries on its own due dates (start date + k months), the
same dates as its amortization schedule.

The monthly grid runs from one month after purchase up to and including
the sale date, not strictly before it: a grid date that lands exactly on
the sale date is a full month of rent and EMI, so it gets its own row,
sorted ahead of the sale row.
"""

import logging
from collections import OrderedDict
from typing import List, Dict, Sequence, Tuple
from datetime import date
from dataclasses import dataclass

from property_returns.calculations.amortization import (
    calculate_emi,
    calculate_loan_balance,
)
from property_returns.calculations.calendar import monthly_dates, months_elapsed
from property_returns.calculations.errors import InputValidationError
from property_returns.calculations.streams import (
    LoanStatus,
    LoanTerms,
    OneOffFlow,
    RecurringStream,
    Stream,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashFlowEntry:
    """A single dated ledger entry."""

    date: date
    inflow: float = 0.0
    outflow: float = 0.0
    description: str = ""

    @property
    def amount(self) -> float:
        """Signed net amount (negative = outflow)."""
        return self.inflow - self.outflow

    @classmethod
    def from_amount(cls, on: date, amount: float, description: str = "") -> "CashFlowEntry":
        """Create an entry from a signed amount."""
        if amount >= 0:
            return cls(date=on, inflow=amount, description=description)
        return cls(date=on, outflow=-amount, description=description)


class _LoanState:
    """Per-calculation bookkeeping for one loan."""

    def __init__(self, loan: LoanTerms, purchase_date: date):
        self.loan = loan
        self.emi = calculate_emi(loan.principal, loan.annual_rate_percent, loan.term_months)
        self.payments_made = 0
        self.settled = False
        # Loans drawn at purchase share the monthly grid
        self.on_grid = loan.start_date == purchase_date

    def take_payment(self, on: date) -> float:
        if self.settled or not self.loan.is_active_on(on):
            return 0.0
        if self.payments_made >= self.loan.term_months:
            return 0.0
        self.payments_made += 1
        return self.emi

    def own_schedule_entries(self, sale_date: date) -> List[CashFlowEntry]:
        """EMIs dated on the loan's own due dates, up to the sale date."""
        loan = self.loan
        entries = []
        for month, due_date in enumerate(
            monthly_dates(loan.start_date, loan.term_months), start=1
        ):
            if due_date > sale_date:
                break
            payment = self.take_payment(due_date)
            if not payment:
                break
            entries.append(
                CashFlowEntry(
                    date=due_date,
                    outflow=payment,
                    description=f"{loan.name} EMI {month}",
                )
            )
        return entries

    def outstanding(self) -> float:
        loan = self.loan
        return calculate_loan_balance(
            loan.principal, loan.annual_rate_percent, loan.term_months, self.payments_made
        )

    def closes_before(self, on: date) -> bool:
        return (
            not self.settled
            and self.loan.status == LoanStatus.closed
            and self.loan.end_date < on
        )


def _validate_streams(
    purchase_date: date, sale_date: date, streams: Sequence[Stream]
) -> None:
    for stream in streams:
        if isinstance(stream, LoanTerms):
            if not purchase_date <= stream.start_date < sale_date:
                raise InputValidationError(
                    f"{stream.name}.start_date",
                    "must fall on or after the purchase date and before the sale date",
                )
        elif isinstance(stream, OneOffFlow):
            if not purchase_date <= stream.date <= sale_date:
                raise InputValidationError(
                    f"{stream.name}.date", "must fall within the holding period"
                )
        elif not isinstance(stream, RecurringStream):
            raise TypeError(f"Unsupported cash flow stream: {stream!r}")


def _settlement_entry(state: _LoanState, on: date) -> CashFlowEntry:
    state.settled = True
    return CashFlowEntry(
        date=on,
        outflow=state.outstanding(),
        description=f"{state.loan.name} closure",
    )


def build_ledger(
    purchase_date: date,
    sale_date: date,
    purchase_price: float,
    sale_price: float,
    streams: Sequence[Stream] = (),
    sale_costs: float = 0.0,
) -> List[CashFlowEntry]:
    """
    Generate the chronological cash flow ledger of a holding period.

    One entry per monthly step after the purchase date (day-of-month
    preserved) carries recurring income less recurring expenses and EMIs.
    The sale entry nets the outstanding principal of every loan still open
    and any sale costs.

    Args:
        purchase_date: Anchor date of the ledger
        sale_date: Horizon date; must be after purchase_date
        purchase_price: Price paid for the asset
        sale_price: Disposal proceeds received at sale_date
        streams: Loans, recurring streams and one-off flows
        sale_costs: One-off fee or tax deducted from the sale proceeds

    Returns:
        Ledger entries sorted by date
    """
    if sale_date <= purchase_date:
        raise InputValidationError("sale_date", "must be after the purchase date")
    _validate_streams(purchase_date, sale_date, streams)

    loans = [_LoanState(s, purchase_date) for s in streams if isinstance(s, LoanTerms)]
    recurring = [s for s in streams if isinstance(s, RecurringStream)]
    one_offs = [s for s in streams if isinstance(s, OneOffFlow)]

    entries = []

    # === ACQUISITION ===
    netted_principal = sum(
        state.loan.principal for state in loans if state.loan.start_date == purchase_date
    )
    entries.append(
        CashFlowEntry(
            date=purchase_date,
            inflow=netted_principal,
            outflow=purchase_price,
            description="Purchase",
        )
    )
    for state in loans:
        if state.loan.start_date > purchase_date:
            entries.append(
                CashFlowEntry(
                    date=state.loan.start_date,
                    inflow=state.loan.principal,
                    description=f"{state.loan.name} disbursal",
                )
            )
            entries.extend(state.own_schedule_entries(sale_date))

    # === MONTHLY FLOWS ===
    num_months = months_elapsed(purchase_date, sale_date)
    for month, period_date in enumerate(monthly_dates(purchase_date, num_months), start=1):
        for state in loans:
            if state.closes_before(period_date):
                entries.append(_settlement_entry(state, state.loan.end_date))

        inflow = 0.0
        outflow = 0.0
        for stream in recurring:
            amount = stream.monthly_amount(period_date, purchase_date)
            if amount >= 0:
                inflow += amount
            else:
                outflow -= amount
        for state in loans:
            if state.on_grid:
                outflow += state.take_payment(period_date)

        entries.append(
            CashFlowEntry(
                date=period_date,
                inflow=inflow,
                outflow=outflow,
                description=f"Month {month}",
            )
        )

    for state in loans:
        if state.closes_before(sale_date):
            entries.append(_settlement_entry(state, state.loan.end_date))

    for flow in one_offs:
        entries.append(CashFlowEntry.from_amount(flow.date, flow.amount, flow.name))

    # === DISPOSAL ===
    loan_payoff = sum(state.outstanding() for state in loans if not state.settled)
    entries.append(
        CashFlowEntry(
            date=sale_date,
            inflow=sale_price,
            outflow=loan_payoff + sale_costs,
            description="Sale",
        )
    )

    logger.debug(
        "Built ledger: %d entries over %d months, loan payoff at sale %.2f",
        len(entries),
        num_months,
        loan_payoff,
    )
    return sort_ledger(entries)


def sort_ledger(entries: Sequence[CashFlowEntry]) -> List[CashFlowEntry]:
    """Sort entries by date; same-date entries keep their insertion order."""
    return sorted(entries, key=lambda entry: entry.date)


def solver_inputs(entries: Sequence[CashFlowEntry]) -> Tuple[List[float], List[date]]:
    """
    Collapse a ledger into XIRR solver inputs.

    Same-date amounts are summed and dates whose net is exactly zero are
    dropped.

    Returns:
        (cash_flows, dates) sorted by date
    """
    combined = OrderedDict()
    for entry in sort_ledger(entries):
        combined[entry.date] = combined.get(entry.date, 0.0) + entry.amount

    cash_flows = []
    dates = []
    for on, amount in combined.items():
        if amount != 0:
            cash_flows.append(amount)
            dates.append(on)
    return cash_flows, dates


def build_cash_flow_table(entries: Sequence[CashFlowEntry]) -> List[Dict]:
    """Ledger rows with a running cumulative amount, for display or export."""
    rows = []
    cumulative = 0.0
    for entry in sort_ledger(entries):
        cumulative += entry.amount
        rows.append(
            {
                "date": entry.date.isoformat(),
                "description": entry.description,
                "inflow": round(entry.inflow, 2),
                "outflow": round(entry.outflow, 2),
                "net_flow": round(entry.amount, 2),
                "cumulative_amount": round(cumulative, 2),
            }
        )
    return rows


def total_inflows(entries: Sequence[CashFlowEntry]) -> float:
    """Sum of gross inflows across the ledger."""
    return sum(entry.inflow for entry in entries)


def total_outflows(entries: Sequence[CashFlowEntry]) -> float:
    """Sum of gross outflows across the ledger."""
    return sum(entry.outflow for entry in entries)
