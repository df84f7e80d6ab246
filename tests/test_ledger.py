"""
Tests for cash flow streams and ledger generation.
"""

import pytest
from datetime import date

from property_returns.calculations.amortization import generate_amortization_schedule
from property_returns.calculations.errors import InputValidationError
from property_returns.calculations.ledger import (
    CashFlowEntry,
    build_cash_flow_table,
    build_ledger,
    solver_inputs,
    total_inflows,
    total_outflows,
)
from property_returns.calculations.streams import (
    EscalationPolicy,
    EscalationType,
    FlowDirection,
    Frequency,
    LoanStatus,
    LoanTerms,
    OneOffFlow,
    RecurringStream,
)

PURCHASE = date(2024, 1, 15)
ONE_YEAR_LATER = date(2025, 1, 15)


def monthly_entries(ledger):
    return [entry for entry in ledger if entry.description.startswith("Month")]


class TestRecurringStreams:
    """Test recurring amounts and escalation."""

    def test_monthly_amount(self):
        rent = RecurringStream("rent", 1000)
        assert rent.monthly_amount(date(2024, 2, 15), PURCHASE) == 1000

    def test_annual_amount_is_pro_rated(self):
        tax = RecurringStream(
            "tax", 12_000, direction=FlowDirection.outflow, frequency=Frequency.annual
        )
        assert tax.monthly_amount(date(2024, 2, 15), PURCHASE) == -1000

    def test_inactive_outside_dates(self):
        rent = RecurringStream(
            "rent", 1000, start_date=date(2024, 3, 1), end_date=date(2024, 6, 30)
        )
        assert rent.monthly_amount(date(2024, 2, 15), PURCHASE) == 0
        assert rent.monthly_amount(date(2024, 7, 15), PURCHASE) == 0
        assert rent.monthly_amount(date(2024, 4, 15), PURCHASE) == 1000

    def test_fixed_escalation_steps_each_calendar_year(self):
        rent = RecurringStream(
            "rent",
            1000,
            start_date=date(2023, 3, 15),
            escalation=EscalationPolicy(EscalationType.fixed, 100),
        )
        anchor = date(2023, 3, 15)
        assert rent.monthly_amount(date(2023, 12, 15), anchor) == 1000
        assert rent.monthly_amount(date(2024, 1, 15), anchor) == 1100
        assert rent.monthly_amount(date(2025, 2, 15), anchor) == 1200

    def test_percent_escalation_compounds(self):
        rent = RecurringStream(
            "rent",
            1000,
            start_date=date(2023, 3, 15),
            escalation=EscalationPolicy(EscalationType.percent, 10),
        )
        anchor = date(2023, 3, 15)
        assert rent.monthly_amount(date(2024, 1, 15), anchor) == pytest.approx(1100)
        assert rent.monthly_amount(date(2025, 1, 15), anchor) == pytest.approx(1210)

    def test_rejects_negative_amount(self):
        with pytest.raises(InputValidationError) as exc:
            RecurringStream("rent", -1)
        assert exc.value.field == "rent"

    def test_rejects_inverted_dates(self):
        with pytest.raises(InputValidationError):
            RecurringStream("rent", 1, start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))


class TestLoanTerms:
    """Test loan descriptor validation."""

    def test_rejects_non_positive_principal(self):
        with pytest.raises(InputValidationError) as exc:
            LoanTerms(principal=0, annual_rate_percent=8, term_months=12, start_date=PURCHASE)
        assert exc.value.field == "loan.principal"

    def test_rejects_non_positive_term(self):
        with pytest.raises(InputValidationError) as exc:
            LoanTerms(principal=100, annual_rate_percent=8, term_months=0, start_date=PURCHASE)
        assert exc.value.field == "loan.term_months"

    def test_closed_loan_needs_valid_end_date(self):
        with pytest.raises(InputValidationError):
            LoanTerms(100, 8, 12, PURCHASE, status=LoanStatus.closed)
        with pytest.raises(InputValidationError):
            LoanTerms(100, 8, 12, PURCHASE, status=LoanStatus.closed, end_date=date(2024, 1, 1))


class TestBuildLedger:
    """Test ledger generation."""

    def test_no_drift_without_escalation(self):
        ledger = build_ledger(
            PURCHASE, ONE_YEAR_LATER, 100_000, 100_000, [RecurringStream("rent", 1000)]
        )
        months = monthly_entries(ledger)
        assert len(months) == 12
        assert sum(entry.inflow for entry in months) == 12_000

    def test_monthly_dates_preserve_day(self):
        ledger = build_ledger(date(2024, 1, 31), date(2024, 5, 1), 100, 100)
        assert [entry.date for entry in monthly_entries(ledger)] == [
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_annual_expense_outflow(self):
        expense = RecurringStream(
            "maintenance", 12_000, direction=FlowDirection.outflow, frequency=Frequency.annual
        )
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 100_000, 100_000, [expense])
        assert all(entry.outflow == 1000 for entry in monthly_entries(ledger))

    def test_loan_netted_into_purchase(self):
        loan = LoanTerms(800, 0, 10, PURCHASE)
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [loan])
        first = ledger[0]
        assert first.date == PURCHASE
        assert first.inflow == 800
        assert first.outflow == 1000
        assert first.amount == -200

    def test_later_loan_disbursal(self):
        loan = LoanTerms(800, 0, 10, date(2024, 3, 15))
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [loan])
        assert ledger[0].amount == -1000
        disbursal = [entry for entry in ledger if entry.description == "Loan disbursal"]
        assert len(disbursal) == 1
        assert disbursal[0].date == date(2024, 3, 15)
        assert disbursal[0].inflow == 800

    def test_later_loan_emis_follow_its_schedule(self):
        start = date(2024, 3, 14)
        loan = LoanTerms(1200, 0, 12, start)
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 2000, 2500, [loan])
        schedule = generate_amortization_schedule(1200, 0, 12, start)

        emis = [entry for entry in ledger if entry.description.startswith("Loan EMI")]
        # 2024-04-14 through 2025-01-14 fall before the sale
        assert len(emis) == 10
        assert [entry.date for entry in emis] == [row.due_date for row in schedule[:10]]
        assert all(entry.outflow == 100 for entry in emis)
        assert all(entry.outflow == 0 for entry in monthly_entries(ledger))
        assert ledger[-1].outflow == 200

    def test_later_closed_loan_settled_on_end_date(self):
        loan = LoanTerms(
            1200, 0, 12, date(2024, 3, 14), status=LoanStatus.closed, end_date=date(2024, 6, 1)
        )
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 2000, 2500, [loan])
        emis = [entry for entry in ledger if entry.description.startswith("Loan EMI")]
        assert [entry.date for entry in emis] == [date(2024, 4, 14), date(2024, 5, 14)]
        closure = [entry for entry in ledger if entry.description == "Loan closure"]
        assert closure[0].date == date(2024, 6, 1)
        assert closure[0].outflow == 1000
        assert ledger[-1].outflow == 0

    def test_outstanding_loan_settled_at_sale(self):
        loan = LoanTerms(1200, 0, 12, PURCHASE)
        ledger = build_ledger(PURCHASE, date(2024, 7, 15), 2000, 2500, [loan])
        assert all(entry.outflow == 100 for entry in monthly_entries(ledger))
        sale = ledger[-1]
        assert sale.description == "Sale"
        assert sale.inflow == 2500
        assert sale.outflow == 600

    def test_emis_stop_after_term(self):
        loan = LoanTerms(300, 0, 3, PURCHASE)
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [loan], sale_costs=25)
        outflows = [entry.outflow for entry in monthly_entries(ledger)]
        assert outflows[:3] == [100, 100, 100]
        assert all(outflow == 0 for outflow in outflows[3:])
        assert ledger[-1].outflow == 25

    def test_closed_loan_settled_on_end_date(self):
        loan = LoanTerms(
            1200, 0, 12, PURCHASE, status=LoanStatus.closed, end_date=date(2024, 3, 20)
        )
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 2000, 2500, [loan])

        closure = [entry for entry in ledger if entry.description == "Loan closure"]
        assert len(closure) == 1
        assert closure[0].date == date(2024, 3, 20)
        assert closure[0].outflow == 1000

        outflows = [entry.outflow for entry in monthly_entries(ledger)]
        assert outflows[:2] == [100, 100]
        assert all(outflow == 0 for outflow in outflows[2:])
        assert ledger[-1].outflow == 0

    def test_one_off_flow(self):
        duty = OneOffFlow("Stamp duty", PURCHASE, -50)
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [duty])
        entry = [e for e in ledger if e.description == "Stamp duty"][0]
        assert entry.outflow == 50
        assert entry.amount == -50

    def test_one_off_outside_holding_period(self):
        duty = OneOffFlow("Stamp duty", date(2023, 1, 1), -50)
        with pytest.raises(InputValidationError) as exc:
            build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [duty])
        assert exc.value.field == "Stamp duty.date"

    def test_loan_starting_after_sale_rejected(self):
        loan = LoanTerms(800, 0, 10, date(2025, 2, 1))
        with pytest.raises(InputValidationError):
            build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, [loan])

    def test_rejects_empty_holding_period(self):
        with pytest.raises(InputValidationError) as exc:
            build_ledger(PURCHASE, PURCHASE, 1000, 1500)
        assert exc.value.field == "sale_date"

    def test_rejects_unknown_stream(self):
        with pytest.raises(TypeError):
            build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500, ["rent"])

    def test_sorted_with_sale_last(self):
        ledger = build_ledger(
            PURCHASE, ONE_YEAR_LATER, 1000, 1500, [RecurringStream("rent", 10)]
        )
        dates = [entry.date for entry in ledger]
        assert dates == sorted(dates)
        # Month 12 falls on the sale date but the sale stays last
        assert ledger[-2].date == ONE_YEAR_LATER
        assert ledger[-1].description == "Sale"

    def test_profit_from_totals(self):
        ledger = build_ledger(
            PURCHASE, ONE_YEAR_LATER, 1000, 1500, [RecurringStream("rent", 10)]
        )
        assert total_inflows(ledger) - total_outflows(ledger) == pytest.approx(620)


class TestSolverInputs:
    """Test ledger consolidation for the XIRR solver."""

    def test_combines_same_date_and_drops_zero(self):
        d1, d2, d3 = date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)
        entries = [
            CashFlowEntry.from_amount(d3, 150),
            CashFlowEntry.from_amount(d1, -100),
            CashFlowEntry.from_amount(d1, 20),
            CashFlowEntry.from_amount(d2, 0),
        ]
        cash_flows, dates = solver_inputs(entries)
        assert cash_flows == [-80, 150]
        assert dates == [d1, d3]

    def test_from_amount_sign(self):
        entry = CashFlowEntry.from_amount(PURCHASE, -75, "fee")
        assert entry.outflow == 75
        assert entry.inflow == 0
        assert entry.amount == -75


class TestCashFlowTable:
    """Test display rows."""

    def test_cumulative_amount(self):
        ledger = build_ledger(
            PURCHASE, ONE_YEAR_LATER, 1000, 1500, [RecurringStream("rent", 10)]
        )
        rows = build_cash_flow_table(ledger)
        assert rows[0] == {
            "date": "2024-01-15",
            "description": "Purchase",
            "inflow": 0.0,
            "outflow": 1000.0,
            "net_flow": -1000.0,
            "cumulative_amount": -1000.0,
        }
        assert rows[-1]["cumulative_amount"] == 620.0

    def test_zero_rows_kept_for_display(self):
        ledger = build_ledger(PURCHASE, ONE_YEAR_LATER, 1000, 1500)
        rows = build_cash_flow_table(ledger)
        assert len(rows) == 14
        assert all(row["net_flow"] == 0 for row in rows[1:-1])
