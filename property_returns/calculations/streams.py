"""
Cash Flow Streams

Typed descriptors for everything that moves money during a holding
period. The ledger builder consumes a sequence of these:

- LoanTerms: an amortizing loan (disbursal, EMIs, settlement)
- RecurringStream: rent, other income, or expenses on a monthly grid
- OneOffFlow: a single dated amount (stamp duty, renovation, taxes)
"""

from typing import Optional, Union
from datetime import date
from dataclasses import dataclass, field
import enum

from property_returns.calculations.errors import InputValidationError


class LoanStatus(str, enum.Enum):
    """Whether a loan runs its course or was closed early."""

    running = "running"
    closed = "closed"


class Frequency(str, enum.Enum):
    """Frequency at which a recurring amount is quoted."""

    monthly = "monthly"
    annual = "annual"


class FlowDirection(str, enum.Enum):
    """Whether a recurring stream pays the investor or costs them."""

    inflow = "inflow"
    outflow = "outflow"


class EscalationType(str, enum.Enum):
    """How a recurring amount steps up each calendar year."""

    none = "none"
    fixed = "fixed"  # +amount per year
    percent = "percent"  # +percent per year, compounding


@dataclass(frozen=True)
class EscalationPolicy:
    """Annual step-up rule for a recurring stream."""

    kind: EscalationType = EscalationType.none
    value: float = 0.0

    def __post_init__(self):
        if self.kind != EscalationType.none and self.value < 0:
            raise InputValidationError("escalation", "value cannot be negative")

    def apply(self, amount: float, steps: int) -> float:
        """Escalate amount by `steps` annual increases."""
        if steps <= 0 or self.kind == EscalationType.none:
            return amount
        if self.kind == EscalationType.fixed:
            return amount + self.value * steps
        return amount * (1 + self.value / 100) ** steps


NO_ESCALATION = EscalationPolicy()


@dataclass(frozen=True)
class LoanTerms:
    """An amortizing loan taken against the investment."""

    principal: float
    annual_rate_percent: float
    term_months: int
    start_date: date
    status: LoanStatus = LoanStatus.running
    end_date: Optional[date] = None
    name: str = "Loan"

    def __post_init__(self):
        if self.principal <= 0:
            raise InputValidationError("loan.principal", "must be greater than zero")
        if self.annual_rate_percent < 0:
            raise InputValidationError("loan.annual_rate_percent", "cannot be negative")
        if self.term_months <= 0:
            raise InputValidationError("loan.term_months", "must be greater than zero")
        if self.status == LoanStatus.closed:
            if self.end_date is None:
                raise InputValidationError("loan.end_date", "required for a closed loan")
            if self.end_date < self.start_date:
                raise InputValidationError(
                    "loan.end_date", "cannot be before the loan start date"
                )

    def is_active_on(self, on: date) -> bool:
        """Whether EMIs are still being paid on the given date."""
        if on <= self.start_date:
            return False
        if self.status == LoanStatus.closed:
            return on <= self.end_date
        return True


@dataclass(frozen=True)
class RecurringStream:
    """
    A recurring amount on the monthly grid.

    Annual amounts are pro-rated to twelve equal monthly parts. Escalation
    steps once per calendar year after the stream's start year, so a
    stream starting in March first increases in the following January.
    """

    name: str
    amount: float
    direction: FlowDirection = FlowDirection.inflow
    frequency: Frequency = Frequency.monthly
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    escalation: EscalationPolicy = field(default=NO_ESCALATION)

    def __post_init__(self):
        if self.amount < 0:
            raise InputValidationError(self.name, "amount cannot be negative")
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date < self.start_date
        ):
            raise InputValidationError(
                f"{self.name}.end_date", "cannot be before the start date"
            )

    def monthly_amount(self, on: date, anchor: date) -> float:
        """
        Signed amount this stream contributes on a grid date.

        Args:
            on: The grid date being evaluated
            anchor: Date the stream is measured from when it has no start_date
        """
        start = self.start_date or anchor
        if on < start:
            return 0.0
        if self.end_date is not None and on > self.end_date:
            return 0.0

        base = self.amount / 12 if self.frequency == Frequency.annual else self.amount
        value = self.escalation.apply(base, on.year - start.year)

        return value if self.direction == FlowDirection.inflow else -value


@dataclass(frozen=True)
class OneOffFlow:
    """A single signed amount on a given date (negative = outflow)."""

    name: str
    date: date
    amount: float


Stream = Union[LoanTerms, RecurringStream, OneOffFlow]
