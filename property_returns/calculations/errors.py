"""
Calculation Errors

Exceptions raised by the calculation engine. Validation failures name the
offending input field; XIRR failures distinguish an undefined rate from one
the solver could not find.
"""


class InputValidationError(ValueError):
    """Raised when an input cannot produce a meaningful calculation."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class XIRRError(ValueError):
    """Base class for XIRR failures."""


class XIRRNotComputableError(XIRRError):
    """The cash flows do not define a rate (too few dates, no sign change)."""


class XIRRConvergenceError(XIRRError):
    """Newton-Raphson did not converge within the iteration cap."""
