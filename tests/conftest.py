"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from property_returns.calculations.simulation import PropertyInvestment
from property_returns.calculations.streams import LoanTerms
from property_returns.calculations.bond_arbitrage import BondArbitrageInputs


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")


PURCHASE_DATE = date(2022, 6, 15)
SALE_DATE = date(2025, 6, 15)


@pytest.fixture
def leveraged_property():
    """10M flat, 80% financed at 8.5% over 20 years, sold after 3 years."""
    return PropertyInvestment(
        asset_price=10_000_000,
        purchase_date=PURCHASE_DATE,
        sale_price=15_000_000,
        sale_date=SALE_DATE,
        loan=LoanTerms(
            principal=8_000_000,
            annual_rate_percent=8.5,
            term_months=240,
            start_date=PURCHASE_DATE,
        ),
        monthly_rental=50_000,
        annual_expense=100_000,
    )


@pytest.fixture
def bond_inputs():
    """1M loan buying 1,000 bonds at 980 + 20 accrued, held for two years."""
    return BondArbitrageInputs(
        loan_amount=1_000_000,
        loan_rate_percent=9.0,
        loan_tenure_years=5,
        bond_face_value=1000,
        bond_coupon_rate_percent=10.0,
        bond_market_price=980,
        bond_accrued_interest=20,
        bond_maturity_date=date(2026, 2, 5),
        tds_rate_percent=10.0,
        loan_start_date=date(2024, 1, 1),
        first_payment_date=date(2024, 2, 5),
        previous_coupon_date=date(2024, 1, 5),
        inflation_rate_percent=5.0,
        market_return_percent=12.0,
    )
