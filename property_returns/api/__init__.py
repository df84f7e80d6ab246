"""
API routes for the returns calculator.
"""

from fastapi import APIRouter

from property_returns.api import calculations

router = APIRouter()

router.include_router(calculations.router, prefix="/calculate", tags=["calculations"])
