"""
Main FastAPI application entry point.
"""

from fastapi import FastAPI

from property_returns import __version__
from property_returns.api import router as api_router
from property_returns.config import get_settings
from property_returns.logging_config import setup_logging

settings = get_settings()

setup_logging(settings.log_level, json_format=settings.log_json)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Leveraged property and bond investment return calculations",
    version=__version__,
    debug=settings.debug,
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": __version__}
