"""
Web middleware module.

This module provides the centralized exception handlers for the FastAPI application.
"""

from src.infrastructure.adapters.primary.web.middleware.exception_handlers import (
    configure_exception_handlers,
)

__all__ = [
    "configure_exception_handlers",
]
