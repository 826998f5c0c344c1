"""
Core utilities and configuration for the trending template ETL service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory management
    exceptions: ETL error taxonomy and exception hierarchy
    logging: Logging configuration with structured ETL context

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import NetworkError, UnrecoverableError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open a session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "ETLErrorType",
    "ETLError",
    "ExtractionError",
    "TransformationError",
    "LoadError",
    "ValidationError",
    "NetworkError",
    "ETLTimeoutError",
    "AuthenticationError",
    "PermissionDeniedError",
    "RecoveryError",
    "UnrecoverableError",
    "ItemSkippedError",
    "JobNotFoundError",
]
