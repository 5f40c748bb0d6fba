"""
Core utilities and configuration for the ETL orchestration engine.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: Async SQLAlchemy engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import create_engine, create_session_maker
    from core.exceptions import JobNotFoundError, TransformationError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open a database session
    engine = create_engine()
    async with create_session_maker(engine)() as session:
        pass
"""

__all__ = [
    "settings",
    "create_engine",
    "create_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "PreflightError",
    "JobNotFoundError",
    "NoSourcesDefinedError",
    "ResourceNotFoundError",
    "DataSourceNotFoundError",
    "TransformationNotFoundError",
    "JobRunNotFoundError",
    "AlertNotFoundError",
    "ExtractionError",
    "ConnectorUnavailableError",
    "APIConnectorError",
    "TransformationError",
    "LoadError",
    "JobAbortedError",
    "JobTimeoutError",
    "InvalidRunTransitionError",
    "StorageError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "EndpointNotFoundError",
]
