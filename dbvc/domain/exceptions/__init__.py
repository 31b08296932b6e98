from .base import (
    CheckoutFailure,
    ConfigError,
    DatabaseClientError,
    DomainError,
    DumpFailure,
    ImportFailure,
    IntegrityFailure,
    LockTimeoutError,
    RevertFatalError,
)

__all__ = [
    "CheckoutFailure",
    "ConfigError",
    "DatabaseClientError",
    "DomainError",
    "DumpFailure",
    "ImportFailure",
    "IntegrityFailure",
    "LockTimeoutError",
    "RevertFatalError",
]
