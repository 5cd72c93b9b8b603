"""Services package."""

from splitbook.services.auth import AuthProviderInterface, InMemoryAuthProvider
from splitbook.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsUserDirectory,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserDirectory,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
    UserDirectoryInterface,
)

__all__ = [
    # Auth
    "AuthProviderInterface",
    "InMemoryAuthProvider",
    # Storage
    "AuditStorageInterface",
    "DuplicateError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsUserDirectory",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryUserDirectory",
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    "UserDirectoryInterface",
]
