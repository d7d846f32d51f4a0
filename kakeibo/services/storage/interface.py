"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON files for a real database later
2. Use in-memory storage for testing
3. Keep the record store decoupled from where bytes end up

The interface is intentionally tiny: durable key/value text storage.
Serialization is the record store's job, not the backend's.
"""

from abc import ABC, abstractmethod
from typing import Optional


# Keys used by the record store
EXPENSES_KEY = "expenses"
INCOMES_KEY = "incomes"
BUDGETS_KEY = "budgets"
FIXED_COSTS_KEY = "fixed_costs"

STORAGE_KEYS = (EXPENSES_KEY, INCOMES_KEY, BUDGETS_KEY, FIXED_COSTS_KEY)


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for durable key/value storage.

    Any storage implementation (JSON files, SQLite, browser storage...)
    must implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored text, or None if nothing was ever written

        Raises:
            StorageReadError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """
        Replace the value stored under a key.

        Args:
            key: Storage key
            value: Serialized text to store

        Raises:
            StorageWriteError: If the value could not be persisted
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List the keys currently holding a value."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageReadError(StorageError):
    """Could not read from the storage backend."""
    pass


class StorageWriteError(StorageError):
    """Could not write to the storage backend."""
    pass
