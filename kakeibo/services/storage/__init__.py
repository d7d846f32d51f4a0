"""
Storage Services Package

Provides the abstract key/value interface and concrete implementations.
JSON files on disk are the default backend, but the store only sees the interface.
"""

from kakeibo.services.storage.interface import (
    BUDGETS_KEY,
    EXPENSES_KEY,
    FIXED_COSTS_KEY,
    INCOMES_KEY,
    STORAGE_KEYS,
    KeyValueStorageInterface,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from kakeibo.services.storage.json_file import JsonFileStorage
from kakeibo.services.storage.memory import InMemoryStorage

__all__ = [
    # Keys
    "BUDGETS_KEY",
    "EXPENSES_KEY",
    "FIXED_COSTS_KEY",
    "INCOMES_KEY",
    "STORAGE_KEYS",
    # Interface
    "KeyValueStorageInterface",
    # Exceptions
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
]
