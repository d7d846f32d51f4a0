"""Record store package."""

from kakeibo.store.record_store import RecordNotFoundError, RecordStore

__all__ = ["RecordNotFoundError", "RecordStore"]
