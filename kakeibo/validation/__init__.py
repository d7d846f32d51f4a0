"""Validation package."""

from kakeibo.validation.validator import RecordValidator

__all__ = ["RecordValidator"]
