"""Shared fixtures: in-memory storage, a fresh audit logger and a loaded store."""

from io import BytesIO
from types import SimpleNamespace
from typing import Optional

import pytest
from PIL import Image, ImageDraw

from kakeibo.audit import AuditLogger
from kakeibo.config import AppSettings
from kakeibo.services.storage import InMemoryStorage, StorageReadError, StorageWriteError
from kakeibo.store import RecordStore


class FlakyStorage(InMemoryStorage):
    """In-memory storage whose reads or writes fail for selected keys."""

    def __init__(self, initial=None, failing_reads=(), failing_writes=()):
        super().__init__(initial)
        self.failing_reads = set(failing_reads)
        self.failing_writes = set(failing_writes)

    def read(self, key: str) -> Optional[str]:
        if key in self.failing_reads:
            raise StorageReadError(f"cannot read {key}")
        return super().read(key)

    def write(self, key: str, value: str) -> None:
        if key in self.failing_writes:
            raise StorageWriteError(f"cannot write {key}")
        super().write(key, value)


class FakeModel:
    """Stand-in for genai.GenerativeModel; replays responses or raises them."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content_async(self, contents, **kwargs):
        self.calls.append((contents, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text_response(text, candidates=()):
    return SimpleNamespace(text=text, candidates=list(candidates))


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage, audit_logger):
    return RecordStore(storage, audit_logger=audit_logger)


@pytest.fixture
def app_settings():
    return AppSettings(max_amount_yen=1_000_000, future_date_tolerance_days=7)


def make_photo(size=(600, 800), dark=False, fmt="JPEG", mode="RGB") -> bytes:
    """A photo with one black and one white half (or all black when dark)."""
    img = Image.new(mode, size, "black" if dark else "white")
    if not dark:
        ImageDraw.Draw(img).rectangle([0, 0, size[0] // 2, size[1]], fill="black")
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def receipt_photo():
    return make_photo()
