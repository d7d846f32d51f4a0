"""
JSON File Storage Implementation

DESIGN DECISION: Each key is one JSON file in a data directory:
1. Users can open and back up their books with any text editor
2. No database setup required
3. A corrupt file only affects its own key

TRADEOFFS:
- No transactions across keys (the record store never needs them)
- Whole-value rewrites on every save (fine for one household's records)

Writes go to a temporary file first and are renamed into place,
so a crash mid-write leaves the previous value intact.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from kakeibo.config import get_settings
from kakeibo.services.storage.interface import (
    KeyValueStorageInterface,
    StorageReadError,
    StorageWriteError,
)


_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")


class JsonFileStorage(KeyValueStorageInterface):
    """
    File-backed key/value storage.

    `<data_dir>/<key>.json` holds the value for `key`.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self._data_dir = Path(data_dir) if data_dir else get_settings().storage.data_dir

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Failed to read {path}: {e}") from e

    def write(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._data_dir,
                prefix=f".{key}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageWriteError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageWriteError(f"Failed to delete {path}: {e}") from e
        return True

    def keys(self) -> list[str]:
        if not self._data_dir.is_dir():
            return []
        return sorted(p.stem for p in self._data_dir.glob("*.json"))
