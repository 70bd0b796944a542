"""
JSON File Storage

The state document lives in a single JSON file. Writes go to a
temporary file next to the target and are moved into place with
os.replace, so a crash mid-write leaves the previous document intact.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from car_fund.services.storage.interface import LocalStateStorage, StorageError


logger = structlog.get_logger(__name__)


class JsonFileStorage(LocalStateStorage):
    """Local storage backed by one file on disk."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            return self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

    def write(self, payload: str) -> None:
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug("state_written", path=str(self._path), size=len(payload))

    def delete(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {self._path}: {e}")
