"""Key-value backends for persisted weight snapshots."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import os
from pathlib import Path
import re
import time

from dodger_ai.config import STORE_SAVE_RETRIES, STORE_SAVE_RETRY_DELAY_SECONDS

LOGGER = logging.getLogger("dodger_ai.store")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore(ABC):
    @abstractmethod
    def read(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._data: dict[str, bytes] = {}

    def read(self, key: str) -> bytes | None:
        return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        self._data[key] = bytes(data)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class DirectoryKeyValueStore(KeyValueStore):
    """One file per key under ``root``; writes go through a temp file and ``os.replace``."""

    def __init__(self, root: str | Path, retries: int = STORE_SAVE_RETRIES):
        self.root = Path(root)
        self.retries = max(1, retries)

    def _path(self, key: str) -> Path:
        return self.root / _UNSAFE_KEY_CHARS.sub("_", key)

    def read(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        os.makedirs(self.root, exist_ok=True)
        temp_file = f"{path}.tmp.{os.getpid()}"
        last_error = None

        for attempt in range(self.retries):
            try:
                with open(temp_file, "wb") as handle:
                    handle.write(data)
                os.replace(temp_file, path)
                return
            except OSError as error:
                last_error = error
                if os.path.exists(temp_file):
                    try:
                        os.remove(temp_file)
                    except OSError:
                        pass
                if attempt < self.retries - 1:
                    time.sleep(STORE_SAVE_RETRY_DELAY_SECONDS * (attempt + 1))

        raise RuntimeError(f"Failed to write '{path}' after {self.retries} attempts.") from last_error

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
