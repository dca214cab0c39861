"""Durable key-value stores for session snapshots.

The persistence gateway only needs ``get``/``set``/``remove`` on string
values.  :class:`InMemoryKeyValueStore` backs tests and throwaway runs;
:class:`FileKeyValueStore` keeps one JSON file per key and writes it
atomically via a ``.tmp`` sibling and :func:`os.replace`.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from papertrader.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(ABC):
    """String-valued key-value store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value*.  Raises :class:`PersistenceError` on write failure."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*.  Missing keys are ignored."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store.  Thread-safe."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class FileKeyValueStore(KeyValueStore):
    """One ``<key>.json`` file per key under *root*."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("get(%s) failed reading %s: %s", key, path, exc)
            return None

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(value, encoding="utf-8")
                os.replace(tmp, path)
            except OSError as exc:
                with contextlib.suppress(OSError):
                    tmp.unlink(missing_ok=True)
                raise PersistenceError(f"could not write {path}: {exc}") from exc

    def remove(self, key: str) -> None:
        path = self.path_for(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("remove(%s) failed: %s", path, exc)
