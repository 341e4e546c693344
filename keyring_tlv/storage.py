"""Keystore buffer storage backends.

A backend only moves opaque bytes: every write replaces the whole stored
buffer for an authority. Decoding happens in ``keyring_tlv.keyring``.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
import tempfile
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(ValueError):
    """Raised on keystore storage failures."""


class KeystoreStorage(Protocol):
    """Minimal protocol for keystore buffer stores."""

    def read(self, authority: str) -> bytes | None:
        """Return the stored buffer, or None when the authority has none."""

    def write(self, authority: str, data: bytes) -> None:
        """Replace the stored buffer wholesale."""

    def delete(self, authority: str) -> bool:
        """Remove the stored buffer; returns True when one existed."""


class MemoryKeystoreStorage:
    """Thread-safe in-process store."""

    def __init__(self) -> None:
        self._buffers: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def read(self, authority: str) -> bytes | None:
        _check_authority(authority)
        with self._lock:
            return self._buffers.get(authority)

    def write(self, authority: str, data: bytes) -> None:
        _check_authority(authority)
        payload = _check_data(data)
        with self._lock:
            self._buffers[authority] = payload

    def delete(self, authority: str) -> bool:
        _check_authority(authority)
        with self._lock:
            return self._buffers.pop(authority, None) is not None


class FileKeystoreStorage:
    """One file per authority, replaced atomically on every write."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, authority: str) -> Path:
        _check_authority(authority)
        digest = hashlib.sha256(authority.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.keystore"

    def read(self, authority: str) -> bytes | None:
        path = self.path_for(authority)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"failed to read keystore {path}: {exc}") from exc

    def write(self, authority: str, data: bytes) -> None:
        path = self.path_for(authority)
        payload = _check_data(data)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(prefix=".keystore-", dir=self.directory)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except OSError as exc:
                Path(tmp_name).unlink(missing_ok=True)
                raise StorageError(f"failed to write keystore {path}: {exc}") from exc
        logger.debug("wrote keystore file %s (%d bytes)", path.name, len(payload))

    def delete(self, authority: str) -> bool:
        path = self.path_for(authority)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StorageError(f"failed to delete keystore {path}: {exc}") from exc
        return True


class SQLiteKeystoreStorage:
    """SQLite-backed store, one row per authority."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(path), timeout=30.0, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"failed to open keystore database {path}: {exc}") from exc
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS keystores (
                    authority TEXT PRIMARY KEY,
                    data BLOB NOT NULL,
                    updated REAL NOT NULL
                )
                """
            )
        except sqlite3.Error as exc:
            self._conn.close()
            raise StorageError(f"failed to open keystore database {path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def read(self, authority: str) -> bytes | None:
        _check_authority(authority)
        with self._lock, _sqlite_errors("read"):
            row = self._conn.execute(
                "SELECT data FROM keystores WHERE authority = ?",
                (authority,),
            ).fetchone()
        return bytes(row[0]) if row is not None else None

    def write(self, authority: str, data: bytes) -> None:
        _check_authority(authority)
        payload = _check_data(data)
        with self._lock, _sqlite_errors("write"):
            self._conn.execute(
                """
                INSERT INTO keystores(authority, data, updated) VALUES (?, ?, ?)
                ON CONFLICT(authority) DO UPDATE SET data = excluded.data, updated = excluded.updated
                """,
                (authority, sqlite3.Binary(payload), time.time()),
            )
        logger.debug("wrote keystore row (%d bytes)", len(payload))

    def delete(self, authority: str) -> bool:
        _check_authority(authority)
        with self._lock, _sqlite_errors("delete"):
            cursor = self._conn.execute("DELETE FROM keystores WHERE authority = ?", (authority,))
            return cursor.rowcount > 0


@contextmanager
def _sqlite_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"failed to {action} keystore row: {exc}") from exc


def _check_authority(authority: str) -> None:
    if not isinstance(authority, str) or not authority:
        raise StorageError("authority must be a non-empty string")


def _check_data(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise StorageError("keystore data must be bytes")
    return bytes(data)
