"""
Key/value persistence for the credential store.

The store only needs three operations: ``get(key) -> bytes | None``,
``set(key, value)`` and ``delete(key)``. Every backend turns its own failures
(sqlite3.Error, OSError, a damaged JSON file) into PersistenceError.
"""

import abc
import base64
import binascii
import json
import logging
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime

from authenticator_core.exceptions import PersistenceError

from .setup_database import DATABASE_FILE, setup_database

logger = logging.getLogger(__name__)

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")


class KeyValueStore(abc.ABC):
    """Durable mapping of text keys to byte values."""

    @abc.abstractmethod
    def get(self, key: str) -> bytes | None:
        ...

    @abc.abstractmethod
    def set(self, key: str, value: bytes) -> None:
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store; nothing survives the process."""

    def __init__(self, initial: dict | None = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteKeyValueStore(KeyValueStore):
    """Rows in the ``kv_store`` table of a sqlite database file."""

    def __init__(self, path: str = DATABASE_FILE):
        self.path = path
        try:
            setup_database(path)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Cannot open database {path}: {e}") from e

    def get_db_connection(self) -> sqlite3.Connection:
        """Open a connection to the database."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row  # rows behave like dictionaries
        return conn

    def get(self, key: str) -> bytes | None:
        try:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                result = cursor.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error reading {key!r}: {e}") from e

        if result:
            return bytes(result["value"])
        return None

    def set(self, key: str, value: bytes) -> None:
        try:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                      updated_at = excluded.updated_at""",
                    (key, sqlite3.Binary(value), datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error writing {key!r}: {e}") from e
        logger.debug("Saved %s (%d bytes) to %s", key, len(value), self.path)

    def delete(self, key: str) -> None:
        try:
            conn = self.get_db_connection()
            try:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error deleting {key!r}: {e}") from e


class JsonFileKeyValueStore(KeyValueStore):
    """
    A single JSON document ``{key: base64(value)}``.

    Writes go to a temporary file that replaces the original, and the previous
    version is kept as ``<path>.bak``.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not contain a JSON object")
        return data

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            if os.path.exists(self.path):
                shutil.copy2(self.path, self.path + ".bak")
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".kv-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> bytes | None:
        encoded = self._load().get(key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, TypeError) as e:
            raise PersistenceError(f"Value of {key!r} in {self.path} is not Base64") from e

    def set(self, key: str, value: bytes) -> None:
        data = self._load()
        data[key] = base64.b64encode(value).decode("ascii")
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


def open_backend(path: str = DATABASE_FILE) -> KeyValueStore:
    """sqlite for .db/.sqlite/.sqlite3 files, a JSON document otherwise."""
    if path.lower().endswith(SQLITE_SUFFIXES):
        return SqliteKeyValueStore(path)
    return JsonFileKeyValueStore(path)
