"""
Persistence for the authenticator: credential store, settings and the
key/value backends they write through.
"""

from .kv_backend import (
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    open_backend,
)
from .settings import Settings
from .store import CodeSnapshot, CredentialStore

__all__ = [
    "CodeSnapshot",
    "CredentialStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Settings",
    "SqliteKeyValueStore",
    "open_backend",
]
