"""
pgkv: a key-value storage adapter backed by a single PostgreSQL table.

Quick start::

    from pgkv import PostgresKeyValueStorage

    store = PostgresKeyValueStorage("postgresql://localhost/app", "sessions")
    await store.initialize()          # creates database and table if needed
    await store.set("abc", {"exp": 100})
    await store.get("abc")            # {'exp': 100}
"""

from pgkv.errors import (
    ConfigError,
    ErrorCategory,
    InitializationError,
    KVError,
    NotReadyError,
)
from pgkv.protocols import Initializer, KeyValueStorage
from pgkv.settings import StoreSettings, get_settings
from pgkv.storage import PostgresKeyValueStorage

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "InitializationError",
    "Initializer",
    "KVError",
    "KeyValueStorage",
    "NotReadyError",
    "PostgresKeyValueStorage",
    "StoreSettings",
    "get_settings",
    "__version__",
]
