"""Local key-value store adapters.

Both the rate limiter and the assistant memory service persist plain strings
through this interface, so the same logic runs against an in-process map or a
JSON file on disk.
"""

from app.adapters.storage.base import AbstractKeyValueStore
from app.adapters.storage.file_store import JsonFileKeyValueStore
from app.adapters.storage.in_memory import InMemoryKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
