"""Key-value store interface.

The store has no transactions and no expiry of its own: callers implement
TTL logic on top of plain string values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Synchronous string-keyed get/set/remove store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value for key, or None if absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, overwriting any previous value."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""
        raise NotImplementedError

    @abstractmethod
    def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Atomically store value only if the current value equals expected.

        Args:
            key: Key to write.
            expected: Value the caller last read (None meaning "absent").
            value: New value to store.

        Returns:
            True if the write happened, False if another writer got there first.
        """
        raise NotImplementedError
