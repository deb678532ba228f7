"""
Process-lifetime lookup cache that remembers misses.
"""

from typing import Any


class _Missing:
    """Sentinel type for a key that was never stored."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class LookupCache:
    """
    Key/value map for provider lookups.

    A stored None is a cached negative result and is distinct from MISSING,
    which means the lookup has not been done yet.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._values.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> int:
        """Clear all entries. Returns count of cleared entries."""
        count = len(self._values)
        self._values.clear()
        return count
