"""
Cache key generation utilities.

Keys look like ``sportsfetch:GetSeason:2024:null``: a prefix, the operation
name and each parameter rendered deterministically. Text containing the
separator is percent-escaped, so ``("a:b",)`` and ``("a", "b")`` never share
a key.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any
from urllib.parse import quote, unquote


class CacheKeyGenerator:
    """Generates deterministic, operation-namespaced cache keys.

    Example:
        >>> generator = CacheKeyGenerator()
        >>> generator.generate("GetSeason", 2024, None)
        'sportsfetch:GetSeason:2024:null'
    """

    separator = ":"

    def __init__(self, prefix: str = "sportsfetch") -> None:
        """Initialize key generator.

        Args:
            prefix: Key prefix
        """
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def generate(self, operation: str, *params: Any) -> str:
        """Generate a cache key.

        Args:
            operation: Operation name
            *params: Parameters distinguishing the call

        Returns:
            Cache key string
        """
        if not operation:
            raise ValueError("operation must not be empty")
        parts = [
            self._prefix,
            self._escape(operation),
            *(self._render(p) for p in params),
        ]
        return self.separator.join(parts)

    def operation_of(self, key: str) -> str | None:
        """Extract the operation segment from a key this generator produced."""
        parts = key.split(self.separator)
        if len(parts) < 2 or parts[0] != self._prefix:
            return None
        return unquote(parts[1])

    def _escape(self, text: str) -> str:
        if self.separator not in text and "%" not in text:
            return text
        return quote(text, safe="")

    def _render(self, value: Any) -> str:
        """Render one parameter.

        Scalars render as text; mappings and sequences render as a short
        hash of their canonical JSON so keys stay bounded in length.
        """
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return self._escape(str(value.value))
        if isinstance(value, str):
            return self._escape(value)
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, (Mapping, list, tuple, set, frozenset)):
            return self._hash_params(value)
        return self._escape(str(value))

    def _hash_params(self, value: Any) -> str:
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=repr)
        content = json.dumps(value, sort_keys=True, ensure_ascii=True, default=str)
        return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
