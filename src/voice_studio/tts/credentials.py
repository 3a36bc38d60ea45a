"""
Credential Pool.

An ordered, non-empty list of API keys. Each key is an independent rate
limit on the provider side, so a batch runs one worker per key and worker
``i`` always uses key ``i``.

A pool is either *shared* (the system key, subject to the usage quota) or
*user* (keys the user supplied, never counted).
"""
from __future__ import annotations

import random
from typing import Iterable, List, Optional

from voice_studio.core.errors import InvalidCredential


def mask_credential(key: str) -> str:
    """Display form of a key: first 6 and last 4 characters."""
    if len(key) < 10:
        return "******"
    return f"{key[:6]}...{key[-4:]}"


class CredentialPool:
    """
    Args:
        credentials: Keys in priority order. Surrounding whitespace is
            stripped and duplicates are dropped, keeping the first.
        shared: True when the pool holds the shared/system key.
        rng: Random source for ``any()`` (injectable for tests).

    Raises:
        InvalidCredential: If the list is empty or contains a blank key.
    """

    def __init__(
        self,
        credentials: Iterable[str],
        shared: bool = False,
        rng: Optional[random.Random] = None,
    ):
        keys: List[str] = []
        for raw in credentials:
            key = (raw or "").strip()
            if not key:
                raise InvalidCredential("Credential must not be blank")
            if key not in keys:
                keys.append(key)
        if not keys:
            raise InvalidCredential("At least one credential is required")

        self._keys = keys
        self._shared = shared
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self):
        return iter(self._keys)

    @property
    def is_shared(self) -> bool:
        return self._shared

    @property
    def keys(self) -> List[str]:
        return list(self._keys)

    def any(self) -> str:
        """Random key for a single-shot call."""
        return self._rng.choice(self._keys)

    def first(self) -> str:
        return self._keys[0]

    def for_worker(self, index: int) -> str:
        """Fixed key of batch worker ``index``."""
        if not 0 <= index < len(self._keys):
            raise IndexError(f"no credential for worker {index} (pool size {len(self._keys)})")
        return self._keys[index]

    def masked(self) -> List[str]:
        return [mask_credential(k) for k in self._keys]

    def __repr__(self) -> str:
        return f"CredentialPool(size={len(self._keys)}, shared={self._shared})"
