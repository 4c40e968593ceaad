"""In-memory cache for derived pairwise keys."""

import hashlib
from typing import Optional


def public_key_fingerprint(public_key: str) -> str:
    """SHA-256 hex digest of a public key material string."""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()


class SharedKeyCache:
    """
    Cache of pairwise AES keys keyed by (local user id, public key fingerprint).

    The fingerprint covers the whole material string, so two peers only
    share an entry if their public keys are identical. Derivation is
    deterministic for a given pair of key pairs, so entries never go stale
    unless the local identity is regenerated.
    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, str], bytes] = {}

    def _cache_key(self, my_user_id: str, their_public_key: str) -> tuple[str, str]:
        return my_user_id, public_key_fingerprint(their_public_key)

    def store(self, my_user_id: str, their_public_key: str, key: bytes) -> None:
        """Store a derived key."""
        self._cache[self._cache_key(my_user_id, their_public_key)] = bytes(key)

    def retrieve(self, my_user_id: str, their_public_key: str) -> Optional[bytes]:
        """Retrieve a derived key, or None."""
        return self._cache.get(self._cache_key(my_user_id, their_public_key))

    def invalidate_user(self, my_user_id: str) -> None:
        """Drop every key derived with a local identity."""
        for cache_key in [k for k in self._cache if k[0] == my_user_id]:
            del self._cache[cache_key]

    def clear(self) -> None:
        """Clear all cached keys."""
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
