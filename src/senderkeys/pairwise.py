"""Pairwise key agreement between two identities."""

import logging
from typing import Optional

from .identity import IdentityKeyStore
from .keys import ecdh, public_key_from_material
from .storage import SharedKeyCache

logger = logging.getLogger(__name__)


class PairwiseKeyAgreement:
    """
    Derives AES-256-GCM keys shared by exactly two identities.

    The key is the raw 32-byte P-256 ECDH secret, so
    `derive_shared(a, pub(b)) == derive_shared(b, pub(a))` without any
    handshake round trip.
    """

    def __init__(self, identities: IdentityKeyStore, cache: Optional[SharedKeyCache] = None) -> None:
        self._identities = identities
        self.cache = cache if cache is not None else SharedKeyCache()

    async def derive_shared(self, my_user_id: str, their_public_key: str) -> bytes:
        """
        Derive the shared key between a local identity and a remote public key.

        Args:
            my_user_id: Local user whose private key is used.
            their_public_key: Counterpart's public key (JWK JSON string).

        Returns:
            32-byte symmetric key.

        Raises:
            NoIdentityKeyError: If the local user has no key pair.
            InvalidPublicKeyError: If the remote key cannot be parsed.
        """
        remote_key = public_key_from_material(their_public_key)
        private_key = await self._identities.load_private_key(my_user_id)
        return ecdh(private_key, remote_key)

    async def get_or_derive_shared(self, my_user_id: str, their_public_key: str) -> bytes:
        """Cached wrapper around `derive_shared`."""
        key = self.cache.retrieve(my_user_id, their_public_key)
        if key is not None:
            return key

        key = await self.derive_shared(my_user_id, their_public_key)
        self.cache.store(my_user_id, their_public_key, key)
        logger.debug("Derived pairwise key for %s", my_user_id)
        return key

    def forget(self, my_user_id: str) -> None:
        """Drop derived keys for a local identity (after regenerating it)."""
        self.cache.invalidate_user(my_user_id)

    def clear_cache(self) -> None:
        """Clear every derived key, e.g. when switching servers."""
        self.cache.clear()
