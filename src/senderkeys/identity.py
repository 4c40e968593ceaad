"""
Identity key store.

Each local user identity owns one P-256 key pair used only for key
agreement. The private half never leaves the local store; the public half
is exported as a JWK JSON string for upload to the key directory.
"""

import logging
from typing import Optional

from cryptography.hazmat.primitives.asymmetric import ec

from .config import SenderKeysConfig
from .keys import (
    generate_keypair,
    private_key_from_jwk,
    private_key_to_jwk,
    public_key_from_jwk,
    public_key_to_jwk,
    public_key_to_material,
)
from .storage import KeyValueStore
from .types import NoIdentityKeyError

logger = logging.getLogger(__name__)


def _private_key_name(user_id: str) -> str:
    return f"private:{user_id}"


def _public_key_name(user_id: str) -> str:
    return f"public:{user_id}"


class IdentityKeyStore:
    """
    Generates and persists one key pair per local user identity.

    Example usage:
        ```python
        identities = IdentityKeyStore(InMemoryKeyValueStore())
        if not await identities.has_identity("alice"):
            public_key = await identities.generate_identity("alice")
        ```
    """

    def __init__(self, store: KeyValueStore, config: Optional[SenderKeysConfig] = None) -> None:
        self._store = store
        self._config = config or SenderKeysConfig()

    @property
    def _store_name(self) -> str:
        return self._config.keypair_store

    async def generate_identity(self, user_id: str) -> str:
        """
        Create and persist a fresh key pair for a user.

        This is not idempotent: an existing private key is overwritten, and
        every pairwise key derived from it becomes useless. Guard with
        `has_identity` or use `ensure_identity`.

        Args:
            user_id: The local user identity.

        Returns:
            The public key as a JWK JSON string.
        """
        if await self.has_identity(user_id):
            logger.warning("Overwriting existing identity key for %s", user_id)

        private_key, public_key = generate_keypair()
        await self._store.set(_private_key_name(user_id), private_key_to_jwk(private_key), self._store_name)
        await self._store.set(_public_key_name(user_id), public_key_to_jwk(public_key), self._store_name)

        logger.info("Generated identity key for %s", user_id)
        return public_key_to_material(public_key)

    async def ensure_identity(self, user_id: str) -> str:
        """Generate a key pair only if none exists; return the public key."""
        if not await self.has_identity(user_id):
            return await self.generate_identity(user_id)
        public_key = await self.export_public_key(user_id)
        if public_key is None:
            # Public half lost; rebuild it from the private key.
            private_key = await self.load_private_key(user_id)
            await self._store.set(
                _public_key_name(user_id), public_key_to_jwk(private_key.public_key()), self._store_name
            )
            public_key = public_key_to_material(private_key.public_key())
        return public_key

    async def has_identity(self, user_id: str) -> bool:
        """True if a private key is stored for the user."""
        return await self._store.get(_private_key_name(user_id), self._store_name) is not None

    async def export_public_key(self, user_id: str) -> Optional[str]:
        """Return the user's public key as a JWK JSON string, or None."""
        jwk = await self._store.get(_public_key_name(user_id), self._store_name)
        if jwk is None:
            return None
        return public_key_to_material(public_key_from_jwk(jwk))

    async def load_private_key(self, user_id: str) -> ec.EllipticCurvePrivateKey:
        """
        Load the user's private key.

        Raises:
            NoIdentityKeyError: If no key pair exists for the user.
        """
        jwk = await self._store.get(_private_key_name(user_id), self._store_name)
        if jwk is None:
            raise NoIdentityKeyError(user_id)
        return private_key_from_jwk(jwk)

    async def delete_identity(self, user_id: str) -> None:
        """Delete both halves of the user's key pair (account reset)."""
        await self._store.delete(_private_key_name(user_id), self._store_name)
        await self._store.delete(_public_key_name(user_id), self._store_name)
