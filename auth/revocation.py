"""
Explicit token revocation (logout before expiry).

Only a SHA-256 digest of the token is stored, together with the token's own
``exp`` so a row never outlives the token it blocks.  The codec never
consults this list; the request authenticator checks it after a successful
decode.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class RevocationStore(Protocol):
    async def add(self, token_digest: str, expires_at: int) -> None: ...

    async def exists(self, token_digest: str, now: int) -> bool: ...

    async def purge(self, now: int) -> int: ...


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationList:
    def __init__(self, store: RevocationStore) -> None:
        self.store = store

    async def revoke(self, token: str, expires_at: int) -> None:
        await self.store.add(token_digest(token), int(expires_at))
        logger.info("Token revoked (expires_at=%d)", expires_at)

    async def is_revoked(self, token: str, now: int) -> bool:
        return await self.store.exists(token_digest(token), int(now))

    async def purge_expired(self, now: int) -> int:
        return await self.store.purge(int(now))
