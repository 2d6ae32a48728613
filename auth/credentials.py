"""
Credential verification — email/password against stored identity records.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from auth.errors import InvalidCredentials
from auth.password import verify_password

logger = logging.getLogger(__name__)


class IdentityStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[Any]: ...

    async def find_by_id(self, user_id: str) -> Optional[Any]: ...

    async def touch_last_login(self, user_id: str) -> None: ...

    async def update_password_hash(self, user_id: str, password_hash: str) -> None: ...


class CredentialVerifier:
    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    async def verify_credentials(self, email: str, password: str) -> Any:
        """
        Return the identity record for a matching, active account.

        Unknown email, inactive account and wrong password all raise the same
        ``InvalidCredentials`` so the response does not reveal which accounts
        exist.
        """
        record = await self.store.find_by_email(email)
        if record is None or not record.is_active:
            logger.info("Login rejected: no active account for the submitted email")
            raise InvalidCredentials()

        if not verify_password(password, record.password_hash):
            logger.info("Login rejected: password mismatch for user %s", record.id)
            raise InvalidCredentials()

        return record
