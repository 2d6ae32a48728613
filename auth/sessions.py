"""
Session issuance — turns a verified identity record into a signed token.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from auth import tokens
from auth.credentials import CredentialVerifier
from auth.models import Identity, Role, Secrets
from auth.password import fits_bcrypt, hash_password, needs_rehash

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class SessionResult:
    token: str
    identity: Identity
    expires_at: int
    # bcrypt digest to store in place of a legacy one, if the login upgraded it
    upgraded_password_hash: Optional[str] = None


def session_claims(record: Any) -> Dict[str, Any]:
    return {
        "userId": str(record.id),
        "email": record.email,
        "role": Role.parse(record.role).value,
        "name": record.name or "",
    }


class SessionIssuer:
    def __init__(self, secrets: Secrets, clock: Clock = time.time) -> None:
        self.secrets = secrets
        self.clock = clock

    def issue_session(self, record: Any, now: Optional[float] = None) -> str:
        return tokens.encode(
            session_claims(record),
            self.secrets.jwt_secret,
            self.secrets.token_ttl_seconds,
            now=self.clock() if now is None else now,
        )

    async def login(self, verifier: CredentialVerifier, email: str, password: str) -> SessionResult:
        """
        Verify ``email``/``password`` and mint a session token.

        Raises ``InvalidCredentials``.  Recording the login (``last_login``,
        digest upgrade) is left to the caller as fire-and-forget work.
        """
        record = await verifier.verify_credentials(email, password)
        issued_at = int(self.clock())
        token = self.issue_session(record, now=issued_at)
        upgraded = None
        if needs_rehash(record.password_hash):
            if fits_bcrypt(password):
                upgraded = hash_password(password)
            else:
                logger.info("Keeping legacy digest for user %s: password exceeds bcrypt limit", record.id)
        return SessionResult(
            token=token,
            identity=Identity.from_user(record),
            expires_at=issued_at + self.secrets.token_ttl_seconds,
            upgraded_password_hash=upgraded,
        )
