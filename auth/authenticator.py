"""
Request authentication — bearer token → authenticated identity.

Every failure is returned as ``Unauthenticated`` rather than raised; a
missing credential is a normal outcome on optional-auth endpoints.  The
reason is only ever ``"missing"`` or ``"invalid"``: malformed, forged,
expired and revoked tokens are deliberately indistinguishable.

Identity policy: claims are not trusted as of mint time.  After the token
verifies, the identity row is re-fetched by ``subject_id`` so deactivation
and role changes take effect on the next request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from pydantic import ValidationError

from auth import tokens
from auth.credentials import IdentityStore
from auth.errors import TokenError
from auth.models import Claims, Identity, Secrets
from auth.revocation import RevocationList

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

MISSING = "missing"
INVALID = "invalid"


@dataclass(frozen=True)
class Unauthenticated:
    reason: str = MISSING

    @property
    def message(self) -> str:
        return "No token provided" if self.reason == MISSING else "Invalid token"


AuthOutcome = Union[Identity, Unauthenticated]


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization`` header, or ``None``."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):]
    return token or None


class RequestAuthenticator:
    def __init__(
        self,
        secrets: Secrets,
        store: IdentityStore,
        revocations: Optional[RevocationList] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.secrets = secrets
        self.store = store
        self.revocations = revocations
        self.clock = clock

    def verify_token(self, token: str) -> Optional[Claims]:
        """Decode and shape ``token``; ``None`` on any token error."""
        try:
            payload = tokens.decode(token, self.secrets.jwt_secret, now=self.clock())
            return Claims.from_payload(payload)
        except TokenError as exc:
            logger.debug("Token rejected: %s", type(exc).__name__)
        except ValidationError:
            logger.debug("Token rejected: payload missing identity claims")
        return None

    async def authenticate(self, authorization: Optional[str]) -> AuthOutcome:
        token = extract_bearer(authorization)
        if token is None:
            return Unauthenticated(MISSING)

        claims = self.verify_token(token)
        if claims is None:
            return Unauthenticated(INVALID)

        if self.revocations is not None and await self.revocations.is_revoked(token, int(self.clock())):
            logger.debug("Token rejected: revoked")
            return Unauthenticated(INVALID)

        record = await self.store.find_by_id(claims.subject_id)
        if record is None or not record.is_active:
            logger.info("Token for missing or inactive user %s rejected", claims.subject_id)
            return Unauthenticated(INVALID)

        try:
            return Identity.from_user(record, claims)
        except ValueError:
            logger.warning("User %s has an unrecognised role %r", record.id, record.role)
            return Unauthenticated(INVALID)
