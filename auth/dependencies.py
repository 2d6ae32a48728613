"""
FastAPI dependencies for authentication.

Provides ``db_session``, the injected ``Secrets``/clock, and the identity
dependencies used across all protected routes:

* ``get_current_identity``: 401 unless a valid bearer token is presented;
* ``get_optional_identity``: ``None`` instead of 401;
* ``require(action)``: identity plus the access-policy scope for ``action``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.authenticator import AuthOutcome, RequestAuthenticator, Unauthenticated
from auth.credentials import CredentialVerifier
from auth.models import Identity, Secrets
from auth.policy import AccessPolicyGate, Action, OwnershipScope, access_policy
from auth.revocation import RevocationList
from auth.sessions import SessionIssuer
from config.settings import config
from database.helpers import IdentityRepository, RevocationRepository
from database.session import get_db_session


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def get_secrets() -> Secrets:
    return Secrets(jwt_secret=config.jwt_secret, token_ttl_seconds=config.jwt_expiry_seconds)


def get_clock() -> Callable[[], float]:
    return time.time


def get_access_policy() -> AccessPolicyGate:
    return access_policy


def get_identity_store(session: AsyncSession = Depends(db_session)) -> IdentityRepository:
    return IdentityRepository(session)


def get_revocation_list(session: AsyncSession = Depends(db_session)) -> RevocationList:
    return RevocationList(RevocationRepository(session))


def get_credential_verifier(
    store: IdentityRepository = Depends(get_identity_store),
) -> CredentialVerifier:
    return CredentialVerifier(store)


def get_session_issuer(
    secrets: Secrets = Depends(get_secrets),
    clock: Callable[[], float] = Depends(get_clock),
) -> SessionIssuer:
    return SessionIssuer(secrets, clock)


def get_authenticator(
    secrets: Secrets = Depends(get_secrets),
    store: IdentityRepository = Depends(get_identity_store),
    revocations: RevocationList = Depends(get_revocation_list),
    clock: Callable[[], float] = Depends(get_clock),
) -> RequestAuthenticator:
    return RequestAuthenticator(secrets, store, revocations, clock)


async def get_auth_outcome(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    authenticator: RequestAuthenticator = Depends(get_authenticator),
) -> AuthOutcome:
    return await authenticator.authenticate(authorization)


def unauthorized(outcome: Unauthenticated) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=outcome.message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_optional_identity(
    outcome: AuthOutcome = Depends(get_auth_outcome),
) -> Optional[Identity]:
    return outcome if isinstance(outcome, Identity) else None


async def get_current_identity(
    outcome: AuthOutcome = Depends(get_auth_outcome),
) -> Identity:
    """
    Extract and verify the Bearer token, returning the authenticated
    identity.
    """
    if isinstance(outcome, Unauthenticated):
        raise unauthorized(outcome)
    return outcome


@dataclass
class AuthContext:
    identity: Identity
    scope: OwnershipScope
    policy: AccessPolicyGate


def require(action: Action) -> Callable[..., AuthContext]:
    """Dependency factory: authenticate, then enforce ``action`` without a row."""

    async def _dependency(
        identity: Identity = Depends(get_current_identity),
        policy: AccessPolicyGate = Depends(get_access_policy),
    ) -> AuthContext:
        scope = policy.enforce(identity, action)
        return AuthContext(identity=identity, scope=scope, policy=policy)

    return _dependency
