"""
Auth API routes — login, register, logout, verify, refresh, me.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auth.authenticator import extract_bearer
from auth.credentials import CredentialVerifier
from auth.dependencies import (
    db_session,
    get_clock,
    get_credential_verifier,
    get_current_identity,
    get_identity_store,
    get_revocation_list,
    get_session_issuer,
)
from auth.models import Identity, Role
from auth.password import hash_password
from auth.revocation import RevocationList
from auth.sessions import SessionIssuer
from database.helpers import (
    IdentityRepository,
    bg_purge_revocations,
    bg_record_login,
    user_to_dict,
)
from database.session import get_session_factory
from utils.schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

SELF_REGISTER_ROLES = frozenset({Role.LECTURER, Role.STUDENT})


@router.post("/login")
async def login(
    req: LoginRequest,
    background_tasks: BackgroundTasks,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    issuer: SessionIssuer = Depends(get_session_issuer),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> Dict[str, Any]:
    """Login with email + password.  ``InvalidCredentials`` renders as 401."""
    result = await issuer.login(verifier, req.email, req.password)

    background_tasks.add_task(
        bg_record_login,
        session_factory,
        result.identity.subject_id,
        result.upgraded_password_hash,
    )
    logger.info("Login: %s (%s)", result.identity.subject_id, result.identity.role.value)

    return {
        "success": True,
        "token": result.token,
        "expires_at": result.expires_at,
        "user": result.identity.public_dict(),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    store: IdentityRepository = Depends(get_identity_store),
) -> Dict[str, Any]:
    """Register a new lecturer or student account."""
    if req.role not in SELF_REGISTER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role cannot be self-registered",
        )
    if await store.email_exists(req.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    user = await store.create(
        email=req.email,
        password_hash=hash_password(req.password),
        name=req.name,
        role=req.role.value,
        department=req.department,
        institution=req.institution,
        is_active=True,
    )
    logger.info("Registered user %s as %s", user.id, user.role)

    return {
        "success": True,
        "message": "User created successfully",
        "userId": user.id,
    }


@router.post("/logout")
async def logout(
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    identity: Identity = Depends(get_current_identity),
    revocations: RevocationList = Depends(get_revocation_list),
    clock=Depends(get_clock),
    session: AsyncSession = Depends(db_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> Dict[str, Any]:
    """Revoke the presented token until its natural expiry."""
    token = extract_bearer(authorization)
    await revocations.revoke(token, identity.expires_at)
    # Commit before the purge task opens its own session
    await session.commit()
    background_tasks.add_task(bg_purge_revocations, session_factory, int(clock()))
    logger.info("Logout: %s", identity.subject_id)
    return {"success": True, "message": "Logged out successfully"}


@router.api_route("/verify", methods=["GET", "POST"])
async def verify(identity: Identity = Depends(get_current_identity)) -> Dict[str, Any]:
    return {"success": True, "user": identity.model_dump(mode="json")}


@router.post("/refresh")
async def refresh(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    identity: Identity = Depends(get_current_identity),
    store: IdentityRepository = Depends(get_identity_store),
    issuer: SessionIssuer = Depends(get_session_issuer),
    revocations: RevocationList = Depends(get_revocation_list),
    clock=Depends(get_clock),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """
    Exchange a still-valid token for a fresh one carrying the live role.

    The presented token is revoked so each token refreshes at most once.
    """
    record = await store.find_by_id(identity.subject_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    presented = extract_bearer(authorization)
    now = int(clock())
    token = issuer.issue_session(record, now=now)
    # Same claims minted in the same second give the same token.
    if token != presented:
        await revocations.revoke(presented, identity.expires_at)
        await session.commit()

    return {
        "success": True,
        "token": token,
        "expires_at": now + issuer.secrets.token_ttl_seconds,
        "user": identity.public_dict(),
    }


@router.get("/me")
async def me(
    identity: Identity = Depends(get_current_identity),
    store: IdentityRepository = Depends(get_identity_store),
) -> Dict[str, Any]:
    record = await store.find_by_id(identity.subject_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return {"success": True, "data": user_to_dict(record)}
