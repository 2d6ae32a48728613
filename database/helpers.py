"""
Database helper functions — identity lookups, token revocations, user and
program-of-study management.

"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auth.revocation import RevocationList
from database.models import ProgramStudi, RevokedToken, Review, User
from database.submissions import RESOURCE_MODELS

logger = logging.getLogger(__name__)

ADMIN_ROLE_VALUES = ("admin", "lppm_admin", "super_admin")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Identity store ──────────────────────────────────────────────────


class IdentityRepository:
    """Identity-record access used by the authentication core."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == str(user_id)))
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(select(User.id).where(User.email == email))
        return result.first() is not None

    async def touch_last_login(self, user_id: str) -> None:
        await self.session.execute(
            update(User).where(User.id == str(user_id)).values(last_login=_utcnow())
        )

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == str(user_id))
            .values(password_hash=password_hash, updated_at=_utcnow())
        )

    async def create(self, **fields: Any) -> User:
        now = _utcnow()
        user = User(created_at=now, updated_at=now, **fields)
        self.session.add(user)
        await self.session.flush()
        return user


# ── Token revocations ───────────────────────────────────────────────


class RevocationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, token_digest: str, expires_at: int) -> None:
        existing = await self.session.get(RevokedToken, token_digest)
        if existing is None:
            self.session.add(RevokedToken(token_digest=token_digest, expires_at=expires_at))
            await self.session.flush()

    async def exists(self, token_digest: str, now: int) -> bool:
        result = await self.session.execute(
            select(RevokedToken.token_digest).where(
                RevokedToken.token_digest == token_digest,
                RevokedToken.expires_at > now,
            )
        )
        return result.first() is not None

    async def purge(self, now: int) -> int:
        result = await self.session.execute(
            delete(RevokedToken).where(RevokedToken.expires_at <= now)
        )
        return result.rowcount or 0


# ── Background (fire-and-forget) wrappers ───────────────────────────


async def bg_record_login(
    session_factory: async_sessionmaker,
    user_id: str,
    new_password_hash: Optional[str] = None,
) -> None:
    """Fire-and-forget: stamp ``last_login`` (and upgrade a legacy digest)."""
    try:
        async with session_factory() as session:
            repo = IdentityRepository(session)
            await repo.touch_last_login(user_id)
            if new_password_hash:
                await repo.update_password_hash(user_id, new_password_hash)
                logger.info("Upgraded legacy password digest for user %s", user_id)
            await session.commit()
    except Exception:
        logger.exception("Background login bookkeeping failed for user %s", user_id)


async def bg_purge_revocations(session_factory: async_sessionmaker, now: int) -> None:
    """Fire-and-forget: drop revocation rows whose tokens have expired anyway."""
    try:
        async with session_factory() as session:
            purged = await RevocationList(RevocationRepository(session)).purge_expired(now)
            await session.commit()
        if purged:
            logger.info("Purged %d expired token revocations", purged)
    except Exception:
        logger.exception("Background revocation purge failed")


# ── User management ─────────────────────────────────────────────────


def user_to_dict(user: User) -> Dict[str, Any]:
    """Public view of a user row (never includes the password digest)."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department": user.department,
        "institution": user.institution,
        "phone": user.phone,
        "address": user.address,
        "expertise": user.expertise or [],
        "nidn": user.nidn,
        "nuptk": user.nuptk,
        "nim": user.nim,
        "program_studi": user.program_studi,
        "status_kepegawaian": user.status_kepegawaian,
        "jabatan_fungsional": user.jabatan_fungsional,
        "pendidikan_terakhir": user.pendidikan_terakhir,
        "tahun_masuk": user.tahun_masuk,
        "is_active": bool(user.is_active),
        "email_verified": bool(user.email_verified),
        "last_login": user.last_login,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


async def list_users(session: AsyncSession) -> List[User]:
    result = await session.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def update_user(session: AsyncSession, user: User, fields: Dict[str, Any]) -> User:
    for key, value in fields.items():
        setattr(user, key, value)
    user.updated_at = _utcnow()
    await session.flush()
    return user


async def delete_user(session: AsyncSession, user: User) -> None:
    """Delete ``user`` with their proposals, services and every review on or by them."""
    # Reviews point at resources without a foreign key, so they are not cascaded.
    owned_reviews = [
        and_(
            Review.resource_type == resource_type,
            Review.resource_id.in_(select(model.id).where(model.created_by == user.id)),
        )
        for resource_type, model in RESOURCE_MODELS.items()
    ]
    await session.execute(delete(Review).where(or_(Review.reviewer_id == user.id, *owned_reviews)))
    await session.delete(user)
    await session.flush()


async def user_statistics(session: AsyncSession) -> Dict[str, int]:
    row = (
        await session.execute(
            select(
                func.count(User.id).label("total"),
                func.count(case((User.role == "lecturer", 1))).label("lecturers"),
                func.count(case((User.role == "student", 1))).label("students"),
                func.count(case((User.role.in_(ADMIN_ROLE_VALUES), 1))).label("admins"),
                func.count(case((User.is_active.is_(True), 1))).label("active_users"),
                func.count(case((User.is_active.is_(False), 1))).label("inactive_users"),
            )
        )
    ).one()
    return {key: int(value or 0) for key, value in row._mapping.items()}


# ── Program studi ───────────────────────────────────────────────────


def program_to_dict(program: ProgramStudi) -> Dict[str, Any]:
    return {
        "id": program.id,
        "kode": program.kode,
        "nama": program.nama,
        "fakultas": program.fakultas,
        "jenjang": program.jenjang,
        "akreditasi": program.akreditasi,
        "is_active": bool(program.is_active),
        "created_at": program.created_at,
        "updated_at": program.updated_at,
    }


async def list_programs(session: AsyncSession, include_inactive: bool = False) -> List[ProgramStudi]:
    stmt = select(ProgramStudi).order_by(ProgramStudi.fakultas, ProgramStudi.nama)
    if not include_inactive:
        stmt = stmt.where(ProgramStudi.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_program(session: AsyncSession, program_id: str) -> Optional[ProgramStudi]:
    return await session.get(ProgramStudi, program_id)


async def create_program(session: AsyncSession, fields: Dict[str, Any]) -> ProgramStudi:
    now = _utcnow()
    program = ProgramStudi(is_active=True, created_at=now, updated_at=now, **fields)
    session.add(program)
    await session.flush()
    return program


async def update_program(
    session: AsyncSession, program: ProgramStudi, fields: Dict[str, Any]
) -> ProgramStudi:
    for key, value in fields.items():
        setattr(program, key, value)
    program.updated_at = _utcnow()
    await session.flush()
    return program


async def soft_delete_program(session: AsyncSession, program: ProgramStudi) -> None:
    program.is_active = False
    program.updated_at = _utcnow()
    await session.flush()
