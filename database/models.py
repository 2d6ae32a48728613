"""
SQLAlchemy ORM models for the portal.

Column types are kept portable (no PostgreSQL-only dialect types) so the same
models back the asyncpg deployment and the SQLite test database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False, default="")
    name = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="lecturer")
    department = Column(String(255))
    institution = Column(String(255))
    phone = Column(String(64))
    address = Column(Text)
    expertise = Column(JSON)
    nidn = Column(String(32))
    nuptk = Column(String(32))
    nim = Column(String(32))
    program_studi = Column(String(36))
    status_kepegawaian = Column(String(64))
    jabatan_fungsional = Column(String(64))
    pendidikan_terakhir = Column(String(64))
    tahun_masuk = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    proposals = relationship("ResearchProposal", back_populates="creator", cascade="all, delete-orphan")
    services = relationship("CommunityService", back_populates="creator", cascade="all, delete-orphan")


class ProgramStudi(Base):
    __tablename__ = "program_studi"

    id = Column(String(36), primary_key=True, default=_new_id)
    kode = Column(String(32), nullable=False)
    nama = Column(String(255), nullable=False)
    fakultas = Column(String(255), nullable=False)
    jenjang = Column(String(16), nullable=False)
    akreditasi = Column(String(16))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)


class ResearchProposal(Base):
    __tablename__ = "research_proposals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    abstract = Column(Text, nullable=False)
    type = Column(String(64), nullable=False)
    budget = Column(Numeric(15, 2, asdecimal=False))
    duration = Column(Integer)
    keywords = Column(JSON, default=list)
    objectives = Column(Text)
    methodology = Column(Text)
    expected_outcomes = Column(Text)
    team_members = Column(JSON, default=list)
    status = Column(String(16), nullable=False, default="draft")
    created_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    submitted_at = Column(DateTime(timezone=True))
    decision_notes = Column(Text)
    decided_by = Column(String(36))
    decided_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    creator = relationship("User", back_populates="proposals")

    __table_args__ = (Index("ix_research_proposals_created_by", "created_by"),)


class CommunityService(Base):
    __tablename__ = "community_services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(64), nullable=False)
    budget = Column(Numeric(15, 2, asdecimal=False))
    start_date = Column(Date)
    end_date = Column(Date)
    objectives = Column(Text)
    target_audience = Column(Text)
    expected_outcomes = Column(Text)
    location = Column(String(255))
    status = Column(String(16), nullable=False, default="draft")
    created_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    submitted_at = Column(DateTime(timezone=True))
    decision_notes = Column(Text)
    decided_by = Column(String(36))
    decided_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    creator = relationship("User", back_populates="services")

    __table_args__ = (Index("ix_community_services_created_by", "created_by"),)


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_type = Column(String(16), nullable=False)   # "proposal" | "service"
    resource_id = Column(Integer, nullable=False)
    reviewer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    comments = Column(Text, nullable=False)
    recommendation = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    reviewer = relationship("User")

    __table_args__ = (
        UniqueConstraint("resource_type", "resource_id", "reviewer_id", name="uq_reviews_resource_reviewer"),
    )


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    token_digest = Column(String(64), primary_key=True)
    expires_at = Column(Integer, nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (Index("ix_revoked_tokens_expires_at", "expires_at"),)
