"""
Pydantic request schemas for the portal API.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from auth.models import Role
from auth.password import fits_bcrypt


def _check_password_bytes(value: str) -> str:
    if not fits_bcrypt(value):
        raise ValueError("password must be at most 72 bytes")
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=1, max_length=255)
    role: Role
    department: Optional[str] = None
    institution: Optional[str] = None

    check_password_bytes = field_validator("password")(_check_password_bytes)

    @field_validator("role", mode="before")
    @classmethod
    def canonical_role(cls, value: Any) -> Role:
        return Role.parse(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════════════════════


class _UserProfile(BaseModel):
    department: Optional[str] = None
    institution: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    expertise: Optional[List[str]] = None
    nidn: Optional[str] = None
    nuptk: Optional[str] = None
    nim: Optional[str] = None
    program_studi: Optional[str] = None
    status_kepegawaian: Optional[str] = None
    jabatan_fungsional: Optional[str] = None
    pendidikan_terakhir: Optional[str] = None
    tahun_masuk: Optional[int] = None


class UserCreate(_UserProfile):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=1, max_length=255)
    role: Role

    check_password_bytes = field_validator("password")(_check_password_bytes)

    @field_validator("role", mode="before")
    @classmethod
    def canonical_role(cls, value: Any) -> Role:
        return Role.parse(value)


class UserUpdate(_UserProfile):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8, max_length=72)

    @field_validator("role", mode="before")
    @classmethod
    def canonical_role(cls, value: Any) -> Optional[Role]:
        return None if value is None else Role.parse(value)

    @field_validator("password")
    @classmethod
    def check_password_length(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_password_bytes(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Program studi
# ═══════════════════════════════════════════════════════════════════════════════


class ProgramStudiCreate(BaseModel):
    kode: str = Field(..., min_length=1, max_length=32)
    nama: str = Field(..., min_length=1, max_length=255)
    fakultas: str = Field(..., min_length=1, max_length=255)
    jenjang: str = Field(..., min_length=1, max_length=16)
    akreditasi: Optional[str] = None


class ProgramStudiUpdate(BaseModel):
    kode: Optional[str] = Field(None, min_length=1, max_length=32)
    nama: Optional[str] = Field(None, min_length=1, max_length=255)
    fakultas: Optional[str] = Field(None, min_length=1, max_length=255)
    jenjang: Optional[str] = Field(None, min_length=1, max_length=16)
    akreditasi: Optional[str] = None
    is_active: Optional[bool] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Research proposals
# ═══════════════════════════════════════════════════════════════════════════════


class ProposalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    abstract: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, max_length=64)
    budget: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    keywords: List[str] = Field(default_factory=list)
    objectives: Optional[str] = None
    methodology: Optional[str] = None
    expected_outcomes: Optional[str] = None
    team_members: List[Dict[str, Any]] = Field(default_factory=list)


class ProposalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=512)
    abstract: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1, max_length=64)
    budget: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    keywords: Optional[List[str]] = None
    objectives: Optional[str] = None
    methodology: Optional[str] = None
    expected_outcomes: Optional[str] = None
    team_members: Optional[List[Dict[str, Any]]] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Community services
# ═══════════════════════════════════════════════════════════════════════════════


class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    description: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, max_length=64)
    budget: float = Field(..., ge=0)
    start_date: date
    end_date: date
    objectives: Optional[str] = None
    target_audience: Optional[str] = None
    expected_outcomes: Optional[str] = None
    location: Optional[str] = None

    @model_validator(mode="after")
    def dates_in_order(self) -> "ServiceCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1, max_length=64)
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    objectives: Optional[str] = None
    target_audience: Optional[str] = None
    expected_outcomes: Optional[str] = None
    location: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Review & decision
# ═══════════════════════════════════════════════════════════════════════════════


class Recommendation(str, Enum):
    ACCEPT = "accept"
    MINOR_REVISION = "minor_revision"
    MAJOR_REVISION = "major_revision"
    REJECT = "reject"


class ReviewRequest(BaseModel):
    score: int = Field(..., ge=1, le=100)
    comments: str = Field(..., min_length=1)
    recommendation: Recommendation


class DecisionStatus(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


class DecisionRequest(BaseModel):
    status: DecisionStatus
    review_notes: str = ""
