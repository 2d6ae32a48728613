"""
Value types shared by the authentication core.

``User`` is re-exported from the database package; everything else here is
ephemeral and never persisted (the token itself is the only record of a
session).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from database.models import User  # noqa: F401


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    LPPM_ADMIN = "lppm_admin"
    ADMIN = "admin"
    LECTURER = "lecturer"
    STUDENT = "student"
    REVIEWER = "reviewer"
    GUEST = "guest"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """
        Translate a stored or submitted role string to its canonical member.

        Localised names used by older records and tokens (``dosen``,
        ``mahasiswa``) map onto ``lecturer`` and ``student``.
        """
        if isinstance(value, Role):
            return value
        key = str(value).strip().lower()
        key = _LEGACY_ROLE_NAMES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None

    @property
    def is_elevated(self) -> bool:
        return self in ELEVATED_ROLES


_LEGACY_ROLE_NAMES = {
    "dosen": "lecturer",
    "mahasiswa": "student",
}

ELEVATED_ROLES = frozenset({Role.SUPER_ADMIN, Role.LPPM_ADMIN, Role.ADMIN})
OWNERSHIP_SCOPED_ROLES = frozenset({Role.LECTURER, Role.STUDENT})


@dataclass(frozen=True)
class Secrets:
    """Server-held signing material, injected into every component that needs it."""

    jwt_secret: str
    token_ttl_seconds: int = 86400


class Claims(BaseModel):
    """
    Decoded token payload.

    Field aliases are the wire keys of already-issued tokens (``userId``,
    ``iat``, ``exp``); attribute names are the logical ones.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subject_id: str = Field(alias="userId")
    email: str
    role: str
    name: str = ""
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Claims":
        data = dict(payload)
        # Integer ids from older issuers are normalised to text.
        if "userId" in data and data["userId"] is not None:
            data["userId"] = str(data["userId"])
        return cls.model_validate(data)


class Identity(BaseModel):
    """The authenticated caller for the remainder of a request."""

    subject_id: str
    email: str
    role: Role
    name: str = ""
    department: Optional[str] = None
    issued_at: Optional[int] = None
    expires_at: Optional[int] = None

    @property
    def is_elevated(self) -> bool:
        return self.role.is_elevated

    @classmethod
    def from_user(cls, user: User, claims: Optional[Claims] = None) -> "Identity":
        return cls(
            subject_id=str(user.id),
            email=user.email,
            role=Role.parse(user.role),
            name=user.name or "",
            department=getattr(user, "department", None),
            issued_at=claims.issued_at if claims else None,
            expires_at=claims.expires_at if claims else None,
        )

    def public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.subject_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "department": self.department,
        }
