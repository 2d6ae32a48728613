"""
User management routes (administrators), plus user statistics.

Route prefix: /api/v1/users
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import AuthContext, db_session, require
from auth.password import hash_password
from auth.policy import Action
from database.helpers import (
    IdentityRepository,
    delete_user,
    list_users,
    update_user,
    user_statistics,
    user_to_dict,
)
from database.models import User
from utils.schemas import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


async def _get_user_or_404(store: IdentityRepository, user_id: str) -> User:
    user = await store.find_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/statistics")
async def statistics(
    ctx: AuthContext = Depends(require(Action.VIEW_USER_STATISTICS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    return {"success": True, "data": await user_statistics(session)}


@router.get("")
async def list_all(
    ctx: AuthContext = Depends(require(Action.MANAGE_USERS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    users = await list_users(session)
    return {"success": True, "data": [user_to_dict(u) for u in users]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    body: UserCreate,
    ctx: AuthContext = Depends(require(Action.MANAGE_USERS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    store = IdentityRepository(session)
    if await store.email_exists(body.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    fields = body.model_dump(exclude={"password", "role"})
    user = await store.create(
        password_hash=hash_password(body.password),
        role=body.role.value,
        is_active=True,
        **fields,
    )
    logger.info("User %s (%s) created by %s", user.id, user.role, ctx.identity.subject_id)
    return {"success": True, "message": "User created successfully", "data": user_to_dict(user)}


@router.get("/{user_id}")
async def read(
    user_id: str,
    ctx: AuthContext = Depends(require(Action.MANAGE_USERS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    user = await _get_user_or_404(IdentityRepository(session), user_id)
    return {"success": True, "data": user_to_dict(user)}


@router.put("/{user_id}")
async def update(
    user_id: str,
    body: UserUpdate,
    ctx: AuthContext = Depends(require(Action.MANAGE_USERS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    store = IdentityRepository(session)
    user = await _get_user_or_404(store, user_id)

    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if "email" in fields and fields["email"] != user.email and await store.email_exists(fields["email"]):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    if "password" in fields:
        password = fields.pop("password")
        if password is not None:
            fields["password_hash"] = hash_password(password)
    if "role" in fields:
        role = fields.pop("role")
        if role is not None:
            fields["role"] = role.value
    for key in ("email", "name", "is_active"):
        # Non-nullable columns: an explicit null means "leave unchanged".
        if key in fields and fields[key] is None:
            del fields[key]

    user = await update_user(session, user, fields)
    logger.info("User %s updated by %s", user.id, ctx.identity.subject_id)
    return {"success": True, "message": "User updated successfully", "data": user_to_dict(user)}


@router.delete("/{user_id}")
async def delete(
    user_id: str,
    ctx: AuthContext = Depends(require(Action.MANAGE_USERS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    if user_id == ctx.identity.subject_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    user = await _get_user_or_404(IdentityRepository(session), user_id)
    await delete_user(session, user)
    logger.info("User %s deleted by %s", user_id, ctx.identity.subject_id)
    return {"success": True, "message": "User deleted successfully"}
