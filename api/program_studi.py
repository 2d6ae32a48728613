"""
Program-of-study (program studi) routes.

Route prefix: /api/v1/program-studi.  Listing is public; changes are
administrator-only and deletion only deactivates the row.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import AuthContext, db_session, get_optional_identity, require
from auth.models import Identity
from auth.policy import Action
from database.helpers import (
    create_program,
    get_program,
    list_programs,
    program_to_dict,
    soft_delete_program,
    update_program,
)
from database.models import ProgramStudi
from utils.schemas import ProgramStudiCreate, ProgramStudiUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["program-studi"])


async def _get_program_or_404(
    session: AsyncSession, program_id: str, include_inactive: bool = False
) -> ProgramStudi:
    program = await get_program(session, program_id)
    if program is None or not (program.is_active or include_inactive):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program studi not found")
    return program


@router.get("")
async def list_all(
    include_inactive: bool = False,
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Active programs for everyone; administrators may ask for deactivated ones too."""
    show_inactive = include_inactive and identity is not None and identity.is_elevated
    programs = await list_programs(session, include_inactive=show_inactive)
    return {"success": True, "data": [program_to_dict(p) for p in programs]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    body: ProgramStudiCreate,
    ctx: AuthContext = Depends(require(Action.MANAGE_PROGRAMS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    program = await create_program(session, body.model_dump())
    logger.info("Program studi %s (%s) created by %s", program.id, program.kode, ctx.identity.subject_id)
    return {
        "success": True,
        "message": "Program studi created successfully",
        "data": program_to_dict(program),
    }


@router.put("/{program_id}")
async def update(
    program_id: str,
    body: ProgramStudiUpdate,
    ctx: AuthContext = Depends(require(Action.MANAGE_PROGRAMS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    program = await _get_program_or_404(session, program_id, include_inactive=True)
    fields = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "akreditasi"}
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    program = await update_program(session, program, fields)
    return {
        "success": True,
        "message": "Program studi updated successfully",
        "data": program_to_dict(program),
    }


@router.delete("/{program_id}")
async def delete(
    program_id: str,
    ctx: AuthContext = Depends(require(Action.MANAGE_PROGRAMS)),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    program = await _get_program_or_404(session, program_id)
    await soft_delete_program(session, program)
    logger.info("Program studi %s deactivated by %s", program_id, ctx.identity.subject_id)
    return {"success": True, "message": "Program studi deleted successfully"}
