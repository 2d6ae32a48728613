"""
REST API routes — aggregates the resource routers and the service endpoints.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.program_studi import router as program_studi_router
from api.research import router as research_router
from api.services import router as services_router
from api.users import router as users_router
from auth.dependencies import db_session

logger = logging.getLogger(__name__)

router = APIRouter()

router.include_router(research_router, prefix="/research/proposals", tags=["research"])
router.include_router(services_router, prefix="/service", tags=["service"])
router.include_router(users_router, prefix="/users")
router.include_router(program_studi_router, prefix="/program-studi")


@router.get("/health")
async def health(session: AsyncSession = Depends(db_session)) -> Dict[str, Any]:
    try:
        await session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        logger.warning("Health check: database unreachable (%s)", exc)
        database = "unavailable"
    return {"success": True, "status": "ok" if database == "ok" else "degraded", "database": database}


@router.api_route("/documents", methods=["GET", "POST", "PUT", "DELETE"], include_in_schema=False)
@router.api_route("/notifications", methods=["GET", "POST", "PUT", "DELETE"], include_in_schema=False)
@router.api_route(
    "/documents/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE"],
    include_in_schema=False,
)
@router.api_route(
    "/notifications/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE"],
    include_in_schema=False,
)
async def not_implemented(path: str = "") -> None:
    raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="Not implemented")
