"""
Community-service program routes.

Route prefix: /api/v1/service
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, status

from api.resources import build_resource_router
from utils.schemas import ServiceCreate, ServiceUpdate


def check_service_dates(row: Any, fields: Dict[str, Any]) -> None:
    """Reject a partial update that would leave the end date before the start."""
    start = fields.get("start_date", row.start_date)
    end = fields.get("end_date", row.end_date)
    if start is not None and end is not None and end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )


router = build_resource_router(
    "service",
    "Community service",
    ServiceCreate,
    ServiceUpdate,
    check_update=check_service_dates,
)
