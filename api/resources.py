"""
Router factory for authored resources (research proposals, community-service
programs).

Both resources share one lifecycle and one set of routes; only the model,
request schemas and display name differ.  Every handler obtains its
``OwnershipScope`` from ``require(action)`` and passes it into the query, so
rows outside the caller's scope are never loaded.
"""

import logging
from typing import Any, Callable, Dict, Optional, Type

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import AuthContext, db_session, require
from auth.policy import DRAFT, Action, ResourceState
from database.submissions import (
    RESOURCE_MODELS,
    create_resource,
    decide_resource,
    delete_resource,
    get_scoped,
    list_reviews,
    list_scoped,
    resource_statistics,
    resource_to_dict,
    submit_resource,
    update_resource,
    upsert_review,
)
from utils.schemas import DecisionRequest, ReviewRequest

logger = logging.getLogger(__name__)

NEEDS_REVISION = "needs_revision"

# Hook run on the merged field set of an update; raises HTTPException on conflict.
UpdateCheck = Callable[[Any, Dict[str, Any]], None]


def drop_null_required(model: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Treat an explicit null on a NOT NULL column as "leave unchanged"."""
    required = {column.name for column in model.__table__.columns if not column.nullable}
    return {key: value for key, value in fields.items() if value is not None or key not in required}


def build_resource_router(
    resource_type: str,
    display_name: str,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    *,
    embed_reviews: bool = False,
    check_update: Optional[UpdateCheck] = None,
) -> APIRouter:
    model = RESOURCE_MODELS[resource_type]
    router = APIRouter()

    @router.get("/statistics")
    async def statistics(
        ctx: AuthContext = Depends(require(Action.STATISTICS)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        return {"success": True, "data": await resource_statistics(session, model, ctx.scope)}

    @router.get("")
    async def list_resources(
        ctx: AuthContext = Depends(require(Action.LIST)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        rows = await list_scoped(session, model, ctx.scope)
        return {"success": True, "data": [resource_to_dict(row, creator) for row, creator in rows]}

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create(
        body: create_schema,  # type: ignore[valid-type]
        ctx: AuthContext = Depends(require(Action.CREATE)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        row = await create_resource(session, model, ctx.identity.subject_id, body.model_dump())
        logger.info("%s %s created by %s", display_name, row.id, ctx.identity.subject_id)
        return {
            "success": True,
            "message": f"{display_name} created successfully",
            "data": resource_to_dict(row),
        }

    @router.get("/{resource_id}")
    async def read(
        resource_id: int,
        ctx: AuthContext = Depends(require(Action.READ)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        row, creator = await get_scoped(session, model, resource_id, ctx.scope, display_name)
        data = resource_to_dict(row, creator)
        if embed_reviews:
            data["reviews"] = await list_reviews(session, resource_type, row.id)
        return {"success": True, "data": data}

    @router.put("/{resource_id}")
    async def update(
        resource_id: int,
        body: update_schema,  # type: ignore[valid-type]
        ctx: AuthContext = Depends(require(Action.UPDATE)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        row, creator = await get_scoped(session, model, resource_id, ctx.scope, display_name)
        ctx.policy.enforce(ctx.identity, Action.UPDATE, ResourceState.of(row), display_name)

        fields = drop_null_required(model, body.model_dump(exclude_unset=True))
        if not fields:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
        if check_update is not None:
            check_update(row, fields)

        row = await update_resource(session, row, fields)
        return {
            "success": True,
            "message": f"{display_name} updated successfully",
            "data": resource_to_dict(row, creator),
        }

    @router.delete("/{resource_id}")
    async def delete(
        resource_id: int,
        ctx: AuthContext = Depends(require(Action.DELETE)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        row, _ = await get_scoped(session, model, resource_id, ctx.scope, display_name)
        ctx.policy.enforce(ctx.identity, Action.DELETE, ResourceState.of(row), display_name)
        await delete_resource(session, resource_type, row)
        logger.info("%s %s deleted by %s", display_name, resource_id, ctx.identity.subject_id)
        return {"success": True, "message": f"{display_name} deleted successfully"}

    @router.post("/{resource_id}/submit")
    async def submit(
        resource_id: int,
        ctx: AuthContext = Depends(require(Action.SUBMIT)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        row, creator = await get_scoped(session, model, resource_id, ctx.scope, display_name)
        resubmission = row.status == NEEDS_REVISION and ctx.identity.is_elevated
        if row.status != DRAFT and not resubmission:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Only draft {display_name.lower()}s can be submitted",
            )
        row = await submit_resource(session, row)
        logger.info("%s %s submitted by %s", display_name, row.id, ctx.identity.subject_id)
        return {
            "success": True,
            "message": f"{display_name} submitted successfully",
            "data": resource_to_dict(row, creator),
        }

    @router.post("/{resource_id}/review")
    async def review(
        resource_id: int,
        body: ReviewRequest,
        ctx: AuthContext = Depends(require(Action.REVIEW)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        read_scope = ctx.policy.enforce(ctx.identity, Action.READ)
        row, creator = await get_scoped(session, model, resource_id, read_scope, display_name)
        if not ctx.scope.admits(row.created_by, row.status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{display_name} is not open for review",
            )

        created = await upsert_review(
            session,
            resource_type,
            row,
            ctx.identity.subject_id,
            body.score,
            body.comments,
            body.recommendation.value,
        )
        return {
            "success": True,
            "message": "Review submitted successfully" if created else "Review updated successfully",
            "data": resource_to_dict(row, creator),
        }

    @router.post("/{resource_id}/decision")
    async def decision(
        resource_id: int,
        body: DecisionRequest,
        ctx: AuthContext = Depends(require(Action.DECIDE)),
        session: AsyncSession = Depends(db_session),
    ) -> Dict[str, Any]:
        read_scope = ctx.policy.enforce(ctx.identity, Action.READ)
        row, creator = await get_scoped(session, model, resource_id, read_scope, display_name)
        if not ctx.scope.admits(row.created_by, row.status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{display_name} is not awaiting a decision",
            )

        row = await decide_resource(
            session, row, body.status.value, body.review_notes, ctx.identity.subject_id,
        )
        logger.info(
            "%s %s marked %s by %s", display_name, row.id, row.status, ctx.identity.subject_id,
        )
        return {
            "success": True,
            "message": f"{display_name} {row.status.replace('_', ' ')}",
            "data": resource_to_dict(row, creator),
        }

    return router
