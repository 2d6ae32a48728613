"""
Scoped data access for authored resources (research proposals and
community-service programs) and their reviews.

Every read path takes an ``OwnershipScope`` and applies it while building the
statement; a row outside the scope is indistinguishable from a missing row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple, Type

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import NotFoundOrForbidden
from auth.policy import OwnershipScope
from database.models import CommunityService, ResearchProposal, Review, User

logger = logging.getLogger(__name__)

RESOURCE_MODELS: Dict[str, Type[Any]] = {
    "proposal": ResearchProposal,
    "service": CommunityService,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resource_to_dict(row: Any, creator: User | None = None) -> Dict[str, Any]:
    data = {attr.key: getattr(row, attr.key) for attr in row.__mapper__.column_attrs}
    if creator is not None:
        data["creator_name"] = creator.name
        data["creator_email"] = creator.email
        data["creator_department"] = creator.department
    return data


def review_to_dict(review: Review, reviewer: User | None = None) -> Dict[str, Any]:
    return {
        "id": review.id,
        "resource_id": review.resource_id,
        "reviewer_id": review.reviewer_id,
        "reviewer_name": reviewer.name if reviewer is not None else None,
        "score": review.score,
        "comments": review.comments,
        "recommendation": review.recommendation,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


async def list_scoped(
    session: AsyncSession, model: Type[Any], scope: OwnershipScope
) -> List[Tuple[Any, User]]:
    stmt = select(model, User).join(User, model.created_by == User.id)
    stmt = scope.apply(stmt, model).order_by(model.created_at.desc(), model.id.desc())
    result = await session.execute(stmt)
    return [(row, creator) for row, creator in result.all()]


async def get_scoped(
    session: AsyncSession,
    model: Type[Any],
    resource_id: int,
    scope: OwnershipScope,
    resource_name: str,
) -> Tuple[Any, User]:
    """Fetch one row within ``scope``; raises ``NotFoundOrForbidden`` on a miss."""
    stmt = select(model, User).join(User, model.created_by == User.id).where(model.id == resource_id)
    stmt = scope.apply(stmt, model)
    found = (await session.execute(stmt)).first()
    if found is None:
        raise NotFoundOrForbidden(resource_name)
    return found[0], found[1]


async def create_resource(
    session: AsyncSession, model: Type[Any], created_by: str, fields: Dict[str, Any]
) -> Any:
    now = _utcnow()
    row = model(**fields, status="draft", created_by=created_by, created_at=now, updated_at=now)
    session.add(row)
    await session.flush()
    return row


async def update_resource(session: AsyncSession, row: Any, fields: Dict[str, Any]) -> Any:
    for key, value in fields.items():
        setattr(row, key, value)
    row.updated_at = _utcnow()
    await session.flush()
    return row


async def delete_resource(session: AsyncSession, resource_type: str, row: Any) -> None:
    await session.execute(
        delete(Review).where(
            Review.resource_type == resource_type, Review.resource_id == row.id
        )
    )
    await session.delete(row)
    await session.flush()


async def submit_resource(session: AsyncSession, row: Any) -> Any:
    now = _utcnow()
    row.status = "submitted"
    row.submitted_at = now
    row.updated_at = now
    await session.flush()
    return row


async def decide_resource(
    session: AsyncSession, row: Any, status: str, notes: str, decided_by: str
) -> Any:
    now = _utcnow()
    row.status = status
    row.decision_notes = notes
    row.decided_by = decided_by
    row.decided_at = now
    row.updated_at = now
    await session.flush()
    return row


def _insert_for(session: AsyncSession):
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    return sqlite_insert if dialect == "sqlite" else pg_insert


async def upsert_review(
    session: AsyncSession,
    resource_type: str,
    row: Any,
    reviewer_id: str,
    score: int,
    comments: str,
    recommendation: str,
) -> bool:
    """
    Insert or update the caller's review of ``row``.

    The natural key ``(resource_type, resource_id, reviewer_id)`` is enforced
    by a unique constraint, so concurrent first reviews from the same
    reviewer collapse into one row.  Returns ``True`` when a new review was
    created.  The first review moves ``submitted`` to ``under_review``.
    """
    model = RESOURCE_MODELS[resource_type]
    existing = await session.execute(
        select(Review.id).where(
            Review.resource_type == resource_type,
            Review.resource_id == row.id,
            Review.reviewer_id == reviewer_id,
        )
    )
    created = existing.first() is None

    now = _utcnow()
    insert = _insert_for(session)
    stmt = insert(Review).values(
        resource_type=resource_type,
        resource_id=row.id,
        reviewer_id=reviewer_id,
        score=score,
        comments=comments,
        recommendation=recommendation,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["resource_type", "resource_id", "reviewer_id"],
        set_={
            "score": stmt.excluded.score,
            "comments": stmt.excluded.comments,
            "recommendation": stmt.excluded.recommendation,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await session.execute(stmt)

    await session.execute(
        update(model)
        .where(model.id == row.id, model.status == "submitted")
        .values(status="under_review", updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    await session.refresh(row)
    logger.info(
        "%s review of %s %s by %s", "Recorded" if created else "Updated", resource_type, row.id, reviewer_id,
    )
    return created


async def list_reviews(
    session: AsyncSession, resource_type: str, resource_id: int
) -> List[Dict[str, Any]]:
    result = await session.execute(
        select(Review, User)
        .join(User, Review.reviewer_id == User.id)
        .where(Review.resource_type == resource_type, Review.resource_id == resource_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return [review_to_dict(review, reviewer) for review, reviewer in result.all()]


async def resource_statistics(
    session: AsyncSession, model: Type[Any], scope: OwnershipScope
) -> Dict[str, Any]:
    stmt = select(
        func.count(model.id).label("total"),
        func.count(case((model.status == "draft", 1))).label("draft"),
        func.count(case((model.status == "submitted", 1))).label("submitted"),
        func.count(case((model.status == "under_review", 1))).label("under_review"),
        func.count(case((model.status == "approved", 1))).label("approved"),
        func.count(case((model.status == "rejected", 1))).label("rejected"),
        func.count(case((model.status == "needs_revision", 1))).label("needs_revision"),
        func.coalesce(
            func.sum(case((model.status == "approved", model.budget), else_=0)), 0
        ).label("total_budget"),
    )
    row = (await session.execute(scope.apply(stmt, model))).one()
    stats = dict(row._mapping)
    return {
        key: (float(value or 0) if key == "total_budget" else int(value or 0))
        for key, value in stats.items()
    }
