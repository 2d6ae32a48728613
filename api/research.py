"""
Research proposal routes.

Route prefix: /api/v1/research/proposals
"""

from __future__ import annotations

from api.resources import build_resource_router
from utils.schemas import ProposalCreate, ProposalUpdate

router = build_resource_router(
    "proposal",
    "Proposal",
    ProposalCreate,
    ProposalUpdate,
    embed_reviews=True,
)
