"""
Access policy gate — role-based allow/deny plus row-ownership scoping.

``authorize`` is a pure decision over ``(identity.role, action, resource)``.
For list/read style actions on authored resources the decision carries an
``OwnershipScope`` that callers apply while *building* the query, so a row
outside the caller's scope is simply never found::

    scope = gate.enforce(identity, Action.READ)
    stmt = scope.apply(select(ResearchProposal), ResearchProposal)

Decision table:

================  ============================  =============  ==============
role class        authored resources            admin areas    review/decide
================  ============================  =============  ==============
elevated          all rows                      full CRUD      both
reviewer          submitted / under_review rows none           review only
lecturer/student  own rows only, draft-mutable  none           neither
guest / anon      none                          none           neither
================  ============================  =============  ==============
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

from auth.errors import InsufficientPermissions, NotFoundOrForbidden
from auth.models import Identity, OWNERSHIP_SCOPED_ROLES, Role

logger = logging.getLogger(__name__)

DRAFT = "draft"
REVIEWABLE_STATUSES: Tuple[str, ...] = ("submitted", "under_review")


class Action(str, Enum):
    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SUBMIT = "submit"
    REVIEW = "review"
    DECIDE = "decide"
    STATISTICS = "statistics"
    MANAGE_USERS = "manage_users"
    VIEW_USER_STATISTICS = "view_user_statistics"
    MANAGE_PROGRAMS = "manage_programs"


_AUTHOR_ACTIONS = frozenset(
    {Action.LIST, Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE, Action.SUBMIT, Action.STATISTICS}
)
_REVIEWER_READ_ACTIONS = frozenset({Action.LIST, Action.READ, Action.STATISTICS})
_MUTATING_ACTIONS = frozenset({Action.UPDATE, Action.DELETE})


@dataclass(frozen=True)
class OwnershipScope:
    """Row filter injected into every scoped query (``None`` = no restriction)."""

    owner_id: Optional[str] = None
    statuses: Optional[Tuple[str, ...]] = None

    @property
    def unrestricted(self) -> bool:
        return self.owner_id is None and not self.statuses

    def apply(self, stmt: Any, model: Any) -> Any:
        if self.owner_id is not None:
            stmt = stmt.where(model.created_by == self.owner_id)
        if self.statuses:
            stmt = stmt.where(model.status.in_(self.statuses))
        return stmt

    def admits(self, owner_id: str, status: str) -> bool:
        if self.owner_id is not None and str(owner_id) != self.owner_id:
            return False
        if self.statuses and status not in self.statuses:
            return False
        return True


UNRESTRICTED = OwnershipScope()


@dataclass(frozen=True)
class ResourceState:
    """The facts about a concrete row that status-dependent rules need."""

    owner_id: str
    status: str

    @classmethod
    def of(cls, row: Any) -> "ResourceState":
        return cls(owner_id=str(row.created_by), status=row.status)


@dataclass(frozen=True)
class Allowed:
    scope: OwnershipScope = UNRESTRICTED
    allowed: bool = True


@dataclass(frozen=True)
class Denied:
    reason: str
    # True when the denial must be reported as a plain not-found.
    conceal: bool = False
    allowed: bool = False


Decision = Union[Allowed, Denied]


class AccessPolicyGate:
    def authorize(
        self,
        identity: Optional[Identity],
        action: Action,
        resource: Optional[ResourceState] = None,
    ) -> Decision:
        if identity is None or identity.role is Role.GUEST:
            return Denied("Authentication required")

        role = identity.role

        if action is Action.MANAGE_USERS or action is Action.MANAGE_PROGRAMS:
            return Allowed() if role.is_elevated else Denied("Admin role required")

        if action is Action.VIEW_USER_STATISTICS:
            if role.is_elevated or role is Role.LECTURER:
                return Allowed()
            return Denied("Admin or lecturer role required")

        scope = self._resource_scope(identity, action)
        if isinstance(scope, Denied):
            return scope

        if resource is not None:
            if not scope.admits(resource.owner_id, resource.status):
                return Denied("Outside caller scope", conceal=True)
            if action in _MUTATING_ACTIONS and not role.is_elevated and resource.status != DRAFT:
                return Denied("Only draft resources can be modified")

        return Allowed(scope)

    def _resource_scope(self, identity: Identity, action: Action) -> Union[OwnershipScope, Denied]:
        role = identity.role

        if action is Action.REVIEW:
            if role.is_elevated or role is Role.REVIEWER:
                return OwnershipScope(statuses=REVIEWABLE_STATUSES)
            return Denied("Reviewer role required")

        if action is Action.DECIDE:
            if role.is_elevated:
                return OwnershipScope(statuses=REVIEWABLE_STATUSES)
            return Denied("Admin role required")

        if role.is_elevated:
            return UNRESTRICTED

        if role is Role.REVIEWER:
            if action in _REVIEWER_READ_ACTIONS:
                return OwnershipScope(statuses=REVIEWABLE_STATUSES)
            return Denied("Reviewers cannot author resources")

        if role in OWNERSHIP_SCOPED_ROLES and action in _AUTHOR_ACTIONS:
            return OwnershipScope(owner_id=identity.subject_id)

        return Denied("Action not permitted for role")

    def enforce(
        self,
        identity: Optional[Identity],
        action: Action,
        resource: Optional[ResourceState] = None,
        resource_name: str = "Resource",
    ) -> OwnershipScope:
        """``authorize`` that raises instead of returning ``Denied``."""
        decision = self.authorize(identity, action, resource)
        if isinstance(decision, Allowed):
            return decision.scope

        role = identity.role.value if identity is not None else None
        if decision.conceal:
            raise NotFoundOrForbidden(resource_name)
        logger.info(
            "Denied %s for %s (%s): %s",
            action.value,
            identity.subject_id if identity is not None else "anonymous",
            role,
            decision.reason,
        )
        raise InsufficientPermissions(role=role, required=decision.reason)


access_policy = AccessPolicyGate()
