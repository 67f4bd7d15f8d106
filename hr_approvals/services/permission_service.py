"""
Permission checks for approval engine operations

The engine only asks "may this actor perform this operation?"; it never
inspects roles itself. RoleAuthorizer answers from the employee's role.
"""
import logging
from typing import Dict, FrozenSet

from sqlalchemy.orm import Session

from hr_approvals.models.employee import Role
from hr_approvals.services.directory_service import DatabaseDirectory

logger = logging.getLogger(__name__)

# Operation names
REQUESTS_SUBMIT = "requests.submit"
REQUESTS_SUBMIT_FOR_OTHERS = "requests.submit_for_others"
REQUESTS_APPROVE = "requests.approve"
REQUESTS_REJECT = "requests.reject"
REQUESTS_CANCEL = "requests.cancel"
REQUESTS_VIEW_ALL = "requests.view_all"
CHAINS_VIEW = "chains.view"
CHAINS_MANAGE = "chains.manage"
DELEGATIONS_GRANT = "delegations.grant"
DELEGATIONS_MANAGE_ALL = "delegations.manage_all"
CLOCK_MANAGE = "clock.manage"

_EVERYONE = frozenset(r.value for r in Role)
_HR_AND_UP = frozenset({Role.HR.value, Role.MD.value, Role.VP.value})

OPERATION_ROLES: Dict[str, FrozenSet[str]] = {
    REQUESTS_SUBMIT: _EVERYONE,
    REQUESTS_SUBMIT_FOR_OTHERS: frozenset({Role.HR.value}),
    # Eligibility (chain membership or delegation) is checked separately
    REQUESTS_APPROVE: _EVERYONE,
    REQUESTS_REJECT: _EVERYONE,
    REQUESTS_CANCEL: frozenset(),
    REQUESTS_VIEW_ALL: _HR_AND_UP,
    CHAINS_VIEW: _HR_AND_UP | {Role.MANAGER.value},
    CHAINS_MANAGE: frozenset({Role.HR.value}),
    DELEGATIONS_GRANT: _EVERYONE,
    DELEGATIONS_MANAGE_ALL: frozenset({Role.HR.value}),
    CLOCK_MANAGE: frozenset(),
}


class Authorizer:
    """Interface: authorize(actor_id, operation) -> bool"""

    def authorize(self, actor_id: int, operation: str) -> bool:
        raise NotImplementedError


class RoleAuthorizer(Authorizer):
    """
    Role based permission check

    ADMIN, or any role configured with role_rank 1, is allowed everything.
    Unknown and inactive actors are always denied. Operations that are not
    listed are denied.
    """

    def __init__(self, db: Session, operation_roles: Dict[str, FrozenSet[str]] = None):
        self.directory = DatabaseDirectory(db)
        self.operation_roles = operation_roles or OPERATION_ROLES

    def authorize(self, actor_id: int, operation: str) -> bool:
        actor = self.directory.get(actor_id)
        if actor is None or not actor.active:
            logger.info("authorization denied: actor_id=%s operation=%s reason=inactive_or_unknown", actor_id, operation)
            return False

        if actor.role == Role.ADMIN.value or self.directory.role_rank_of(actor_id) == 1:
            return True

        allowed = actor.role in self.operation_roles.get(operation, frozenset())
        if not allowed:
            logger.info("authorization denied: actor_id=%s role=%s operation=%s", actor_id, actor.role, operation)
        return allowed


class AllowAllAuthorizer(Authorizer):
    """Permits every operation; for tests that exercise eligibility alone."""

    def authorize(self, actor_id: int, operation: str) -> bool:
        return True
