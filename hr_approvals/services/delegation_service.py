"""
Delegation registry - time-bounded transfer of approval authority
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from hr_approvals.core.exceptions import AuthorizationDenied, NotFound, ValidationError
from hr_approvals.models.approval import RequestType
from hr_approvals.models.delegation import Delegation, DelegationStatus
from hr_approvals.models.employee import Employee
from hr_approvals.models.notification import NotificationKind
from hr_approvals.services.audit_service import add_audit
from hr_approvals.services.directory_service import DatabaseDirectory
from hr_approvals.services.notification_service import add_notification
from hr_approvals.services.permission_service import Authorizer, DELEGATIONS_MANAGE_ALL
from hr_approvals.services.time_provider import TimeProvider
from hr_approvals.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

_REQUEST_TYPES = {t.value for t in RequestType}


def delegation_status(delegation: Delegation, as_of: datetime) -> DelegationStatus:
    """Lifecycle state of a delegation at an instant"""
    if delegation.revoked_at is not None:
        return DelegationStatus.REVOKED
    as_of = ensure_utc(as_of)
    if as_of < ensure_utc(delegation.valid_from):
        return DelegationStatus.UPCOMING
    if as_of < ensure_utc(delegation.valid_to):
        return DelegationStatus.ACTIVE
    return DelegationStatus.EXPIRED


def _scope_query(query, rank: Optional[int], request_type: Optional[str]):
    """Restrict to grants covering the rank and request type.

    A grant scoped to a request type never matches when the type is unknown.
    """
    if rank is not None:
        query = query.filter(or_(Delegation.scope_rank.is_(None), Delegation.scope_rank == rank))
    if request_type is None:
        query = query.filter(Delegation.request_type.is_(None))
    else:
        query = query.filter(or_(Delegation.request_type.is_(None), Delegation.request_type == request_type))
    return query


def _window_query(db: Session, as_of: datetime):
    as_of = ensure_utc(as_of)
    return db.query(Delegation).filter(
        Delegation.valid_from <= as_of,
        Delegation.valid_to > as_of,
    )


def _excludes(delegation: Delegation, employee_id: Optional[int]) -> bool:
    return employee_id is not None and employee_id in (delegation.excluded_employee_ids or [])


def _clean_excluded(excluded_employee_ids: Optional[Iterable[int]]) -> List[int]:
    if not excluded_employee_ids:
        return []
    return sorted({int(e) for e in excluded_employee_ids})


def grant(
    db: Session,
    delegator_id: int,
    delegate_id: int,
    valid_from: datetime,
    valid_to: datetime,
    scope_rank: Optional[int] = None,
    request_type: Optional[str] = None,
    excluded_employee_ids: Optional[Iterable[int]] = None,
    reason: Optional[str] = None,
    *,
    clock: TimeProvider,
    created_by: Optional[int] = None,
) -> Delegation:
    """
    Grant a delegate authority to approve on the delegator's behalf

    Args:
        db: Database session
        delegator_id: Approver handing over authority
        delegate_id: Employee receiving it
        valid_from: Start of the window (inclusive)
        valid_to: End of the window (exclusive)
        scope_rank: Restrict to one rank of the delegator's, or None for all
        request_type: Restrict to one request type, or None for all
        excluded_employee_ids: Requesters whose requests the delegate may not act on
        reason: Free text shown to the delegate
        clock: Time provider
        created_by: Actor creating the grant (defaults to the delegator)

    Returns:
        Created Delegation

    Raises:
        ValidationError: If the grant is malformed or duplicates an existing one
    """
    valid_from = ensure_utc(valid_from)
    valid_to = ensure_utc(valid_to)
    now = clock.now()

    if delegator_id == delegate_id:
        raise ValidationError("Cannot delegate approval authority to yourself")
    if valid_from is None or valid_to is None or valid_from >= valid_to:
        raise ValidationError("Delegation window is empty: valid_from must be before valid_to")
    if valid_to <= now:
        raise ValidationError("Delegation window has already ended")
    if scope_rank is not None and scope_rank < 0:
        raise ValidationError("scope_rank must be a non-negative integer")
    if request_type is not None and request_type not in _REQUEST_TYPES:
        raise ValidationError(f"Unknown request type '{request_type}'")

    directory = DatabaseDirectory(db)
    missing = directory.missing([delegator_id, delegate_id])
    if missing:
        raise ValidationError(
            f"Employees not found: {sorted(missing)}",
            details={"missing_employee_ids": sorted(missing)},
        )
    if not directory.is_active(delegate_id):
        raise ValidationError("Cannot delegate to an inactive employee")

    excluded = _clean_excluded(excluded_employee_ids)
    if delegate_id in excluded:
        raise ValidationError("The delegate cannot also be an excluded employee")

    conflict_query = db.query(Delegation).filter(
        Delegation.delegator_id == delegator_id,
        Delegation.delegate_id == delegate_id,
        Delegation.valid_from < valid_to,
        Delegation.valid_to > valid_from,
        Delegation.revoked_at.is_(None),
    )
    conflict_query = conflict_query.filter(
        Delegation.scope_rank.is_(None) if scope_rank is None else Delegation.scope_rank == scope_rank
    )
    conflict_query = conflict_query.filter(
        Delegation.request_type.is_(None) if request_type is None else Delegation.request_type == request_type
    )
    conflict = conflict_query.first()
    if conflict:
        raise ValidationError(
            "An overlapping delegation to this employee already exists for the same scope",
            details={"conflicting_delegation_id": conflict.id},
        )

    actor_id = created_by if created_by is not None else delegator_id
    delegation = Delegation(
        delegator_id=delegator_id,
        delegate_id=delegate_id,
        valid_from=valid_from,
        valid_to=valid_to,
        scope_rank=scope_rank,
        request_type=request_type,
        excluded_employee_ids=excluded,
        reason=reason,
        created_by=actor_id,
        created_at=now,
    )
    db.add(delegation)
    db.flush()

    add_audit(
        db,
        actor_id=actor_id,
        action="DELEGATION_GRANT",
        entity_type="delegation",
        entity_id=delegation.id,
        meta={
            "delegator_id": delegator_id,
            "delegate_id": delegate_id,
            "valid_from": valid_from,
            "valid_to": valid_to,
            "scope_rank": scope_rank,
            "request_type": request_type,
            "excluded_employee_ids": excluded,
        },
        at=now,
    )
    add_notification(
        db,
        delegate_id,
        NotificationKind.DELEGATION_GRANTED,
        f"You can approve on behalf of employee #{delegator_id} from "
        f"{valid_from.isoformat()} to {valid_to.isoformat()}",
        delegation_id=delegation.id,
        at=now,
    )
    db.commit()
    db.refresh(delegation)

    logger.info(
        "delegation granted: delegation_id=%s delegator_id=%s delegate_id=%s scope_rank=%s request_type=%s",
        delegation.id, delegator_id, delegate_id, scope_rank, request_type,
    )
    return delegation


def revoke(
    db: Session,
    delegation_id: int,
    actor_id: int,
    reason: Optional[str] = None,
    *,
    clock: TimeProvider,
    authorizer: Authorizer,
) -> Delegation:
    """
    End a delegation now

    valid_to is pulled back to the current instant (never before valid_from,
    so an upcoming grant becomes an empty window). Approvals already recorded
    under the grant are unaffected.

    Raises:
        NotFound: If the delegation does not exist
        AuthorizationDenied: If the actor is neither the delegator nor an administrator
        ValidationError: If the delegation is already revoked or expired
    """
    delegation = db.query(Delegation).filter(Delegation.id == delegation_id).first()
    if not delegation:
        raise NotFound(f"Delegation with id {delegation_id} not found")

    if actor_id != delegation.delegator_id and not authorizer.authorize(actor_id, DELEGATIONS_MANAGE_ALL):
        raise AuthorizationDenied("Only the delegator or an administrator can revoke this delegation")

    now = clock.now()
    state = delegation_status(delegation, now)
    if state == DelegationStatus.REVOKED:
        raise ValidationError("Delegation is already revoked")
    if state == DelegationStatus.EXPIRED:
        raise ValidationError("Delegation has already expired")

    delegation.valid_to = max(now, ensure_utc(delegation.valid_from))
    delegation.revoked_at = now
    delegation.revoked_by = actor_id
    delegation.revocation_reason = reason

    add_audit(
        db,
        actor_id=actor_id,
        action="DELEGATION_REVOKE",
        entity_type="delegation",
        entity_id=delegation.id,
        meta={"previous_state": state, "reason": reason},
        at=now,
    )
    add_notification(
        db,
        delegation.delegate_id,
        NotificationKind.DELEGATION_REVOKED,
        f"Your delegation from employee #{delegation.delegator_id} was revoked",
        delegation_id=delegation.id,
        at=now,
    )
    db.commit()
    db.refresh(delegation)

    logger.info(
        "delegation revoked: delegation_id=%s actor_id=%s previous_state=%s",
        delegation.id, actor_id, state.value,
    )
    return delegation


def active_delegations_for(
    db: Session,
    principal_id: int,
    rank: Optional[int],
    as_of: datetime,
    request_type: Optional[str] = None,
    employee_id: Optional[int] = None,
) -> Dict[int, Delegation]:
    """
    Grants through which someone may act for the principal at this rank

    Delegation is not transitive: only grants issued by the principal count.
    The requesting employee is never returned as a delegate.

    Returns:
        delegate_id -> Delegation (oldest matching grant per delegate)
    """
    query = _window_query(db, as_of).filter(Delegation.delegator_id == principal_id)
    query = _scope_query(query, rank, request_type)

    result: Dict[int, Delegation] = {}
    for delegation in query.order_by(Delegation.id.asc()).all():
        if delegation.delegate_id == employee_id or _excludes(delegation, employee_id):
            continue
        result.setdefault(delegation.delegate_id, delegation)
    return result


def active_delegates_for(
    db: Session,
    principal_id: int,
    rank: Optional[int],
    as_of: datetime,
    request_type: Optional[str] = None,
    employee_id: Optional[int] = None,
) -> Set[int]:
    """Principal plus every delegate currently able to act for them at this rank"""
    delegates = active_delegations_for(db, principal_id, rank, as_of, request_type, employee_id)
    return {principal_id} | set(delegates)


def check_can_act_for(
    db: Session,
    actor_id: int,
    original_approver_id: int,
    as_of: datetime,
    request_type: Optional[str] = None,
) -> Optional[Delegation]:
    """Active grant letting actor approve for original_approver, if any (any rank)"""
    query = _window_query(db, as_of).filter(
        Delegation.delegator_id == original_approver_id,
        Delegation.delegate_id == actor_id,
    )
    query = _scope_query(query, None, request_type)
    return query.order_by(Delegation.id.asc()).first()


def _filter_status(delegations: List[Delegation], as_of: datetime, status: Optional[DelegationStatus]) -> List[Delegation]:
    if status is None:
        return delegations
    return [d for d in delegations if delegation_status(d, as_of) == status]


def list_given(
    db: Session,
    delegator_id: int,
    as_of: datetime,
    status: Optional[DelegationStatus] = None,
) -> List[Delegation]:
    """Delegations issued by an approver, newest first"""
    delegations = db.query(Delegation).filter(
        Delegation.delegator_id == delegator_id
    ).order_by(Delegation.created_at.desc(), Delegation.id.desc()).all()
    return _filter_status(delegations, as_of, status)


def list_received(
    db: Session,
    delegate_id: int,
    as_of: datetime,
    active_only: bool = True,
) -> List[Delegation]:
    """Delegations received by an employee; only currently active ones by default"""
    if active_only:
        query = _window_query(db, as_of).filter(Delegation.delegate_id == delegate_id)
    else:
        query = db.query(Delegation).filter(Delegation.delegate_id == delegate_id)
    return query.order_by(Delegation.valid_from.asc(), Delegation.id.asc()).all()


def list_all(
    db: Session,
    as_of: datetime,
    delegator_id: Optional[int] = None,
    delegate_id: Optional[int] = None,
    status: Optional[DelegationStatus] = None,
) -> List[Delegation]:
    """All delegations (administrative view), newest first"""
    query = db.query(Delegation)
    if delegator_id is not None:
        query = query.filter(Delegation.delegator_id == delegator_id)
    if delegate_id is not None:
        query = query.filter(Delegation.delegate_id == delegate_id)
    delegations = query.order_by(Delegation.created_at.desc(), Delegation.id.desc()).all()
    return _filter_status(delegations, as_of, status)


def get_delegation(db: Session, delegation_id: int, actor_id: int, authorizer: Authorizer) -> Delegation:
    """
    Fetch one delegation visible to the actor

    Raises:
        NotFound: If the delegation does not exist
        AuthorizationDenied: If the actor is not a party to it and not an administrator
    """
    delegation = db.query(Delegation).filter(Delegation.id == delegation_id).first()
    if not delegation:
        raise NotFound(f"Delegation with id {delegation_id} not found")
    if actor_id not in (delegation.delegator_id, delegation.delegate_id) and not authorizer.authorize(
        actor_id, DELEGATIONS_MANAGE_ALL
    ):
        raise AuthorizationDenied("You do not have access to this delegation")
    return delegation


def list_available_delegates(db: Session, actor_id: int) -> List[Employee]:
    """Active employees the actor could hand approval authority to, by name"""
    return db.query(Employee).filter(
        Employee.active.is_(True),
        Employee.id != actor_id,
    ).order_by(Employee.name.asc(), Employee.id.asc()).all()
