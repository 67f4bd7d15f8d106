"""
Request state machine - submission, per-rank approval, rejection, cancellation

Every transition runs as one database transaction: the request row is read
with a lock (or the dialect's nearest equivalent), the precondition is
checked against the chain resolved at that instant, and the new status plus
one ApprovalEvent are committed together. The ApprovalRequest version column
and the unique (request_id, rank) constraint on events turn a lost race into
StaleState instead of a second approval of the same rank.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hr_approvals.core.exceptions import (
    AuthorizationDenied,
    InvalidTransition,
    NotEligible,
    NotFound,
    ReasonRequired,
    StaleState,
    ValidationError,
)
from hr_approvals.models.approval import ApprovalEvent, ApprovalRequest, Decision, RequestStatus, RequestType
from hr_approvals.models.delegation import Delegation
from hr_approvals.models.employee import Employee
from hr_approvals.models.manager_assignment import ManagerAssignment
from hr_approvals.services import permission_service as perms
from hr_approvals.services.chain_resolver import ChainLevel, ResolvedChain, resolve_chain
from hr_approvals.services.collaborators import Collaborators
from hr_approvals.services.escalation import (
    TERMINAL_STATUSES,
    Transition,
    initial_state,
    is_terminal,
    next_state,
)
from hr_approvals.services.notification_service import ApprovalNotice
from hr_approvals.utils.datetime_utils import ensure_utc
from hr_approvals.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)

_REQUEST_TYPES = {t.value for t in RequestType}

_OPERATION_FOR = {
    Decision.APPROVE: perms.REQUESTS_APPROVE,
    Decision.REJECT: perms.REQUESTS_REJECT,
    Decision.CANCEL: perms.REQUESTS_CANCEL,
}


@dataclass(frozen=True)
class TransitionResult:
    request: ApprovalRequest
    event: ApprovalEvent
    is_final: bool
    next_rank: Optional[int]


@dataclass(frozen=True)
class PendingItem:
    request: ApprovalRequest
    step: int
    total_steps: int
    current_approver_id: int
    acting_for: Optional[int]


def _require(ctx: Collaborators, actor_id: int, operation: str) -> None:
    if not ctx.authorizer.authorize(actor_id, operation):
        raise AuthorizationDenied(f"You are not permitted to perform '{operation}'")


def _emit(ctx: Collaborators, notice: ApprovalNotice) -> None:
    """Hand a committed event to the notifier; delivery problems never surface to the caller"""
    try:
        ctx.notifier.notify(notice)
    except Exception as e:
        logger.warning(
            "Notifier raised for request_id=%s event_id=%s: %s",
            notice.request_id, notice.event_id, e,
        )


def _notice(
    request: ApprovalRequest,
    event: ApprovalEvent,
    chain: ResolvedChain,
    transition: Optional[Transition],
) -> ApprovalNotice:
    next_rank = None
    next_approvers = frozenset()
    if transition is not None and not transition.is_final:
        next_rank = transition.current_rank
        level = chain.level(next_rank)
        if level is not None:
            next_approvers = level.eligible
    return ApprovalNotice(
        event_id=event.id,
        request_id=request.id,
        employee_id=request.employee_id,
        request_type=request.request_type,
        decision=event.decision,
        from_status=event.from_status,
        to_status=event.to_status,
        rank=event.rank,
        actor_id=event.actor_id,
        acting_as_delegate_of=event.acting_as_delegate_of,
        comment=event.comment,
        occurred_at=ensure_utc(event.occurred_at),
        next_rank=next_rank,
        next_approver_ids=next_approvers,
    )


def submit_request(
    db: Session,
    employee_id: int,
    request_type: str,
    payload: Optional[Dict[str, Any]],
    actor_id: int,
    *,
    ctx: Collaborators,
) -> ApprovalRequest:
    """
    Submit a new request into the approval workflow

    The chain is resolved at submission time. An empty chain approves the
    request immediately (a SUBMIT and an AUTO_APPROVE event are recorded);
    otherwise the request starts pending at the lowest configured rank.

    Args:
        db: Database session
        employee_id: Employee the request is for
        request_type: leave, overtime or correction
        payload: Opaque request body, stored as JSON
        actor_id: Submitting user
        ctx: Injected collaborators

    Returns:
        Created ApprovalRequest

    Raises:
        AuthorizationDenied: If the actor may not submit (for this employee)
        ValidationError: If the request type is unknown or the employee is inactive
        NotFound: If the employee does not exist
    """
    _require(ctx, actor_id, perms.REQUESTS_SUBMIT)
    if actor_id != employee_id:
        _require(ctx, actor_id, perms.REQUESTS_SUBMIT_FOR_OTHERS)

    if request_type not in _REQUEST_TYPES:
        raise ValidationError(
            f"Unknown request type '{request_type}'",
            details={"allowed": sorted(_REQUEST_TYPES)},
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee with id {employee_id} not found")
    if not employee.active:
        raise ValidationError("Cannot submit a request for an inactive employee")

    now = ctx.clock.now()
    chain = resolve_chain(db, employee_id, now, request_type)
    state = initial_state(chain)

    request = ApprovalRequest(
        employee_id=employee_id,
        request_type=request_type,
        status=state.status,
        current_rank=state.current_rank,
        payload=sanitize_for_json(payload) if payload is not None else None,
        submitted_by=actor_id,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    db.flush()

    events = [ApprovalEvent(
        request_id=request.id,
        rank=None,
        actor_id=actor_id,
        decision=Decision.SUBMIT.value,
        from_status=None,
        to_status=RequestStatus.PENDING.value,
        occurred_at=now,
    )]
    if chain.is_empty:
        events.append(ApprovalEvent(
            request_id=request.id,
            rank=None,
            actor_id=actor_id,
            decision=Decision.AUTO_APPROVE.value,
            from_status=RequestStatus.PENDING.value,
            to_status=state.status,
            comment="No approvers configured",
            occurred_at=now,
        ))
    db.add_all(events)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)
    for event in events:
        db.refresh(event)

    logger.info(
        "request submitted: request_id=%s employee_id=%s type=%s status=%s current_rank=%s levels=%s",
        request.id, employee_id, request_type, request.status, request.current_rank, chain.ranks,
    )

    submit_transition = Transition(state.status, state.current_rank)
    for event in events:
        _emit(ctx, _notice(request, event, chain, submit_transition))
    return request


def _is_stale_actor(chain: ResolvedChain, current_rank: int, actor_id: int) -> bool:
    """True when the actor could only have acted on a rank that is already consumed"""
    return any(
        level.rank < current_rank and actor_id in level.eligible
        for level in chain.levels
    )


def _has_approved(db: Session, request_id: int, actor_id: int) -> bool:
    return db.query(ApprovalEvent.id).filter(
        ApprovalEvent.request_id == request_id,
        ApprovalEvent.actor_id == actor_id,
        ApprovalEvent.decision == Decision.APPROVE.value,
    ).first() is not None


def _transition(
    db: Session,
    request_id: int,
    actor_id: int,
    decision: Decision,
    comment: Optional[str],
    expected_status: Optional[str],
    ctx: Collaborators,
) -> TransitionResult:
    _require(ctx, actor_id, _OPERATION_FOR[decision])

    if decision in (Decision.REJECT, Decision.CANCEL):
        if not comment or not comment.strip():
            raise ReasonRequired(f"A reason is required to {decision.value} a request")
    comment = comment.strip() if comment else None

    request = db.query(ApprovalRequest).filter(
        ApprovalRequest.id == request_id
    ).with_for_update().first()
    if not request:
        raise NotFound(f"Request with id {request_id} not found")

    before = request.status
    if expected_status is not None and expected_status != before:
        db.rollback()
        raise StaleState()

    if decision != Decision.CANCEL and is_terminal(before):
        db.rollback()
        raise InvalidTransition(f"Request is already {before}")

    now = ctx.clock.now()
    chain = resolve_chain(db, request.employee_id, now, request.request_type)

    level: Optional[ChainLevel] = None
    if decision != Decision.CANCEL:
        level = chain.level(request.current_rank)
        if level is None:
            db.rollback()
            raise NotEligible(
                f"Approval level {request.current_rank} is no longer configured for this employee"
            )
        if actor_id not in level.eligible:
            stale = _is_stale_actor(chain, request.current_rank, actor_id)
            db.rollback()
            if stale:
                raise StaleState()
            raise NotEligible()

    # Approving a second rank of the same request must name the status it targets
    if decision == Decision.APPROVE and expected_status is None and _has_approved(db, request.id, actor_id):
        db.rollback()
        raise StaleState()

    try:
        transition = next_state(before, request.current_rank, chain, decision)
    except InvalidTransition:
        db.rollback()
        raise

    event = ApprovalEvent(
        request_id=request.id,
        rank=level.rank if level is not None else None,
        actor_id=actor_id,
        acting_as_delegate_of=level.acting_for(actor_id) if level is not None else None,
        decision=decision.value,
        from_status=before,
        to_status=transition.status,
        comment=comment,
        occurred_at=now,
    )
    request.status = transition.status
    request.current_rank = transition.current_rank
    request.updated_at = now
    db.add(event)

    try:
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        logger.info(
            "request transition lost a race: request_id=%s actor_id=%s action=%s error=%s",
            request_id, actor_id, decision.value, type(e).__name__,
        )
        raise StaleState()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    db.refresh(event)

    logger.info(
        "request status transition: request_id=%s before=%s after=%s action=%s actor_id=%s acting_as_delegate_of=%s",
        request.id, before, request.status, decision.value, actor_id, event.acting_as_delegate_of,
    )

    _emit(ctx, _notice(request, event, chain, transition))

    next_rank = None if transition.is_final else transition.current_rank
    return TransitionResult(request=request, event=event, is_final=transition.is_final, next_rank=next_rank)


def approve_request(
    db: Session,
    request_id: int,
    actor_id: int,
    comment: Optional[str] = None,
    expected_status: Optional[str] = None,
    *,
    ctx: Collaborators,
) -> TransitionResult:
    """
    Approve the outstanding rank of a request

    The actor must be the manager at the current rank or an active delegate of
    theirs at this instant. Approving the highest configured rank finalizes
    the request; otherwise it moves to approved_n<next rank>.

    An actor who already approved an earlier rank (e.g. a manager who is also
    a delegate further up) must pass expected_status to approve again;
    without it the call is treated as a replay and raises StaleState.

    Raises:
        AuthorizationDenied, NotFound, StaleState, InvalidTransition, NotEligible
    """
    return _transition(db, request_id, actor_id, Decision.APPROVE, comment, expected_status, ctx)


def reject_request(
    db: Session,
    request_id: int,
    actor_id: int,
    reason: Optional[str],
    expected_status: Optional[str] = None,
    *,
    ctx: Collaborators,
) -> TransitionResult:
    """
    Reject a request at its outstanding rank (reason required)

    Raises:
        ReasonRequired, AuthorizationDenied, NotFound, StaleState, InvalidTransition, NotEligible
    """
    return _transition(db, request_id, actor_id, Decision.REJECT, reason, expected_status, ctx)


def cancel_request(
    db: Session,
    request_id: int,
    actor_id: int,
    reason: Optional[str],
    expected_status: Optional[str] = None,
    *,
    ctx: Collaborators,
) -> TransitionResult:
    """
    Administratively cancel an approved request (reason required)

    Needs the cancel capability rather than chain membership. Only requests
    in the approved state can be cancelled.

    Raises:
        ReasonRequired, AuthorizationDenied, NotFound, StaleState, InvalidTransition
    """
    return _transition(db, request_id, actor_id, Decision.CANCEL, reason, expected_status, ctx)


def _can_view(db: Session, request: ApprovalRequest, actor_id: int, ctx: Collaborators) -> bool:
    if actor_id in (request.employee_id, request.submitted_by):
        return True
    in_chain = db.query(ManagerAssignment.id).filter(
        ManagerAssignment.employee_id == request.employee_id,
        ManagerAssignment.manager_id == actor_id,
    ).first()
    if in_chain:
        return True
    acted = db.query(ApprovalEvent.id).filter(
        ApprovalEvent.request_id == request.id,
        ApprovalEvent.actor_id == actor_id,
    ).first()
    if acted:
        return True
    if not is_terminal(request.status):
        chain = resolve_chain(db, request.employee_id, ctx.clock.now(), request.request_type)
        level = chain.level(request.current_rank)
        if level is not None and actor_id in level.eligible:
            return True
    return ctx.authorizer.authorize(actor_id, perms.REQUESTS_VIEW_ALL)


def get_request(db: Session, request_id: int, actor_id: int, *, ctx: Collaborators) -> ApprovalRequest:
    """
    Fetch a request visible to the actor

    Visible to the requester, anyone in the employee's chain, anyone who
    acted on it, current delegates, and holders of requests.view_all.
    """
    request = db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).first()
    if not request:
        raise NotFound(f"Request with id {request_id} not found")
    if not _can_view(db, request, actor_id, ctx):
        raise AuthorizationDenied("You do not have access to this request")
    return request


def get_history(db: Session, request_id: int, actor_id: int, *, ctx: Collaborators) -> List[ApprovalEvent]:
    """ApprovalEvents for a request in the order they happened"""
    request = get_request(db, request_id, actor_id, ctx=ctx)
    return db.query(ApprovalEvent).filter(
        ApprovalEvent.request_id == request.id
    ).order_by(ApprovalEvent.occurred_at.asc(), ApprovalEvent.id.asc()).all()


def list_my_requests(
    db: Session,
    employee_id: int,
    status: Optional[str] = None,
    request_type: Optional[str] = None,
) -> List[ApprovalRequest]:
    query = db.query(ApprovalRequest).filter(ApprovalRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(ApprovalRequest.status == status)
    if request_type is not None:
        query = query.filter(ApprovalRequest.request_type == request_type)
    return query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()


def list_pending_for_approver(
    db: Session,
    actor_id: int,
    *,
    ctx: Collaborators,
    include_all: bool = False,
) -> List[PendingItem]:
    """
    In-flight requests the actor can decide right now

    Each item carries its position in the chain so clients can show
    "step 2 of 3". With include_all (requires requests.view_all) every
    in-flight request is returned, including ones the actor cannot decide.

    Args:
        db: Database session
        actor_id: Approver
        ctx: Injected collaborators
        include_all: Administrative view of everything in flight

    Returns:
        PendingItems, oldest request first
    """
    if include_all:
        _require(ctx, actor_id, perms.REQUESTS_VIEW_ALL)

    now = ctx.clock.now()
    query = db.query(ApprovalRequest).filter(ApprovalRequest.status.notin_(TERMINAL_STATUSES))

    if not include_all:
        principals = {actor_id}
        principals.update(
            row.delegator_id
            for row in db.query(Delegation.delegator_id).filter(
                Delegation.delegate_id == actor_id,
                Delegation.valid_from <= now,
                Delegation.valid_to > now,
            ).all()
        )
        employee_ids = {
            row.employee_id
            for row in db.query(ManagerAssignment.employee_id).filter(
                ManagerAssignment.manager_id.in_(principals),
                ManagerAssignment.is_active.is_(True),
            ).all()
        }
        employee_ids.discard(actor_id)
        if not employee_ids:
            return []
        query = query.filter(ApprovalRequest.employee_id.in_(employee_ids))

    items = []
    for request in query.order_by(ApprovalRequest.created_at.asc(), ApprovalRequest.id.asc()).all():
        chain = resolve_chain(db, request.employee_id, now, request.request_type)
        level = chain.level(request.current_rank)
        if level is None:
            continue
        if not include_all and actor_id not in level.eligible:
            continue
        items.append(PendingItem(
            request=request,
            step=chain.position(level.rank),
            total_steps=len(chain.levels),
            current_approver_id=level.manager_id,
            acting_for=level.acting_for(actor_id),
        ))
    return items
