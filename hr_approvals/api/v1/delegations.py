"""
Delegation endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_approvals.core.deps import (
    get_authorizer,
    get_clock,
    get_current_user,
    get_db,
    require_permission,
)
from hr_approvals.core.exceptions import AuthorizationDenied
from hr_approvals.models.delegation import Delegation, DelegationStatus
from hr_approvals.models.employee import Employee
from hr_approvals.schemas.delegation import (
    AvailableDelegateOut,
    DelegationCheckOut,
    DelegationCreate,
    DelegationOut,
    DelegationRevoke,
)
from hr_approvals.services import delegation_service
from hr_approvals.services.permission_service import Authorizer, DELEGATIONS_GRANT, DELEGATIONS_MANAGE_ALL
from hr_approvals.services.time_provider import TimeProvider

router = APIRouter()


def _out(delegation: Delegation, clock: TimeProvider) -> DelegationOut:
    out = DelegationOut.model_validate(delegation)
    out.current_status = delegation_service.delegation_status(delegation, clock.now())
    return out


@router.post("", response_model=DelegationOut, status_code=201)
async def create_delegation_endpoint(
    body: DelegationCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(DELEGATIONS_GRANT)),
    authorizer: Authorizer = Depends(get_authorizer),
    clock: TimeProvider = Depends(get_clock),
):
    """Grant approval authority to another employee for a time window"""
    delegator_id = body.delegator_id if body.delegator_id is not None else current_user.id
    if delegator_id != current_user.id and not authorizer.authorize(current_user.id, DELEGATIONS_MANAGE_ALL):
        raise AuthorizationDenied("You can only delegate your own approval authority")

    delegation = delegation_service.grant(
        db,
        delegator_id=delegator_id,
        delegate_id=body.delegate_id,
        valid_from=body.valid_from,
        valid_to=body.valid_to,
        scope_rank=body.scope_rank,
        request_type=body.request_type.value if body.request_type else None,
        excluded_employee_ids=body.excluded_employee_ids,
        reason=body.reason,
        clock=clock,
        created_by=current_user.id,
    )
    return _out(delegation, clock)


@router.get("/my", response_model=List[DelegationOut])
async def list_my_delegations_endpoint(
    status: Optional[DelegationStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: TimeProvider = Depends(get_clock),
):
    """Delegations the caller has given"""
    now = clock.now()
    return [_out(d, clock) for d in delegation_service.list_given(db, current_user.id, now, status)]


@router.get("/received", response_model=List[DelegationOut])
async def list_received_delegations_endpoint(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: TimeProvider = Depends(get_clock),
):
    """Delegations the caller has received (active ones unless include_inactive)"""
    delegations = delegation_service.list_received(
        db, current_user.id, clock.now(), active_only=not include_inactive
    )
    return [_out(d, clock) for d in delegations]


@router.get("/available-delegates", response_model=List[AvailableDelegateOut])
async def list_available_delegates_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Active employees the caller can pick as a delegate"""
    return delegation_service.list_available_delegates(db, current_user.id)


@router.get("", response_model=List[DelegationOut])
async def list_all_delegations_endpoint(
    delegator_id: Optional[int] = Query(None),
    delegate_id: Optional[int] = Query(None),
    status: Optional[DelegationStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(DELEGATIONS_MANAGE_ALL)),
    clock: TimeProvider = Depends(get_clock),
):
    """All delegations (HR/Admin)"""
    delegations = delegation_service.list_all(
        db, clock.now(), delegator_id=delegator_id, delegate_id=delegate_id, status=status
    )
    return [_out(d, clock) for d in delegations]


@router.get("/check/{original_approver_id}", response_model=DelegationCheckOut)
async def check_delegation_endpoint(
    original_approver_id: int,
    request_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: TimeProvider = Depends(get_clock),
):
    """Whether the caller can currently act for original_approver_id"""
    delegation = delegation_service.check_can_act_for(
        db, current_user.id, original_approver_id, clock.now(), request_type
    )
    return DelegationCheckOut(
        can_act=delegation is not None,
        original_approver_id=original_approver_id,
        delegation_id=delegation.id if delegation else None,
        valid_to=delegation.valid_to if delegation else None,
    )


@router.get("/{delegation_id}", response_model=DelegationOut)
async def get_delegation_endpoint(
    delegation_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    clock: TimeProvider = Depends(get_clock),
):
    delegation = delegation_service.get_delegation(db, delegation_id, current_user.id, authorizer)
    return _out(delegation, clock)


@router.post("/{delegation_id}/revoke", response_model=DelegationOut)
async def revoke_delegation_endpoint(
    delegation_id: int,
    body: Optional[DelegationRevoke] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    clock: TimeProvider = Depends(get_clock),
):
    """End a delegation now (delegator or HR/Admin)"""
    delegation = delegation_service.revoke(
        db,
        delegation_id,
        current_user.id,
        reason=body.reason if body else None,
        clock=clock,
        authorizer=authorizer,
    )
    return _out(delegation, clock)
