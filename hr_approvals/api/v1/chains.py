"""
Manager chain endpoints
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_approvals.core.deps import get_authorizer, get_clock, get_current_user, get_db, require_permission
from hr_approvals.core.exceptions import AuthorizationDenied, NotFound
from hr_approvals.models.employee import Employee
from hr_approvals.schemas.chain import (
    ActingDelegateOut,
    ChainLevelOut,
    ChainOut,
    DirectReportOut,
    ManagerAssignmentOut,
    ReplaceChainRequest,
    ResolvedChainOut,
)
from hr_approvals.services import hierarchy_service
from hr_approvals.services.chain_resolver import resolve_chain
from hr_approvals.services.permission_service import Authorizer, CHAINS_MANAGE, CHAINS_VIEW
from hr_approvals.services.time_provider import TimeProvider

router = APIRouter()


def _ensure_can_view(current_user: Employee, subject_id: int, authorizer: Authorizer) -> None:
    if current_user.id != subject_id and not authorizer.authorize(current_user.id, CHAINS_VIEW):
        raise AuthorizationDenied("You can only view your own approval chain")


def _chain_out(db: Session, employee_id: int) -> ChainOut:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee with id {employee_id} not found")
    return ChainOut(
        employee_id=employee_id,
        reporting_manager_id=employee.reporting_manager_id,
        managers=[ManagerAssignmentOut.model_validate(a) for a in hierarchy_service.get_assignments(db, employee_id)],
    )


@router.get("/{employee_id}/managers", response_model=ChainOut)
async def get_managers_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Configured manager chain of an employee, ascending by rank"""
    _ensure_can_view(current_user, employee_id, authorizer)
    return _chain_out(db, employee_id)


@router.put("/{employee_id}/managers", response_model=ChainOut)
async def replace_managers_endpoint(
    employee_id: int,
    body: ReplaceChainRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(CHAINS_MANAGE)),
):
    """Replace the whole chain (HR/Admin). An empty list clears it."""
    hierarchy_service.set_chain(
        db,
        employee_id,
        [(m.rank, m.manager_id) for m in body.managers],
        actor_id=current_user.id,
    )
    return _chain_out(db, employee_id)


@router.get("/{employee_id}/approval-chain", response_model=ResolvedChainOut)
async def resolve_chain_endpoint(
    employee_id: int,
    as_of: Optional[datetime] = Query(None, description="Instant to resolve at (defaults to now)"),
    request_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    clock: TimeProvider = Depends(get_clock),
):
    """Who can approve each level right now (or at as_of), delegations included"""
    _ensure_can_view(current_user, employee_id, authorizer)
    if not db.query(Employee.id).filter(Employee.id == employee_id).first():
        raise NotFound(f"Employee with id {employee_id} not found")

    chain = resolve_chain(db, employee_id, as_of or clock.now(), request_type)
    return ResolvedChainOut(
        employee_id=employee_id,
        as_of=chain.as_of,
        is_empty=chain.is_empty,
        levels=[
            ChainLevelOut(
                step=step,
                rank=level.rank,
                manager_id=level.manager_id,
                eligible=sorted(level.eligible),
                delegates=[
                    ActingDelegateOut(delegate_id=d, acting_for=m)
                    for d, m in sorted(level.delegations.items())
                ],
            )
            for step, level in enumerate(chain.levels, start=1)
        ],
    )


@router.get("/{manager_id}/reports", response_model=List[DirectReportOut])
async def list_reports_endpoint(
    manager_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Employees whose chain includes this manager at any rank"""
    _ensure_can_view(current_user, manager_id, authorizer)
    return [
        DirectReportOut(employee_id=e.id, emp_code=e.emp_code, name=e.name, rank=rank)
        for e, rank in hierarchy_service.list_direct_reports(db, manager_id)
    ]
