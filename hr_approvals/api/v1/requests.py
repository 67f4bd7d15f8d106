"""
Approval request endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_approvals.core.deps import get_collaborators, get_current_user, get_db
from hr_approvals.models.employee import Employee
from hr_approvals.schemas.request import (
    ApprovalEventOut,
    ApproveAction,
    PendingRequestOut,
    ReasonAction,
    RequestCreate,
    RequestHistoryOut,
    RequestOut,
    TransitionOut,
)
from hr_approvals.services import request_service
from hr_approvals.services.collaborators import Collaborators
from hr_approvals.services.request_service import TransitionResult

router = APIRouter()


def _transition_out(result: TransitionResult) -> TransitionOut:
    return TransitionOut(
        request=RequestOut.model_validate(result.request),
        event=ApprovalEventOut.model_validate(result.event),
        is_final=result.is_final,
        next_rank=result.next_rank,
    )


@router.post("", response_model=RequestOut, status_code=201)
async def submit_request_endpoint(
    body: RequestCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Submit a leave, overtime or correction request into its approval chain"""
    request = request_service.submit_request(
        db,
        employee_id=body.employee_id if body.employee_id is not None else current_user.id,
        request_type=body.request_type.value,
        payload=body.payload,
        actor_id=current_user.id,
        ctx=ctx,
    )
    return RequestOut.model_validate(request)


@router.get("/my", response_model=List[RequestOut])
async def list_my_requests_endpoint(
    status: Optional[str] = Query(None),
    request_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Requests submitted for the caller, newest first"""
    requests = request_service.list_my_requests(db, current_user.id, status=status, request_type=request_type)
    return [RequestOut.model_validate(r) for r in requests]


@router.get("/pending", response_model=List[PendingRequestOut])
async def list_pending_endpoint(
    scope: str = Query("mine", pattern="^(mine|all)$"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Requests awaiting the caller's decision (scope=all: everything in flight, HR/Admin)"""
    items = request_service.list_pending_for_approver(
        db, current_user.id, ctx=ctx, include_all=(scope == "all")
    )
    return [
        PendingRequestOut(
            request=RequestOut.model_validate(item.request),
            step=item.step,
            total_steps=item.total_steps,
            current_approver_id=item.current_approver_id,
            acting_for=item.acting_for,
        )
        for item in items
    ]


@router.get("/{request_id}", response_model=RequestOut)
async def get_request_endpoint(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    request = request_service.get_request(db, request_id, current_user.id, ctx=ctx)
    return RequestOut.model_validate(request)


@router.get("/{request_id}/history", response_model=RequestHistoryOut)
async def get_request_history_endpoint(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Request plus its ApprovalEvents in order"""
    events = request_service.get_history(db, request_id, current_user.id, ctx=ctx)
    request = request_service.get_request(db, request_id, current_user.id, ctx=ctx)
    return RequestHistoryOut(
        request=RequestOut.model_validate(request),
        events=[ApprovalEventOut.model_validate(e) for e in events],
    )


@router.post("/{request_id}/approve", response_model=TransitionOut)
async def approve_request_endpoint(
    request_id: int,
    body: Optional[ApproveAction] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Approve the outstanding level (manager at that rank or an active delegate)"""
    body = body or ApproveAction()
    result = request_service.approve_request(
        db,
        request_id,
        current_user.id,
        comment=body.comment,
        expected_status=body.expected_status,
        ctx=ctx,
    )
    return _transition_out(result)


@router.post("/{request_id}/reject", response_model=TransitionOut)
async def reject_request_endpoint(
    request_id: int,
    body: ReasonAction,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Reject at the outstanding level; a reason is required"""
    result = request_service.reject_request(
        db,
        request_id,
        current_user.id,
        reason=body.reason,
        expected_status=body.expected_status,
        ctx=ctx,
    )
    return _transition_out(result)


@router.post("/{request_id}/cancel", response_model=TransitionOut)
async def cancel_request_endpoint(
    request_id: int,
    body: ReasonAction,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    ctx: Collaborators = Depends(get_collaborators),
):
    """Cancel an approved request (Admin only); a reason is required"""
    result = request_service.cancel_request(
        db,
        request_id,
        current_user.id,
        reason=body.reason,
        expected_status=body.expected_status,
        ctx=ctx,
    )
    return _transition_out(result)
