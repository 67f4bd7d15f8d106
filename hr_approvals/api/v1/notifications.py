"""
In-app notification endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_approvals.core.deps import get_current_user, get_db, get_real_clock
from hr_approvals.models.employee import Employee
from hr_approvals.schemas.notification import NotificationOut
from hr_approvals.services import notification_service
from hr_approvals.services.time_provider import TimeProvider

router = APIRouter()


@router.get("/my", response_model=List[NotificationOut])
async def list_my_notifications_endpoint(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Caller's notifications, newest first"""
    notifications = notification_service.list_notifications(db, current_user.id, unread_only=unread_only, limit=limit)
    return [NotificationOut.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_read_endpoint(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    clock: TimeProvider = Depends(get_real_clock),
):
    notification = notification_service.mark_read(db, notification_id, current_user.id, at=clock.now())
    return NotificationOut.model_validate(notification)
