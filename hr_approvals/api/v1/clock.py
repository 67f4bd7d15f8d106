"""
Administrator clock endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hr_approvals.core.deps import get_db, get_real_clock, require_permission
from hr_approvals.models.employee import Employee
from hr_approvals.schemas.notification import ClockOut, ClockSet
from hr_approvals.services import clock_service
from hr_approvals.services.permission_service import CLOCK_MANAGE
from hr_approvals.services.time_provider import TimeProvider

router = APIRouter()


@router.get("/clock", response_model=ClockOut)
async def get_clock_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(CLOCK_MANAGE)),
    real_clock: TimeProvider = Depends(get_real_clock),
):
    return ClockOut(**clock_service.get_clock_state(db, real_clock))


@router.put("/clock", response_model=ClockOut)
async def set_clock_endpoint(
    body: ClockSet,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(CLOCK_MANAGE)),
    real_clock: TimeProvider = Depends(get_real_clock),
):
    """Override "now" for every approval decision until reset"""
    return ClockOut(**clock_service.set_clock(db, body.desired_time, current_user.id, real_clock))


@router.delete("/clock", response_model=ClockOut)
async def reset_clock_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_permission(CLOCK_MANAGE)),
    real_clock: TimeProvider = Depends(get_real_clock),
):
    """Return to the real clock"""
    return ClockOut(**clock_service.disable_clock(db, current_user.id, real_clock))
