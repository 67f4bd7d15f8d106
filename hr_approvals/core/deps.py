"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from hr_approvals.core.config import settings
from hr_approvals.core.security import decode_token
from hr_approvals.db.session import SessionLocal
from hr_approvals.models.employee import Employee
from hr_approvals.services.collaborators import Collaborators
from hr_approvals.services.notification_service import DatabaseNotifier, Notifier, NullNotifier
from hr_approvals.services.permission_service import Authorizer, RoleAuthorizer
from hr_approvals.services.time_provider import SystemClockTimeProvider, SystemTimeProvider, TimeProvider


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Get current authenticated user from JWT token
    """
    token = credentials.credentials

    try:
        payload = decode_token(token)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        # JWT sub is a string
        employee_id: int = int(sub_value)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


def get_real_clock() -> TimeProvider:
    """Wall clock; tests override this with a FixedTimeProvider"""
    return SystemTimeProvider()


def get_clock(
    db: Session = Depends(get_db),
    real_clock: TimeProvider = Depends(get_real_clock),
) -> TimeProvider:
    """Clock used for decisions, honouring the administrator override when enabled"""
    if settings.USE_SYSTEM_CLOCK_OVERRIDE:
        return SystemClockTimeProvider(db, real_clock)
    return real_clock


def get_authorizer(db: Session = Depends(get_db)) -> Authorizer:
    return RoleAuthorizer(db)


def get_notifier() -> Notifier:
    if not settings.NOTIFICATIONS_ENABLED:
        return NullNotifier()
    return DatabaseNotifier(SessionLocal)


def get_collaborators(
    clock: TimeProvider = Depends(get_clock),
    authorizer: Authorizer = Depends(get_authorizer),
    notifier: Notifier = Depends(get_notifier),
) -> Collaborators:
    return Collaborators(clock=clock, authorizer=authorizer, notifier=notifier)


def require_permission(operation: str):
    """
    Dependency factory for operation-level access control

    Usage:
        @router.put("/{employee_id}/managers")
        async def replace(user: Employee = Depends(require_permission(CHAINS_MANAGE))):
            ...
    """
    def permission_checker(
        current_user: Employee = Depends(get_current_user),
        authorizer: Authorizer = Depends(get_authorizer),
    ) -> Employee:
        if not authorizer.authorize(current_user.id, operation):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Missing permission: {operation}"
            )
        return current_user
    return permission_checker
