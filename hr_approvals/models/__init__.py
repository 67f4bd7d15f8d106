"""
Database models
"""
from hr_approvals.models.employee import Employee, Role
from hr_approvals.models.role import RoleModel
from hr_approvals.models.manager_assignment import ManagerAssignment
from hr_approvals.models.delegation import Delegation, DelegationStatus
from hr_approvals.models.approval import (
    ApprovalRequest,
    ApprovalEvent,
    RequestType,
    RequestStatus,
    Decision,
)
from hr_approvals.models.audit_log import AuditLog
from hr_approvals.models.notification import Notification, NotificationKind
from hr_approvals.models.system_setting import SystemSetting, SYSTEM_CLOCK_KEY

__all__ = [
    "Employee",
    "Role",
    "RoleModel",
    "ManagerAssignment",
    "Delegation",
    "DelegationStatus",
    "ApprovalRequest",
    "ApprovalEvent",
    "RequestType",
    "RequestStatus",
    "Decision",
    "AuditLog",
    "Notification",
    "NotificationKind",
    "SystemSetting",
    "SYSTEM_CLOCK_KEY",
]
