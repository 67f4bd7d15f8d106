"""
External collaborators injected into the request state machine
"""
from dataclasses import dataclass, field

from hr_approvals.services.notification_service import Notifier, NullNotifier
from hr_approvals.services.permission_service import Authorizer
from hr_approvals.services.time_provider import TimeProvider


@dataclass
class Collaborators:
    clock: TimeProvider
    authorizer: Authorizer
    notifier: Notifier = field(default_factory=NullNotifier)
