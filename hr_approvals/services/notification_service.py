"""
Audit/notification emitter for approval events

Delivery is best-effort and happens after the transition has committed: a
failure here is logged and never rolls back or fails the approval itself.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, FrozenSet

from sqlalchemy.orm import Session

from hr_approvals.core.exceptions import NotFound
from hr_approvals.models.approval import Decision, RequestStatus
from hr_approvals.models.notification import Notification, NotificationKind
from hr_approvals.services.audit_service import add_audit
from hr_approvals.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalNotice:
    """One committed ApprovalEvent plus what the recipients need to know."""
    event_id: int
    request_id: int
    employee_id: int
    request_type: str
    decision: str
    from_status: Optional[str]
    to_status: str
    rank: Optional[int]
    actor_id: int
    occurred_at: datetime
    acting_as_delegate_of: Optional[int] = None
    comment: Optional[str] = None
    next_rank: Optional[int] = None
    next_approver_ids: FrozenSet[int] = field(default_factory=frozenset)


class Notifier:
    """Interface: notify(notice) must not raise."""

    def notify(self, notice: ApprovalNotice) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def notify(self, notice: ApprovalNotice) -> None:
        return None


def add_notification(
    db: Session,
    recipient_id: int,
    kind: NotificationKind,
    message: str,
    request_id: Optional[int] = None,
    delegation_id: Optional[int] = None,
    at: Optional[datetime] = None,
) -> Notification:
    """Stage an in-app notification in the caller's transaction (no commit)"""
    notification = Notification(
        recipient_id=recipient_id,
        kind=kind.value,
        message=message,
        request_id=request_id,
        delegation_id=delegation_id,
        is_read=False,
        created_at=at or now_utc(),
    )
    db.add(notification)
    return notification


def _requester_message(notice: ApprovalNotice) -> Optional[tuple]:
    label = f"{notice.request_type} request #{notice.request_id}"
    if notice.to_status == RequestStatus.APPROVED.value:
        return NotificationKind.REQUEST_APPROVED, f"Your {label} has been fully approved"
    if notice.to_status == RequestStatus.REJECTED.value:
        reason = f": {notice.comment}" if notice.comment else ""
        return NotificationKind.REQUEST_REJECTED, f"Your {label} was rejected{reason}"
    if notice.to_status == RequestStatus.CANCELLED.value:
        return NotificationKind.REQUEST_CANCELLED, f"Your {label} was cancelled: {notice.comment}"
    if notice.decision == Decision.APPROVE.value:
        return NotificationKind.REQUEST_ADVANCED, f"Your {label} was approved at level {notice.rank} and moved to level {notice.next_rank}"
    return None


def record_notice(db: Session, notice: ApprovalNotice) -> List[Notification]:
    """
    Stage the audit row and in-app notifications for one approval event

    The requester hears about every outcome except their own submission;
    the principals eligible at the next rank are told their approval is
    required.
    """
    action = f"REQUEST_{notice.decision.upper()}"
    add_audit(
        db,
        actor_id=notice.actor_id,
        action=action,
        entity_type="approval_request",
        entity_id=notice.request_id,
        meta={
            "event_id": notice.event_id,
            "from_status": notice.from_status,
            "to_status": notice.to_status,
            "rank": notice.rank,
            "acting_as_delegate_of": notice.acting_as_delegate_of,
            "comment": notice.comment,
        },
        at=notice.occurred_at,
    )

    created = []
    requester_message = _requester_message(notice)
    if requester_message is not None and notice.employee_id != notice.actor_id:
        kind, message = requester_message
        created.append(add_notification(
            db, notice.employee_id, kind, message,
            request_id=notice.request_id, at=notice.occurred_at,
        ))

    for approver_id in sorted(notice.next_approver_ids):
        created.append(add_notification(
            db,
            approver_id,
            NotificationKind.APPROVAL_REQUIRED,
            f"{notice.request_type.capitalize()} request #{notice.request_id} is waiting for your approval (level {notice.next_rank})",
            request_id=notice.request_id,
            at=notice.occurred_at,
        ))
    return created


class DatabaseNotifier(Notifier):
    """Writes audit rows and in-app notifications in a session of its own."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def notify(self, notice: ApprovalNotice) -> None:
        db = self._session_factory()
        try:
            record_notice(db, notice)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning(
                "Failed to deliver approval notification: request_id=%s event_id=%s error=%s",
                notice.request_id, notice.event_id, e,
            )
        finally:
            db.close()


def list_notifications(db: Session, recipient_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
    """Newest first"""
    query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(db: Session, notification_id: int, recipient_id: int, at: Optional[datetime] = None) -> Notification:
    """
    Mark one of the recipient's notifications as read

    Raises:
        NotFound: If the notification does not exist or belongs to someone else
    """
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == recipient_id,
    ).first()
    if not notification:
        raise NotFound(f"Notification with id {notification_id} not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = at or now_utc()
        db.commit()
        db.refresh(notification)
    return notification
