"""
Approval request and approval event models
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from hr_approvals.db.base import Base


class RequestType(str, enum.Enum):
    LEAVE = "leave"
    OVERTIME = "overtime"
    CORRECTION = "correction"


class RequestStatus(str, enum.Enum):
    """Fixed statuses. Intermediate approvals are stored as approved_n<rank>."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Decision(str, enum.Enum):
    SUBMIT = "submit"
    AUTO_APPROVE = "auto_approve"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    request_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    # Outstanding rank; NULL once the request is terminal
    current_rank = Column(Integer, nullable=True)
    payload = Column(JSON, nullable=True)
    submitted_by = Column(Integer, ForeignKey("employees.id"), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id])
    events = relationship(
        "ApprovalEvent",
        back_populates="request",
        order_by="ApprovalEvent.id",
        cascade="all, delete-orphan",
    )

    # Every UPDATE is guarded by "WHERE version = <loaded version>"
    __mapper_args__ = {"version_id_col": version}


class ApprovalEvent(Base):
    """Append-only ledger of everything that happened to a request."""
    __tablename__ = "approval_events"
    __table_args__ = (
        # A rank is consumed at most once; NULL ranks (submit/cancel) are exempt
        UniqueConstraint("request_id", "rank", name="uq_approval_event_request_rank"),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    rank = Column(Integer, nullable=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    acting_as_delegate_of = Column(Integer, ForeignKey("employees.id"), nullable=True)
    decision = Column(String, nullable=False)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    request = relationship("ApprovalRequest", back_populates="events")
