"""
Delegation model

A time-bounded grant letting the delegate act as the delegator when approving.
Rows are never edited after creation except to revoke them.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from hr_approvals.db.base import Base


class DelegationStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Delegation(Base):
    __tablename__ = "delegations"
    __table_args__ = (
        CheckConstraint("delegator_id <> delegate_id", name="ck_delegation_not_self"),
    )

    id = Column(Integer, primary_key=True, index=True)
    delegator_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    delegate_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    valid_from = Column(DateTime(timezone=True), nullable=False, index=True)
    valid_to = Column(DateTime(timezone=True), nullable=False, index=True)
    # None = every rank the delegator holds
    scope_rank = Column(Integer, nullable=True)
    # None = every request type
    request_type = Column(String, nullable=True)
    excluded_employee_ids = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("employees.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    revocation_reason = Column(Text, nullable=True)

    delegator = relationship("Employee", foreign_keys=[delegator_id])
    delegate = relationship("Employee", foreign_keys=[delegate_id])
