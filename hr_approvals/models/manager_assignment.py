"""
Manager assignment model

One row per (employee, rank). Rank 0 is the direct manager; higher ranks are
consumed in ascending order by the approval chain.
"""
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hr_approvals.db.base import Base


class ManagerAssignment(Base):
    __tablename__ = "manager_assignments"
    __table_args__ = (
        UniqueConstraint("employee_id", "rank", name="uq_manager_assignment_employee_rank"),
        CheckConstraint("employee_id <> manager_id", name="ck_manager_assignment_not_self"),
        CheckConstraint("rank >= 0", name="ck_manager_assignment_rank_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    rank = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id])
    manager = relationship("Employee", foreign_keys=[manager_id])
