"""
Employee directory lookups used by the approval engine
"""
from typing import Iterable, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from hr_approvals.models.employee import Employee
from hr_approvals.models.role import RoleModel

# Rank assumed for roles missing from the roles table
DEFAULT_ROLE_RANK = 99


class DatabaseDirectory:
    """Directory backed by the employees table of the caller's session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, employee_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.id == employee_id).first()

    def exists(self, employee_id: int) -> bool:
        return self.get(employee_id) is not None

    def is_active(self, employee_id: int) -> bool:
        employee = self.get(employee_id)
        return bool(employee and employee.active)

    def missing(self, employee_ids: Iterable[int]) -> Set[int]:
        """Return the subset of ids that do not exist"""
        ids = set(employee_ids)
        if not ids:
            return set()
        found = {row.id for row in self.db.query(Employee.id).filter(Employee.id.in_(ids)).all()}
        return ids - found

    def role_of(self, employee_id: int) -> Optional[str]:
        employee = self.get(employee_id)
        return employee.role if employee else None

    def role_rank_of(self, employee_id: int) -> int:
        """Authority rank of the employee's role (smaller = higher authority)"""
        role = self.role_of(employee_id)
        if role is None:
            return DEFAULT_ROLE_RANK
        role_model = self.db.query(RoleModel).filter(
            func.lower(RoleModel.name) == func.lower(role),
            RoleModel.is_active.is_(True),
        ).first()
        return role_model.role_rank if role_model else DEFAULT_ROLE_RANK
