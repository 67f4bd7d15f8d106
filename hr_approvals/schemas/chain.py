"""
Manager chain schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hr_approvals.utils.datetime_utils import iso_8601_utc


class ManagerAssignmentIn(BaseModel):
    """One rank of a chain"""
    rank: int = Field(..., ge=0, description="0 = direct manager; higher ranks approve later")
    manager_id: int = Field(..., description="Employee ID of the manager at this rank")


class ReplaceChainRequest(BaseModel):
    """Schema for replacing an employee's whole chain (empty list clears it)"""
    managers: List[ManagerAssignmentIn] = Field(default_factory=list)


class ManagerAssignmentOut(BaseModel):
    rank: int
    manager_id: int
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class ChainOut(BaseModel):
    employee_id: int
    reporting_manager_id: Optional[int] = Field(None, description="Rank 0 manager")
    managers: List[ManagerAssignmentOut]


class ActingDelegateOut(BaseModel):
    delegate_id: int
    acting_for: int


class ChainLevelOut(BaseModel):
    step: int
    rank: int
    manager_id: int
    eligible: List[int]
    delegates: List[ActingDelegateOut] = Field(default_factory=list)


class ResolvedChainOut(BaseModel):
    """Chain as it resolves at one instant, delegations included"""
    employee_id: int
    as_of: datetime
    is_empty: bool
    levels: List[ChainLevelOut]

    @field_serializer("as_of", when_used="always")
    def _ser_datetime(self, dt: datetime) -> str:
        return iso_8601_utc(dt)


class DirectReportOut(BaseModel):
    employee_id: int
    emp_code: str
    name: str
    rank: int
