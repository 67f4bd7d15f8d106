"""
Delegation schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hr_approvals.models.approval import RequestType
from hr_approvals.models.delegation import DelegationStatus
from hr_approvals.utils.datetime_utils import iso_8601_utc


class DelegationCreate(BaseModel):
    """Schema for granting a delegation"""
    delegate_id: int = Field(..., description="Employee who may act on the delegator's behalf")
    valid_from: datetime = Field(..., description="Start of the window (inclusive)")
    valid_to: datetime = Field(..., description="End of the window (exclusive)")
    delegator_id: Optional[int] = Field(
        None, description="Defaults to the caller; setting another delegator needs delegations.manage_all"
    )
    scope_rank: Optional[int] = Field(None, ge=0, description="Restrict to one rank; omit for all ranks")
    request_type: Optional[RequestType] = Field(None, description="Restrict to one request type")
    excluded_employee_ids: List[int] = Field(default_factory=list)
    reason: Optional[str] = Field(None, max_length=1000)


class DelegationRevoke(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class DelegationOut(BaseModel):
    id: int
    delegator_id: int
    delegate_id: int
    valid_from: datetime
    valid_to: datetime
    scope_rank: Optional[int] = None
    request_type: Optional[str] = None
    excluded_employee_ids: List[int] = Field(default_factory=list)
    reason: Optional[str] = None
    created_by: int
    created_at: datetime
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[int] = None
    revocation_reason: Optional[str] = None
    current_status: Optional[DelegationStatus] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("valid_from", "valid_to", "created_at", "revoked_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class DelegationCheckOut(BaseModel):
    can_act: bool
    original_approver_id: int
    delegation_id: Optional[int] = None
    valid_to: Optional[datetime] = None

    @field_serializer("valid_to", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class AvailableDelegateOut(BaseModel):
    id: int
    emp_code: str
    name: str
    role: str

    model_config = ConfigDict(from_attributes=True)
