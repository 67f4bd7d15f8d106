"""
Approval request schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hr_approvals.models.approval import RequestType
from hr_approvals.utils.datetime_utils import iso_8601_utc


class RequestCreate(BaseModel):
    """Schema for submitting a request"""
    request_type: RequestType = Field(..., description="leave, overtime or correction")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Opaque request body")
    employee_id: Optional[int] = Field(
        None, description="Defaults to the caller; submitting for others needs requests.submit_for_others"
    )


class ApproveAction(BaseModel):
    """Schema for approving the outstanding rank"""
    comment: Optional[str] = Field(None, max_length=2000)
    expected_status: Optional[str] = Field(
        None, description="Status the caller last saw; a mismatch fails with 409 instead of acting"
    )


class ReasonAction(BaseModel):
    """Schema for reject/cancel; reason is checked by the service so a missing one maps to REASON_REQUIRED"""
    reason: Optional[str] = Field(None, max_length=2000)
    expected_status: Optional[str] = None


class RequestOut(BaseModel):
    id: int
    employee_id: int
    request_type: str
    status: str
    current_rank: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    submitted_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt: datetime) -> str:
        return iso_8601_utc(dt)


class ApprovalEventOut(BaseModel):
    id: int
    request_id: int
    rank: Optional[int] = None
    actor_id: int
    acting_as_delegate_of: Optional[int] = None
    decision: str
    from_status: Optional[str] = None
    to_status: str
    comment: Optional[str] = None
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("occurred_at", when_used="always")
    def _ser_datetime(self, dt: datetime) -> str:
        return iso_8601_utc(dt)


class TransitionOut(BaseModel):
    request: RequestOut
    event: ApprovalEventOut
    is_final: bool
    next_rank: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PendingRequestOut(BaseModel):
    request: RequestOut
    step: int = Field(..., description="1-based position of the outstanding rank")
    total_steps: int
    current_approver_id: int
    acting_for: Optional[int] = Field(None, description="Delegator represented when eligible through a delegation")

    model_config = ConfigDict(from_attributes=True)


class RequestHistoryOut(BaseModel):
    request: RequestOut
    events: List[ApprovalEventOut]
