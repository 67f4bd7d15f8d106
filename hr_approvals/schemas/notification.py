"""
Notification and clock schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hr_approvals.utils.datetime_utils import iso_8601_utc


class NotificationOut(BaseModel):
    id: int
    kind: str
    message: str
    request_id: Optional[int] = None
    delegation_id: Optional[int] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("read_at", "created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class ClockSet(BaseModel):
    desired_time: datetime = Field(..., description="Instant the system clock should report right now")


class ClockOut(BaseModel):
    enabled: bool
    current_time: datetime
    real_time: datetime
    desired_time: Optional[str] = None
    reference_time: Optional[str] = None
    updated_by: Optional[int] = None

    @field_serializer("current_time", "real_time", when_used="always")
    def _ser_datetime(self, dt: datetime) -> str:
        return iso_8601_utc(dt)
