"""
Time providers for the approval engine

Every decision is evaluated "as of" an instant obtained from an injected
provider, never from a module-level clock, so tests can pin or move time.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from hr_approvals.models.system_setting import SystemSetting, SYSTEM_CLOCK_KEY
from hr_approvals.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class TimeProvider:
    """Interface: now() returns a timezone-aware UTC datetime."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemTimeProvider(TimeProvider):
    def now(self) -> datetime:
        return now_utc()


class FixedTimeProvider(TimeProvider):
    """Deterministic clock for tests."""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


def _parse_instant(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def compute_overridden_now(clock_value: Optional[dict], real_now: datetime) -> Optional[datetime]:
    """
    Apply an administrator clock override to the real time

    The stored value pins desired_time at the moment reference_time was
    recorded; the override then advances in step with the real clock.

    Args:
        clock_value: Stored system_clock setting (may be None)
        real_now: Current real UTC time

    Returns:
        Overridden instant, or None when no override is enabled
    """
    if not clock_value or not clock_value.get("enabled"):
        return None
    desired = _parse_instant(clock_value.get("desired_time"))
    reference = _parse_instant(clock_value.get("reference_time"))
    if desired is None or reference is None:
        return None
    return desired + (ensure_utc(real_now) - reference)


class SystemClockTimeProvider(TimeProvider):
    """
    Reads the system_clock setting on every call

    Lets administrators move "now" for the whole deployment (e.g. to exercise
    delegation windows in a staging environment). Falls back to the real
    clock when no override is set. Uses the caller's session so the setting
    is read inside the same transaction as the decision it dates.
    """

    def __init__(self, db: Session, real_clock: Optional[TimeProvider] = None):
        self.db = db
        self._real_clock = real_clock or SystemTimeProvider()

    def now(self) -> datetime:
        real_now = self._real_clock.now()
        setting = self.db.query(SystemSetting).filter(SystemSetting.key == SYSTEM_CLOCK_KEY).first()
        overridden = compute_overridden_now(setting.value if setting else None, real_now)
        if overridden is not None:
            logger.debug("system clock override active: now=%s real=%s", overridden, real_now)
            return overridden
        return real_now
