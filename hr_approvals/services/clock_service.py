"""
Administrator-controlled system clock

Stores an override in system_settings under "system_clock". While enabled,
SystemClockTimeProvider reports desired_time advanced by however much real
time has passed since the override was set.
"""
import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.orm import Session

from hr_approvals.models.system_setting import SystemSetting, SYSTEM_CLOCK_KEY
from hr_approvals.services.audit_service import add_audit
from hr_approvals.services.time_provider import TimeProvider, compute_overridden_now
from hr_approvals.utils.datetime_utils import ensure_utc, iso_8601_utc

logger = logging.getLogger(__name__)


def _get_setting(db: Session) -> SystemSetting:
    return db.query(SystemSetting).filter(SystemSetting.key == SYSTEM_CLOCK_KEY).first()


def get_clock_state(db: Session, real_clock: TimeProvider) -> Dict[str, Any]:
    """
    Describe the current clock

    Returns:
        Dict with enabled, current_time, real_time, desired_time, reference_time
    """
    real_now = real_clock.now()
    setting = _get_setting(db)
    value = setting.value if setting else None
    overridden = compute_overridden_now(value, real_now)
    return {
        "enabled": overridden is not None,
        "current_time": overridden or real_now,
        "real_time": real_now,
        "desired_time": (value or {}).get("desired_time") if overridden is not None else None,
        "reference_time": (value or {}).get("reference_time") if overridden is not None else None,
        "updated_by": setting.updated_by if setting else None,
    }


def set_clock(db: Session, desired_time: datetime, actor_id: int, real_clock: TimeProvider) -> Dict[str, Any]:
    """Pin the system clock to desired_time as of now"""
    real_now = real_clock.now()
    value = {
        "enabled": True,
        "desired_time": iso_8601_utc(ensure_utc(desired_time)),
        "reference_time": iso_8601_utc(real_now),
    }
    setting = _get_setting(db)
    if setting is None:
        setting = SystemSetting(key=SYSTEM_CLOCK_KEY)
        db.add(setting)
    setting.value = value
    setting.updated_by = actor_id

    add_audit(
        db,
        actor_id=actor_id,
        action="CLOCK_SET",
        entity_type="system_setting",
        meta=value,
        at=real_now,
    )
    db.commit()
    logger.warning("system clock override set: desired_time=%s actor_id=%s", value["desired_time"], actor_id)
    return get_clock_state(db, real_clock)


def disable_clock(db: Session, actor_id: int, real_clock: TimeProvider) -> Dict[str, Any]:
    """Return to the real clock"""
    setting = _get_setting(db)
    if setting is not None and (setting.value or {}).get("enabled"):
        setting.value = {**setting.value, "enabled": False}
        setting.updated_by = actor_id
        add_audit(
            db,
            actor_id=actor_id,
            action="CLOCK_RESET",
            entity_type="system_setting",
            at=real_clock.now(),
        )
        db.commit()
        logger.warning("system clock override disabled: actor_id=%s", actor_id)
    return get_clock_state(db, real_clock)
