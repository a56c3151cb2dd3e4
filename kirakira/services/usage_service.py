import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from kirakira.core.timezone import kst_today_start
from kirakira.models.usage import UsageRecord

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
PREMIUM_MODEL = "gemini-3-flash"

# Successful chat completions allowed per user, per model, per KST day
DAILY_LIMITS = {
    DEFAULT_MODEL: 300,
    PREMIUM_MODEL: 30,
}


def select_model(requested: Optional[str]) -> str:
    """Anything other than the premium tier falls back to the default model."""
    return PREMIUM_MODEL if requested == PREMIUM_MODEL else DEFAULT_MODEL


def count_today(db: Session, user_id: str, model: str, now: datetime = None) -> int:
    since = kst_today_start(now)
    return db.query(func.count(UsageRecord.id)).filter(
        UsageRecord.user_id == user_id,
        UsageRecord.model == model,
        UsageRecord.used_at >= since,
    ).scalar() or 0


def has_remaining_quota(db: Session, user_id: str, model: str) -> bool:
    used = count_today(db, user_id, model)
    if used >= DAILY_LIMITS[model]:
        logger.info(f"Daily limit reached for user {user_id} on {model} ({used}/{DAILY_LIMITS[model]})")
        return False
    return True


def usage_summary(db: Session, user_id: str, now: datetime = None) -> Dict[str, Dict[str, int]]:
    """Per-model {used, limit, remaining} for the current KST day."""
    since = kst_today_start(now)
    rows = db.query(UsageRecord.model, func.count(UsageRecord.id)).filter(
        UsageRecord.user_id == user_id,
        UsageRecord.used_at >= since,
    ).group_by(UsageRecord.model).all()
    counts = {model: count for model, count in rows}

    summary = {}
    for model, limit in DAILY_LIMITS.items():
        used = counts.get(model, 0)
        summary[model] = {"used": used, "limit": limit, "remaining": max(0, limit - used)}
    return summary
