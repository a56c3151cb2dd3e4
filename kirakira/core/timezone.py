from datetime import datetime, timedelta, timezone

# Daily quotas roll over at midnight Korea Standard Time (UTC+9)
KST = timezone(timedelta(hours=9))


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def kst_today_start(now: datetime = None) -> datetime:
    """
    Return the instant today's KST calendar day began, as naive UTC.

    ``now`` may be naive UTC or timezone-aware; it defaults to the current time.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    kst_midnight = now.astimezone(KST).replace(hour=0, minute=0, second=0, microsecond=0)
    return kst_midnight.astimezone(timezone.utc).replace(tzinfo=None)
