"""时间工具（统一使用不带时区的 UTC 时间）"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(moment: datetime):
    """返回 moment 所在自然日的 [开始, 结束)"""
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def to_naive_utc(moment: datetime) -> datetime:
    """带时区的时间转为不带时区的 UTC 时间"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)
