"""订阅周期计算"""

import calendar
from datetime import datetime, timedelta

from app.models.subscription import Frequency


def add_months(moment: datetime, months: int) -> datetime:
    """按自然月前进，日号超出目标月天数时取月末"""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def step(moment: datetime, frequency) -> datetime:
    """前进一个周期

    每次都从上一次的日期前进，月末截断后日号不会恢复：
    1-31 -> 2-28 -> 3-28。
    """
    frequency = Frequency(frequency)
    if frequency == Frequency.DAILY:
        return moment + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return moment + timedelta(days=7)
    return add_months(moment, 1)


def advance_past_now(next_delivery_date: datetime, frequency, now: datetime) -> datetime:
    """反复前进直到严格晚于 now（跳过错过的周期，不补单）"""
    result = next_delivery_date
    while result <= now:
        result = step(result, frequency)
    return result
