"""
系统时间适配器 - 实现 TimePort
"""

from datetime import datetime, timezone

from shiptrack.ports.interfaces import TimePort


class SystemTimeAdapter(TimePort):
    """
    系统时间适配器

    统一返回带时区的 UTC 时间，数据年龄计算不受服务器时区影响。
    """

    def get_current_datetime(self) -> datetime:
        return datetime.now(timezone.utc)
