"""
Firelucid 时间戳

Timestamp 是文档存储使用的原生时间戳表示（秒 + 纳秒），
可与 datetime 以及毫秒时间戳互相转换。
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


_NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True, order=True)
class Timestamp:
    """
    存储原生时间戳

    Attributes:
        seconds: 自 Unix 纪元起的秒数
        nanoseconds: 秒内纳秒部分（0 <= nanoseconds < 1e9）
    """
    seconds: int
    nanoseconds: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanoseconds < _NANOS_PER_SECOND:
            raise ValueError(f"nanoseconds out of range: {self.nanoseconds}")

    @classmethod
    def now(cls) -> 'Timestamp':
        """当前时间"""
        seconds, nanos = divmod(time.time_ns(), _NANOS_PER_SECOND)
        return cls(seconds, nanos)

    @classmethod
    def from_datetime(cls, value: datetime) -> 'Timestamp':
        """
        从 datetime 转换

        无时区信息的 datetime 视为 UTC。
        """
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
        total_micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
        seconds, micros = divmod(total_micros, 1_000_000)
        return cls(seconds, micros * 1000)

    @classmethod
    def from_millis(cls, milliseconds: int) -> 'Timestamp':
        """从毫秒转换"""
        seconds, millis = divmod(int(milliseconds), 1000)
        return cls(seconds, millis * 1_000_000)

    def to_datetime(self) -> datetime:
        """转换为带 UTC 时区的 datetime（精度为微秒）"""
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc).replace(
            microsecond=self.nanoseconds // 1000
        )

    def to_millis(self) -> int:
        """转换为毫秒"""
        return self.seconds * 1000 + self.nanoseconds // 1_000_000

    def __repr__(self) -> str:
        return f"Timestamp(seconds={self.seconds}, nanoseconds={self.nanoseconds})"


class Timestamps:
    """时间戳转换工具"""

    @staticmethod
    def now() -> Timestamp:
        return Timestamp.now()

    @staticmethod
    def from_datetime(value: datetime) -> Timestamp:
        return Timestamp.from_datetime(value)

    @staticmethod
    def from_millis(milliseconds: int) -> Timestamp:
        return Timestamp.from_millis(milliseconds)

    @staticmethod
    def to_datetime(timestamp: Timestamp) -> datetime:
        return timestamp.to_datetime()

    @staticmethod
    def to_millis(timestamp: Timestamp) -> int:
        return timestamp.to_millis()


def to_native(value: Any) -> Any:
    """Timestamp 转换为 datetime，其它值原样返回"""
    if isinstance(value, Timestamp):
        return value.to_datetime()
    return value
