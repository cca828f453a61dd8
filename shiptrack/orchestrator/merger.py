"""
数据合并器 - 把多个数据源的结果合并为一条货运记录

规则：
1. 第一个可用结果为主数据源
2. 承运人、状态、服务类型取主数据源；主数据源缺失时依次从后续数据源补齐
3. 时间线取所有数据源的并集，按 (时间, 状态, 地点) 去重后升序排列
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from shiptrack.domain.models import (
    IdentifierType,
    RawProviderResult,
    ShipmentRecord,
    TimelineEvent,
    detect_identifier_type,
    utcnow,
)
from shiptrack.infrastructure.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CARRIER = "Unknown"
DEFAULT_STATUS = "Unknown"
DEFAULT_SERVICE = "FCL"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """解析事件时间，无时区的时间视为 UTC；无法解析返回 None"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_timeline_event(raw: Dict[str, Any]) -> Optional[TimelineEvent]:
    timestamp = parse_timestamp(raw.get("timestamp"))
    if timestamp is None:
        return None
    return TimelineEvent(
        timestamp=timestamp,
        status=str(raw.get("status") or ""),
        location=str(raw.get("location") or ""),
        description=str(raw.get("description") or ""),
        is_completed=bool(raw.get("is_completed", False)),
        event_id=raw.get("id"),
    )


class DataMerger:
    """数据合并器"""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    def merge(
        self,
        results: Sequence[RawProviderResult],
        identifier_type: Optional[IdentifierType] = None,
    ) -> ShipmentRecord:
        """
        合并原始结果

        Args:
            results: 按访问顺序排列的结果
            identifier_type: 调用方指定的追踪号类型

        Returns:
            ShipmentRecord: 合并后的记录

        Raises:
            ValueError: 没有任何可用结果
        """
        usable = [r for r in results if r.is_usable and r.payload is not None]
        if not usable:
            raise ValueError("没有可合并的结果")

        primary = usable[0]
        payloads = [r.payload for r in usable]

        sources: List[str] = []
        for r in usable:
            if r.provider not in sources:
                sources.append(r.provider)

        return ShipmentRecord(
            identifier=primary.identifier,
            identifier_type=self._resolve_type(primary.identifier, identifier_type, payloads),
            carrier=self._first_value(payloads, "carrier", DEFAULT_CARRIER),
            status=self._first_value(payloads, "status", DEFAULT_STATUS),
            service=self._first_value(payloads, "service", DEFAULT_SERVICE),
            timeline=tuple(self.merge_timelines(usable)),
            data_source=primary.provider,
            reliability=primary.reliability,
            last_updated=self._clock(),
            sources=tuple(sources),
        )

    def merge_timelines(self, results: Sequence[RawProviderResult]) -> List[TimelineEvent]:
        """合并时间线：去重后按时间升序（同一时间保持数据源顺序）"""
        seen = set()
        events: List[TimelineEvent] = []
        for result in results:
            for raw in (result.payload or {}).get("timeline") or []:
                event = to_timeline_event(raw)
                if event is None:
                    logger.debug(
                        "丢弃无法解析时间的事件",
                        extra={"provider": result.provider, "identifier": result.identifier},
                    )
                    continue
                if event.dedup_key in seen:
                    continue
                seen.add(event.dedup_key)
                events.append(event)

        events.sort(key=lambda e: e.timestamp)
        return events

    @staticmethod
    def _first_value(payloads: Sequence[Dict[str, Any]], key: str, default: str) -> str:
        for payload in payloads:
            value = payload.get(key)
            if value:
                return str(value)
        return default

    @staticmethod
    def _resolve_type(
        identifier: str,
        identifier_type: Optional[IdentifierType],
        payloads: Sequence[Dict[str, Any]],
    ) -> IdentifierType:
        if identifier_type is not None:
            return identifier_type
        for payload in payloads:
            value = payload.get("trackingType")
            if value in IdentifierType._value2member_map_:
                return IdentifierType(value)
        return detect_identifier_type(identifier)
