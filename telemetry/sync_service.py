"""
Сервіс інкрементальної синхронізації журналів за курсором (since, max).

Клієнт, який щоразу зберігає отриманий seq_end як наступний since, бачить кожен
запис рівно один раз і в порядку зростання. Втрачаються лише записи, витіснені
з кільцевого буфера до того, як клієнт їх прочитав.
"""

import math
from typing import Any, Dict, Optional

from telemetry.event_log import EventLog
from telemetry.ring_log import QueryResult, SequencedLog
from telemetry.sample_log import SampleLog


DEFAULT_MAX = 50
MAX_LIMIT = 200


def parse_since(value: Any) -> int:
    """Курсор з параметра запиту; некоректне або від'ємне значення - 0."""
    if isinstance(value, bool):
        return 0
    try:
        since = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(since):
        return 0
    return max(0, int(since))


def clamp_max(value: Any, default: int = DEFAULT_MAX) -> int:
    """Розмір сторінки, обмежений діапазоном [1, 200]."""
    if value is None or value == '':
        return default
    try:
        max_items = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(MAX_LIMIT, max_items))


class SyncService:
    """Відповідає на курсорні запити до журналів вимірів і подій."""

    def __init__(self, sample_log: SampleLog, event_log: EventLog):
        self.sample_log = sample_log
        self.event_log = event_log

    def query_samples(self, since: Any = 0, max_items: Optional[Any] = None) -> QueryResult:
        return self._query(self.sample_log, since, max_items)

    def query_events(self, since: Any = 0, max_items: Optional[Any] = None) -> QueryResult:
        return self._query(self.event_log, since, max_items)

    @staticmethod
    def _query(log: SequencedLog, since: Any, max_items: Optional[Any]) -> QueryResult:
        return log.query(parse_since(since), clamp_max(max_items))

    @staticmethod
    def to_payload(result: QueryResult, key: str) -> Dict[str, Any]:
        """Серіалізувати результат для транспортного шару."""
        return {
            key: [item.to_dict() for item in result.items],
            'seq_end': result.seq_end,
            'seq_last': result.seq_last
        }
