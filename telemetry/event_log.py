"""
Журнал подій (попередження та помилки) з дублюванням у logger.
"""

from typing import Iterable, List, Optional

from database.models import Event, EventLevel, PendingEvent
from telemetry.ring_log import SequencedLog
from utils.logger import get_logger


EVENT_LOG_CAPACITY = 250


class EventLog(SequencedLog[Event]):
    """Журнал подій з лічильником seq, незалежним від журналу вимірів."""

    def __init__(self, capacity: int = EVENT_LOG_CAPACITY):
        super().__init__(capacity)
        self.logger = get_logger()
        self.last_warning: Optional[int] = None
        self.last_error: Optional[int] = None

    def append(self, ts_ms: int, level: EventLevel, code: int, message: str, source: str) -> Event:
        """
        Додати подію в журнал.

        Args:
            ts_ms: Час такту
            level: Рівень (попередження/помилка)
            code: Код події
            message: Текст
            source: Підсистема-джерело

        Returns:
            Записана подія з призначеним seq
        """
        level = EventLevel(level)
        event = self.push(Event(
            seq=self.next_seq(),
            ts_ms=ts_ms,
            level=level,
            code=int(code),
            message=message,
            source=source
        ))

        text = f"[{source}] {'E' if level == EventLevel.ERROR else 'W'}{int(code):02d} {message}"
        if level == EventLevel.ERROR:
            self.last_error = event.code
            self.logger.error(text)
        else:
            self.last_warning = event.code
            self.logger.warning(text)
        return event

    def extend(self, ts_ms: int, pending: Iterable[PendingEvent]) -> List[Event]:
        """Записати пакет подій, отриманих від компонентів за один такт."""
        return [self.append(ts_ms, *item) for item in pending]
