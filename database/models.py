"""
Моделі даних контролера: виміри, події журналу, сесії та коди подій.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, NamedTuple, Optional


class EventLevel(IntEnum):
    """Рівень події журналу."""
    WARNING = 1
    ERROR = 2


class WarnCode(IntEnum):
    """Коди попереджень (рівень 1)."""
    DS18_MISSING = 1
    BME_MISSING = 2
    ADC_SATURATED = 3
    CACHE_USED = 4
    RTC_NOT_SET = 6
    CREDENTIALS_MISSING = 7
    CREDENTIALS_INVALID = 8


class ErrorCode(IntEnum):
    """Коди помилок (рівень 2)."""
    OVERCURRENT = 1
    OVERTEMP = 2
    CONFIG_WRITE = 3
    SESSION_WRITE = 4
    CURRENT_LOST = 5


class PendingEvent(NamedTuple):
    """Подія, ще не записана в журнал (без seq та часу)."""
    level: EventLevel
    code: int
    message: str
    source: str


@dataclass(frozen=True)
class Sample:
    """Один вимір циклу керування."""
    ts_ms: int
    current_a: Optional[float]
    power_w: Optional[float]
    motor_c: Optional[float]
    board_c: Optional[float]
    ambient_c: Optional[float]
    pressure_pa: Optional[float]
    seq: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Конвертувати в словник."""
        return {
            'seq': self.seq,
            'ts_ms': self.ts_ms,
            'current_a': _round(self.current_a, 3),
            'power_w': _round(self.power_w, 2),
            'motor_c': _round(self.motor_c, 2),
            'board_c': _round(self.board_c, 2),
            'ambient_c': _round(self.ambient_c, 2),
            'pressure_pa': _round(self.pressure_pa, 1)
        }


@dataclass(frozen=True)
class Event:
    """Запис журналу подій."""
    seq: int
    ts_ms: int
    level: EventLevel
    code: int
    message: str
    source: str

    def to_dict(self) -> Dict[str, Any]:
        """Конвертувати в словник."""
        return {
            'seq': self.seq,
            'ts_ms': self.ts_ms,
            'level': int(self.level),
            'code': self.code,
            'message': self.message,
            'source': self.source
        }


@dataclass(frozen=True)
class SessionRecord:
    """Завершена сесія роботи навантаження."""
    start_epoch: int
    end_epoch: int
    duration_s: int
    energy_wh: float
    peak_power_w: float
    peak_current_a: float
    success: bool

    def to_dict(self) -> Dict[str, Any]:
        """Конвертувати в словник."""
        return {
            'start_epoch': self.start_epoch,
            'end_epoch': self.end_epoch,
            'duration_s': self.duration_s,
            'energy_wh': self.energy_wh,
            'peak_power_w': self.peak_power_w,
            'peak_current_a': self.peak_current_a,
            'success': self.success
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionRecord':
        """Створити запис зі словника (наприклад, рядка бази даних)."""
        return cls(
            start_epoch=int(data['start_epoch']),
            end_epoch=int(data['end_epoch']),
            duration_s=int(data['duration_s']),
            energy_wh=float(data['energy_wh']),
            peak_power_w=float(data['peak_power_w']),
            peak_current_a=float(data['peak_current_a']),
            success=bool(data['success'])
        )


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)
