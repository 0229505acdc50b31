"""
Робоча конфігурація пристрою: пороги захисту, живлення, частота вибірки
та калібрування датчика струму.
"""

import math
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple


SAMPLING_HZ_MIN = 1
SAMPLING_HZ_MAX = 200

ADC_REF_MV = 5000.0
ADC_MAX = 4095
ADC_SAT_MARGIN = 2


class OvcMode(IntEnum):
    """Реакція на перевантаження за струмом."""
    LATCH = 0
    AUTO_RETRY = 1


@dataclass(frozen=True)
class DeviceConfig:
    """Знімок конфігурації. Оновлюється лише повною заміною (apply_update)."""
    limit_current_a: float = 18.0
    ovc_mode: OvcMode = OvcMode.LATCH
    ovc_min_ms: int = 40
    ovc_retry_ms: int = 5000
    temp_motor_c: float = 85.0
    temp_board_c: float = 70.0
    temp_ambient_c: float = 60.0
    temp_hyst_c: float = 5.0
    latch_overtemp: bool = True
    motor_vcc_v: float = 12.0
    sampling_hz: int = 50
    run_max_s: int = 3600
    current_zero_mv: float = 2500.0
    current_sens_mv_a: float = 100.0
    current_input_scale: float = 1.0

    @property
    def period_ms(self) -> int:
        """Період такту в мілісекундах."""
        return int(round(1000 / clamp_sampling_hz(self.sampling_hz)))

    def to_dict(self) -> Dict[str, Any]:
        """Плоский словник ключ-значення (формат сховища та API)."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['ovc_mode'] = int(self.ovc_mode)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DeviceConfig':
        """Створити конфігурацію зі словника; некоректні поля мають значення за замовчуванням."""
        config, _ = cls().apply_update(data or {})
        return config

    def apply_update(self, partial: Dict[str, Any]) -> Tuple['DeviceConfig', List[str]]:
        """
        Застосувати часткове оновлення поле за полем.

        Невідомі або некоректні поля пропускаються, коректні поля того ж
        запиту все одно застосовуються.

        Args:
            partial: Словник з новими значеннями

        Returns:
            Кортеж (нова конфігурація, список застосованих ключів)
        """
        changes: Dict[str, Any] = {}
        for key, raw in (partial or {}).items():
            parser = _PARSERS.get(key)
            if parser is None:
                continue
            value = parser(raw)
            if value is not None:
                changes[key] = value

        if not changes:
            return self, []
        return replace(self, **changes), sorted(changes)

    def current_from_mv(self, sensor_mv: float) -> Tuple[float, bool]:
        """
        Перетворити напругу датчика струму на ампери з урахуванням калібрування.

        Args:
            sensor_mv: Напруга на виході датчика, мВ

        Returns:
            Кортеж (струм, А; чи АЦП у насиченні)
        """
        code = int(round(sensor_mv * self.current_input_scale / ADC_REF_MV * ADC_MAX))
        code = max(0, min(ADC_MAX, code))
        saturated = code <= ADC_SAT_MARGIN or code >= ADC_MAX - ADC_SAT_MARGIN

        mv = code / ADC_MAX * ADC_REF_MV / self.current_input_scale
        return (mv - self.current_zero_mv) / self.current_sens_mv_a, saturated


def clamp_sampling_hz(value: int) -> int:
    return max(SAMPLING_HZ_MIN, min(SAMPLING_HZ_MAX, int(value)))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _positive_float(value: Any) -> Optional[float]:
    number = _as_number(value)
    return number if number is not None and number > 0 else None


def _non_negative_float(value: Any) -> Optional[float]:
    number = _as_number(value)
    return number if number is not None and number >= 0 else None


def _non_negative_ms(value: Any) -> Optional[int]:
    number = _as_number(value)
    return int(number) if number is not None and number >= 0 else None


def _positive_int(value: Any) -> Optional[int]:
    number = _as_number(value)
    return int(number) if number is not None and number >= 1 else None


def _sampling_hz(value: Any) -> Optional[int]:
    number = _as_number(value)
    return None if number is None else clamp_sampling_hz(round(number))


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', '1', 'yes', 'on'):
            return True
        if lowered in ('false', '0', 'no', 'off'):
            return False
    return None


def parse_ovc_mode(value: Any) -> Optional[OvcMode]:
    """Режим перевантаження: 0/1, 'latch' або 'auto'."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('auto', 'auto_retry', 'retry'):
            return OvcMode.AUTO_RETRY
        if lowered == 'latch':
            return OvcMode.LATCH
    number = _as_number(value)
    if number in (0, 1):
        return OvcMode(int(number))
    return None


_PARSERS = {
    'limit_current_a': _positive_float,
    'ovc_mode': parse_ovc_mode,
    'ovc_min_ms': _non_negative_ms,
    'ovc_retry_ms': _non_negative_ms,
    'temp_motor_c': _as_number,
    'temp_board_c': _as_number,
    'temp_ambient_c': _as_number,
    'temp_hyst_c': _non_negative_float,
    'latch_overtemp': _as_bool,
    'motor_vcc_v': _positive_float,
    'sampling_hz': _sampling_hz,
    'run_max_s': _positive_int,
    'current_zero_mv': _positive_float,
    'current_sens_mv_a': _positive_float,
    'current_input_scale': _positive_float,
}
