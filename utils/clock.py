"""
Джерело часу контролера: монотонні мілісекунди та епоха, яку можна виставити ззовні.
"""

import math
import time
from typing import Callable, Optional


class DeviceClock:
    """Монотонний годинник тактів плюс настроювана епоха (RTC)."""

    def __init__(
        self,
        monotonic: Callable[[], float] = time.monotonic,
        wall: Callable[[], float] = time.time
    ):
        """
        Args:
            monotonic: Функція монотонного часу в секундах
            wall: Функція системного часу (секунди від епохи)
        """
        self._monotonic = monotonic
        self._origin = monotonic()
        self._epoch_base = int(wall())
        self._epoch_set_at_ms = 0
        self.calibrated = False

    def now_ms(self) -> int:
        """Мілісекунди від створення годинника."""
        return int(round((self._monotonic() - self._origin) * 1000))

    def epoch(self) -> int:
        """Поточна епоха в секундах."""
        return self._epoch_base + (self.now_ms() - self._epoch_set_at_ms) // 1000

    def set_epoch(self, seconds) -> bool:
        """
        Виставити епоху від зовнішнього джерела.

        Args:
            seconds: Секунди від 1970-01-01 (повинні бути > 0)

        Returns:
            True якщо значення прийнято
        """
        value = _as_positive_int(seconds)
        if value is None:
            return False
        self._epoch_base = value
        self._epoch_set_at_ms = self.now_ms()
        self.calibrated = True
        return True


def _as_positive_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return int(number)
