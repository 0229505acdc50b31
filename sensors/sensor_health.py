"""
Відстеження справності датчика: періодичні збої, вікно відновлення та
повернення останнього коректного значення, поки датчик недоступний.
"""

import random
from typing import Any, Dict, List, Optional, Tuple

from database.models import EventLevel, PendingEvent, WarnCode
from utils.logger import get_logger


class SensorHealthTracker:
    """Стан справності одного фізичного датчика."""

    def __init__(
        self,
        name: str,
        absent_code: int,
        start_ms: int = 0,
        rng: Optional[random.Random] = None,
        drop_window_ms: Tuple[int, int] = (8000, 16000),
        glitch_interval_ms: Optional[Tuple[int, int]] = (45000, 120000),
        first_glitch_ms: int = 45000,
        initial_value: Optional[float] = None,
        absent_message: Optional[str] = None,
        source: Optional[str] = None
    ):
        """
        Ініціалізація трекера.

        Args:
            name: Назва датчика (ds18, bme, adc)
            absent_code: Код попередження при втраті датчика
            start_ms: Час створення (мс)
            rng: Генератор випадкових чисел (для тестів - детермінований)
            drop_window_ms: Межі тривалості збою (мін, макс)
            glitch_interval_ms: Межі інтервалу до наступного збою; None - без випадкових збоїв
            first_glitch_ms: Затримка першого збою від start_ms
            initial_value: Значення кешу до першого коректного зчитування
            absent_message: Текст попередження про втрату датчика
            source: Джерело подій (за замовчуванням - name)
        """
        self.name = name
        self.absent_code = absent_code
        self.absent_message = absent_message or f"{name.upper()} absent"
        self.source = source or name
        self.rng = rng or random.Random()
        self.drop_window_ms = drop_window_ms
        self.glitch_interval_ms = glitch_interval_ms
        self.logger = get_logger()

        self.ok = True
        self.cached_value: Optional[float] = initial_value
        self.drop_until_ms: Optional[int] = None
        self.next_glitch_ms: Optional[int] = (
            start_ms + first_glitch_ms if glitch_interval_ms is not None else None
        )

    def _rand_ms(self, bounds: Tuple[int, int]) -> int:
        low, high = bounds
        return int(self.rng.uniform(low, high))

    def tick(self, now_ms: int) -> List[PendingEvent]:
        """
        Оновити стан справності на такті now_ms.

        Returns:
            Події, що виникли на цьому такті (порожній список, якщо нічого)
        """
        events: List[PendingEvent] = []

        if self.ok and self.next_glitch_ms is not None and now_ms >= self.next_glitch_ms:
            events = self._drop(now_ms, self._rand_ms(self.drop_window_ms),
                                self.absent_code, self.absent_message)
            self.next_glitch_ms = now_ms + self._rand_ms(self.glitch_interval_ms)

        if not self.ok and self.drop_until_ms is not None and now_ms >= self.drop_until_ms:
            self.ok = True
            self.drop_until_ms = None
            self.logger.info(f"Датчик {self.name} знову доступний")

        return events

    def force_drop(self, now_ms: int, duration_ms: int, code: int, message: str) -> List[PendingEvent]:
        """
        Примусово позначити датчик несправним (наприклад, при насиченні АЦП).

        Якщо датчик уже несправний, нічого не змінюється.
        """
        if not self.ok:
            return []
        return self._drop(now_ms, duration_ms, code, message)

    def _drop(self, now_ms: int, duration_ms: int, code: int, message: str) -> List[PendingEvent]:
        self.ok = False
        self.drop_until_ms = now_ms + duration_ms
        self.logger.debug(f"Датчик {self.name} недоступний до {self.drop_until_ms} мс")
        return [
            PendingEvent(EventLevel.WARNING, code, message, self.source),
            PendingEvent(EventLevel.WARNING, WarnCode.CACHE_USED, "Cached value in use", self.source),
        ]

    def read(self, raw_value: Optional[float]) -> Optional[float]:
        """Свіже значення, якщо датчик справний, інакше останнє коректне."""
        if not self.ok:
            return self.cached_value
        if raw_value is not None:
            self.cached_value = raw_value
        return raw_value

    def get_status(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'ok': self.ok,
            'cached_value': self.cached_value,
            'drop_until_ms': self.drop_until_ms,
            'next_glitch_ms': self.next_glitch_ms
        }
