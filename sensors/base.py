"""
Базовий клас для джерел сирих вимірів (драйвери або симуляція).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, NamedTuple, Optional


class RawReadings(NamedTuple):
    """Сирі значення одного зчитування всіх каналів."""
    current_mv: float
    motor_c: Optional[float]
    board_c: Optional[float]
    ambient_c: Optional[float]
    pressure_pa: Optional[float]


class BaseMeasurementSource(ABC):
    """Абстрактне джерело сирих вимірів струму, температур і тиску."""

    def __init__(self, name: str, config: Optional[Dict[str, Any]] = None):
        """
        Ініціалізація джерела.

        Args:
            name: Назва джерела
            config: Конфігурація джерела
        """
        self.name = name
        self.config = config or {}
        self.last_readings: Optional[RawReadings] = None
        self.read_count = 0

    @abstractmethod
    def initialize(self) -> bool:
        """
        Ініціалізувати джерело.

        Returns:
            True якщо ініціалізація успішна
        """

    @abstractmethod
    def measure(self, now_ms: int, dt_ms: int, relay_on: bool) -> RawReadings:
        """
        Зчитати всі канали на такті.

        Args:
            now_ms: Час такту
            dt_ms: Час від попереднього такту
            relay_on: Чи увімкнене реле навантаження

        Returns:
            Сирі значення
        """

    def get_status(self) -> Dict[str, Any]:
        """
        Отримати статус джерела.

        Returns:
            Словник зі статусом
        """
        return {
            'name': self.name,
            'type': self.__class__.__name__,
            'read_count': self.read_count,
            'last_readings': self.last_readings._asdict() if self.last_readings else None
        }
