"""
Облік сесій роботи навантаження: енергія, пікові потужність і струм.
"""

from collections import deque
from typing import Deque, Iterable, List, Optional

from database.models import SessionRecord
from utils.logger import get_logger


SESSION_LOG_CAPACITY = 50


class SessionTracker:
    """Відкрита сесія та обмежений журнал завершених сесій."""

    def __init__(self, capacity: int = SESSION_LOG_CAPACITY, history: Optional[Iterable[SessionRecord]] = None):
        """
        Args:
            capacity: Максимальна кількість сесій у журналі
            history: Раніше збережені сесії (від найстарішої)
        """
        self.logger = get_logger()
        self.sessions: Deque[SessionRecord] = deque(history or (), maxlen=capacity)

        self.active = False
        self.start_ms = 0
        self.start_epoch = 0
        self.energy_wh = 0.0
        self.peak_power_w = 0.0
        self.peak_current_a = 0.0

    def open(self, now_ms: int, epoch: int) -> bool:
        """
        Відкрити сесію (реле false -> true).

        Returns:
            False якщо сесія вже відкрита
        """
        if self.active:
            return False
        self.active = True
        self.start_ms = now_ms
        self.start_epoch = epoch
        self.energy_wh = 0.0
        self.peak_power_w = 0.0
        self.peak_current_a = 0.0
        self.logger.info(f"Сесію розпочато (epoch={epoch})")
        return True

    def accumulate(self, power_w: Optional[float], current_a: Optional[float], dt_s: float) -> None:
        """Додати енергію такту та оновити піки."""
        if not self.active:
            return
        if power_w is not None:
            self.energy_wh += power_w * dt_s / 3600.0
            self.peak_power_w = max(self.peak_power_w, abs(power_w))
        if current_a is not None:
            self.peak_current_a = max(self.peak_current_a, abs(current_a))

    def close(self, now_ms: int, epoch: int, success: bool) -> Optional[SessionRecord]:
        """
        Завершити сесію (реле true -> false) та додати запис у журнал.

        Args:
            now_ms: Час завершення
            epoch: Епоха завершення
            success: True - штатна зупинка, False - аварійне вимкнення

        Returns:
            Запис сесії або None, якщо сесія не була відкрита
        """
        if not self.active:
            return None
        self.active = False

        record = SessionRecord(
            start_epoch=self.start_epoch,
            end_epoch=epoch,
            duration_s=max(0, now_ms - self.start_ms) // 1000,
            energy_wh=round(self.energy_wh, 2),
            peak_power_w=round(self.peak_power_w, 1),
            peak_current_a=round(self.peak_current_a, 2),
            success=success
        )
        self.sessions.append(record)
        self.logger.info(
            f"Сесію завершено: {record.duration_s} с, {record.energy_wh} Вт·год, "
            f"{'штатно' if success else 'аварійно'}"
        )
        return record

    def list_sessions(self) -> List[SessionRecord]:
        return list(self.sessions)

    def get_active(self) -> Optional[dict]:
        """Поточні показники відкритої сесії."""
        if not self.active:
            return None
        return {
            'start_epoch': self.start_epoch,
            'energy_wh': round(self.energy_wh, 3),
            'peak_power_w': round(self.peak_power_w, 1),
            'peak_current_a': round(self.peak_current_a, 2)
        }
