"""
Генератор вимірів: один Sample на такт з урахуванням справності датчиків.
"""

from typing import List, Optional, Tuple

from controllers.device_config import DeviceConfig
from database.models import PendingEvent, Sample, WarnCode
from sensors.base import BaseMeasurementSource
from sensors.sensor_health import SensorHealthTracker


ADC_RECOVERY_MS = 2800


class MeasurementGenerator:
    """Перетворює сирі зчитування на вимір, підставляючи кешовані значення несправних датчиків."""

    def __init__(
        self,
        source: BaseMeasurementSource,
        motor_health: SensorHealthTracker,
        board_health: SensorHealthTracker,
        current_health: SensorHealthTracker
    ):
        self.source = source
        self.motor_health = motor_health
        self.board_health = board_health
        self.current_health = current_health
        self.last_current_mv: Optional[float] = None
        self._ambient_cache: Optional[float] = None
        self._pressure_cache: Optional[float] = None

    def generate(
        self,
        now_ms: int,
        dt_ms: int,
        relay_on: bool,
        config: DeviceConfig
    ) -> Tuple[Sample, List[PendingEvent]]:
        """
        Зчитати джерело та сформувати вимір такту.

        Args:
            now_ms: Час такту
            dt_ms: Час від попереднього такту
            relay_on: Стан реле до оцінки захисту
            config: Поточна конфігурація

        Returns:
            Кортеж (вимір без seq, попередження цього такту)
        """
        raw = self.source.measure(now_ms, dt_ms, relay_on)
        events: List[PendingEvent] = []

        current_a, saturated = config.current_from_mv(raw.current_mv)
        if saturated:
            events.extend(self.current_health.force_drop(
                now_ms, ADC_RECOVERY_MS, WarnCode.ADC_SATURATED, "ADC saturated"))
        if self.current_health.ok:
            self.last_current_mv = raw.current_mv
        current_a = self.current_health.read(current_a)

        # Плата, повітря і тиск належать одному датчику (BME)
        board_c = self.board_health.read(raw.board_c)
        if self.board_health.ok:
            self._ambient_cache = raw.ambient_c
            self._pressure_cache = raw.pressure_pa

        sample = Sample(
            ts_ms=now_ms,
            current_a=current_a,
            power_w=None if current_a is None else current_a * config.motor_vcc_v,
            motor_c=self.motor_health.read(raw.motor_c),
            board_c=board_c,
            ambient_c=self._ambient_cache,
            pressure_pa=self._pressure_cache
        )
        return sample, events
