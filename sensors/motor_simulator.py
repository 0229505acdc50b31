"""
Симуляція двигуна під навантаженням: нагрів, струм з пульсаціями та кидками,
температури двигуна і плати, атмосферний тиск.
"""

import math
import random
from typing import Any, Dict, Optional

from sensors.base import BaseMeasurementSource, RawReadings


SENSOR_ZERO_MV = 2500.0
SENSOR_MV_PER_A = 100.0

HEAT_RATE_ON = 0.85
HEAT_RATE_OFF = -1.2
HEAT_MAX = 120.0

CURRENT_MAX_A = 26.0
SPIKE_PROBABILITY = 0.006


class SimulatedMotor(BaseMeasurementSource):
    """Джерело вимірів, що моделює двигун замість реальних драйверів."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, rng: Optional[random.Random] = None):
        super().__init__('motor_sim', config)
        self.rng = rng or random.Random(self.config.get('seed'))
        self.heat = 0.0
        self.t = 0.0
        self.motor_c = 28.0
        self.board_c = 26.0

    def initialize(self) -> bool:
        return True

    def _noise(self, amplitude: float) -> float:
        return self.rng.uniform(-amplitude, amplitude)

    def measure(self, now_ms: int, dt_ms: int, relay_on: bool) -> RawReadings:
        dt_s = max(0, dt_ms) / 1000.0
        self.t += dt_s

        rate = HEAT_RATE_ON if relay_on else HEAT_RATE_OFF
        self.heat = max(0.0, min(HEAT_MAX, self.heat + rate * dt_s))

        base = 10.5 if relay_on else 0.2
        current = base + 4.5 * math.sin(self.t * 0.9) * (1 if relay_on else 0.05) + self._noise(0.4)
        if relay_on and self.rng.random() < SPIKE_PROBABILITY:
            current += self.rng.uniform(8, 14)
        current = max(0.0, min(CURRENT_MAX_A, current))

        # Температури наближаються до цільових з інерцією
        motor_target = 28 + self.heat * 0.7 + math.sin(self.t * 0.05) * 0.6
        board_target = 26 + self.heat * 0.25 + math.sin(self.t * 0.03) * 0.4
        lag = min(1.0, dt_s * 0.5)
        self.motor_c += (motor_target - self.motor_c) * lag + self._noise(0.05)
        self.board_c += (board_target - self.board_c) * lag + self._noise(0.05)

        readings = RawReadings(
            current_mv=SENSOR_ZERO_MV + current * SENSOR_MV_PER_A,
            motor_c=self.motor_c,
            board_c=self.board_c,
            ambient_c=self.board_c - 2,
            pressure_pa=101325 + math.sin(self.t * 0.04) * 220
        )
        self.last_readings = readings
        self.read_count += 1
        return readings
