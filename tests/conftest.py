import random

import pytest

from controllers.device_config import DeviceConfig
from controllers.device_controller import DeviceController
from database.models import Sample
from sensors.base import BaseMeasurementSource, RawReadings
from utils.clock import DeviceClock
from utils.logger import Logger


class FakeClock:
    """Ручний монотонний годинник: секунди, що змінюються лише через advance()."""

    def __init__(self, t: float = 1000.0):
        self._t = t

    def __call__(self) -> float:
        return self._t

    def advance_ms(self, ms: int) -> None:
        self._t += ms / 1000.0


class ScriptedRandom(random.Random):
    """uniform() повертає задані частки інтервалу, random() - задані значення."""

    def __init__(self, fractions=(0.0,), randoms=(0.5,)):
        super().__init__(0)
        self._fractions = list(fractions)
        self._randoms = list(randoms)
        self.uniform_calls = 0
        self.random_calls = 0

    def uniform(self, a, b):
        f = self._fractions[min(self.uniform_calls, len(self._fractions) - 1)]
        self.uniform_calls += 1
        return a + (b - a) * f

    def random(self):
        value = self._randoms[min(self.random_calls, len(self._randoms) - 1)]
        self.random_calls += 1
        return value


class FixedSource(BaseMeasurementSource):
    """Джерело з фіксованими значеннями, які тест змінює напряму."""

    def __init__(self, current_a=0.0, motor_c=30.0, board_c=28.0, ambient_c=26.0, pressure_pa=101325.0):
        super().__init__('fixed')
        self.current_a = current_a
        self.motor_c = motor_c
        self.board_c = board_c
        self.ambient_c = ambient_c
        self.pressure_pa = pressure_pa
        self.relay_history = []

    def initialize(self) -> bool:
        return True

    def measure(self, now_ms, dt_ms, relay_on):
        self.relay_history.append(relay_on)
        self.read_count += 1
        self.last_readings = RawReadings(
            current_mv=2500.0 + self.current_a * 100.0,
            motor_c=self.motor_c,
            board_c=self.board_c,
            ambient_c=self.ambient_c,
            pressure_pa=self.pressure_pa
        )
        return self.last_readings


def make_sample(ts_ms=0, current_a=0.0, motor_c=30.0, board_c=28.0, vcc=12.0):
    return Sample(
        ts_ms=ts_ms,
        current_a=current_a,
        power_w=None if current_a is None else current_a * vcc,
        motor_c=motor_c,
        board_c=board_c,
        ambient_c=None if board_c is None else board_c - 2,
        pressure_pa=101325.0
    )


@pytest.fixture(autouse=True, scope='session')
def quiet_logger():
    Logger().setup(log_file=None, enable_console=False)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def device_clock(fake_clock):
    return DeviceClock(monotonic=fake_clock, wall=lambda: 1_700_000_000)


@pytest.fixture
def source():
    return FixedSource()


@pytest.fixture
def make_controller(fake_clock, device_clock, source):
    """Фабрика контролера з ручним годинником і без випадкових збоїв датчиків."""

    def factory(config=None, database=None, glitches_enabled=False, rng=None):
        return DeviceController(
            source,
            config=config or DeviceConfig(),
            clock=device_clock,
            rng=rng or ScriptedRandom(),
            database=database,
            glitches_enabled=glitches_enabled
        )

    return factory


def run_ticks(controller, fake_clock, count, step_ms=20):
    """Виконати count тактів з кроком step_ms, повернути список вимірів."""
    samples = []
    for _ in range(count):
        fake_clock.advance_ms(step_ms)
        samples.append(controller.tick())
    return samples
