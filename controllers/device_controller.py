"""
Контролер пристрою: один об'єкт на пристрій, що виконує такти керування,
команди, зміни конфігурації та запити телеметрії.

Такт, команда і запит виконуються під одним замком, тому жоден запит не
бачить частково застосованого такту.
"""

import math
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from controllers.device_config import DeviceConfig
from controllers.protection import COMMANDS, DeviceState, ProtectionStateMachine, Transition
from controllers.session_tracker import SESSION_LOG_CAPACITY, SessionTracker
from database.db import Database
from database.models import ErrorCode, EventLevel, Sample, SessionRecord, WarnCode
from sensors.base import BaseMeasurementSource
from sensors.measurement import MeasurementGenerator
from sensors.sensor_health import SensorHealthTracker
from telemetry.event_log import EventLog
from telemetry.ring_log import QueryResult
from telemetry.sample_log import SampleLog
from telemetry.sync_service import SyncService
from utils.clock import DeviceClock
from utils.logger import get_logger


DEVICE_NAME = 'motor-relay-controller'
VERSION = '1.0.0'

CALIBRATION_KEYS = {
    'zero_mv': 'current_zero_mv',
    'sens_mv_a': 'current_sens_mv_a',
    'input_scale': 'current_input_scale',
}


@dataclass
class CommandResult:
    """Результат виконання команди керування."""
    accepted: bool
    action: str
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Конвертувати в словник."""
        result = {'ok': self.accepted, 'action': self.action}
        if self.error:
            result['error'] = self.error
        result.update(self.data)
        return result


class DeviceController:
    """Контролер реле двигуна з захистом, обліком сесій і журналами телеметрії."""

    def __init__(
        self,
        source: BaseMeasurementSource,
        config: Optional[DeviceConfig] = None,
        clock: Optional[DeviceClock] = None,
        rng: Optional[random.Random] = None,
        database: Optional[Database] = None,
        glitches_enabled: bool = True
    ):
        """
        Ініціалізація контролера.

        Args:
            source: Джерело сирих вимірів
            config: Конфігурація за замовчуванням (збережена в базі має пріоритет)
            clock: Джерело часу
            rng: Генератор випадкових чисел для розкладу збоїв датчиків
            database: Сховище конфігурації та сесій (опціонально)
            glitches_enabled: Чи моделювати випадкові збої датчиків температури
        """
        self.logger = get_logger()
        self.clock = clock or DeviceClock()
        self.database = database
        self._lock = threading.RLock()
        rng = rng or random.Random()

        self.config = config or DeviceConfig()
        if database is not None:
            self.config, restored = self.config.apply_update(database.load_config())
            if restored:
                self.logger.info(f"Відновлено збережену конфігурацію: {', '.join(restored)}")

        self.started_ms = self.clock.now_ms()
        self.motor_health = SensorHealthTracker(
            'ds18', WarnCode.DS18_MISSING, self.started_ms, rng,
            drop_window_ms=(8000, 16000),
            glitch_interval_ms=(45000, 120000) if glitches_enabled else None,
            first_glitch_ms=45000,
            absent_message="DS18 absent"
        )
        self.board_health = SensorHealthTracker(
            'bme', WarnCode.BME_MISSING, self.started_ms, rng,
            drop_window_ms=(5000, 12000),
            glitch_interval_ms=(70000, 160000) if glitches_enabled else None,
            first_glitch_ms=90000,
            absent_message="BME absent"
        )
        self.current_health = SensorHealthTracker(
            'adc', WarnCode.ADC_SATURATED, self.started_ms, rng,
            glitch_interval_ms=None,
            absent_message="ADC saturated"
        )
        self.generator = MeasurementGenerator(source, self.motor_health, self.board_health, self.current_health)

        self.protection = ProtectionStateMachine()
        history = database.get_sessions(SESSION_LOG_CAPACITY) if database is not None else []
        self.sessions = SessionTracker(SESSION_LOG_CAPACITY, history)
        self.sample_log = SampleLog()
        self.event_log = EventLog()
        self.sync = SyncService(self.sample_log, self.event_log)

        self._last_tick_ms: Optional[int] = None

        if not self.clock.calibrated:
            self.event_log.append(self.started_ms, EventLevel.WARNING, WarnCode.RTC_NOT_SET,
                                  "RTC not calibrated", 'rtc')

    @property
    def state(self) -> DeviceState:
        return self.protection.state

    def _trackers(self) -> List[SensorHealthTracker]:
        return [self.motor_health, self.board_health, self.current_health]

    def tick(self, now_ms: Optional[int] = None) -> Sample:
        """
        Виконати один такт керування.

        Args:
            now_ms: Час такту (за замовчуванням - з годинника)

        Returns:
            Записаний у журнал вимір
        """
        with self._lock:
            now = self.clock.now_ms() if now_ms is None else now_ms
            config = self.config
            if self._last_tick_ms is None:
                dt_ms = config.period_ms
            else:
                dt_ms = max(0, now - self._last_tick_ms)
            self._last_tick_ms = now

            pending = []
            for tracker in self._trackers():
                pending.extend(tracker.tick(now))

            sample, warnings = self.generator.generate(now, dt_ms, self.state.relay_on, config)
            pending.extend(warnings)
            sample = self.sample_log.append(sample)

            if self.sessions.active and not self.state.fault_latched:
                self.sessions.accumulate(sample.power_w, sample.current_a, dt_ms / 1000.0)

            before = self.state
            transition = self.protection.evaluate(sample, config, now, dt_ms, self.current_health.ok)
            pending.extend(transition.events)
            self.event_log.extend(now, pending)
            self._track_relay(before, transition, now)
            return sample

    def _track_relay(self, before: DeviceState, transition: Transition, now_ms: int) -> None:
        after = transition.state
        if not before.relay_on and after.relay_on:
            self.logger.info("Реле увімкнено")
            self.sessions.open(now_ms, self.clock.epoch())
        elif before.relay_on and not after.relay_on:
            self.logger.info("Реле вимкнено" if transition.success else "Реле вимкнено захистом")
            record = self.sessions.close(now_ms, self.clock.epoch(), transition.success)
            if record is not None:
                self._persist_session(record, now_ms)

    def _persist_session(self, record: SessionRecord, now_ms: int) -> None:
        if self.database is None:
            return
        if not self.database.save_session(record):
            self.event_log.append(now_ms, EventLevel.ERROR, ErrorCode.SESSION_WRITE,
                                  "Session write failed", 'storage')
            return
        self.database.cleanup_old_sessions(SESSION_LOG_CAPACITY)

    def execute(self, action: str, payload: Optional[Dict[str, Any]] = None) -> CommandResult:
        """
        Виконати команду транспортного шару.

        Args:
            action: Назва команди
            payload: Параметри команди

        Returns:
            CommandResult; невідома команда відхиляється без змін стану та без подій
        """
        payload = payload or {}
        with self._lock:
            now = self.clock.now_ms()

            if action in COMMANDS:
                before = self.state
                transition = self.protection.command(action, self.config, now)
                self._track_relay(before, transition, now)
                self.logger.info(f"Команда '{action}' виконана, стан: {self.state.mode.value}")
                return CommandResult(True, action, data={'state': self.state.mode.value})

            handlers = {
                'run_timer': self._run_timer,
                'config_update': self._config_update,
                'calibration_update': self._calibration_update,
                'epoch_set': self._epoch_set,
            }
            handler = handlers.get(action)
            if handler is None:
                self.logger.warning(f"Невідома команда: {action!r}")
                return CommandResult(False, str(action), 'unknown_action')
            return handler(payload, now)

    def _run_timer(self, payload: Dict[str, Any], now_ms: int) -> CommandResult:
        seconds = _positive_number(payload.get('seconds'))
        if seconds is None:
            return CommandResult(False, 'run_timer', 'invalid_seconds')
        seconds = min(int(seconds), self.config.run_max_s)
        if seconds < 1:
            return CommandResult(False, 'run_timer', 'invalid_seconds')

        before = self.state
        transition = self.protection.run_timer(seconds, now_ms)
        self._track_relay(before, transition, now_ms)
        self.logger.info(f"Таймер роботи: {seconds} с")
        return CommandResult(True, 'run_timer', data={'seconds': seconds, 'state': self.state.mode.value})

    def _config_update(self, payload: Dict[str, Any], now_ms: int) -> CommandResult:
        applied = self._apply_config(payload, now_ms)
        return CommandResult(True, 'config_update', data={'applied': applied})

    def _calibration_update(self, payload: Dict[str, Any], now_ms: int) -> CommandResult:
        mode = payload.get('action')
        if mode == 'current_zero':
            if self.generator.last_current_mv is None:
                return CommandResult(False, 'calibration_update', 'no_reading')
            update = {'current_zero_mv': self.generator.last_current_mv}
        elif mode == 'current_sensitivity':
            update = {CALIBRATION_KEYS[key]: value for key, value in payload.items() if key in CALIBRATION_KEYS}
        else:
            return CommandResult(False, 'calibration_update', 'unknown_calibration')

        applied = self._apply_config(update, now_ms)
        if not applied:
            return CommandResult(False, 'calibration_update', 'invalid_calibration')
        return CommandResult(True, 'calibration_update', data={'applied': applied})

    def _epoch_set(self, payload: Dict[str, Any], now_ms: int) -> CommandResult:
        if not self.clock.set_epoch(payload.get('epoch')):
            return CommandResult(False, 'epoch_set', 'invalid_epoch')
        if self.event_log.last_warning == WarnCode.RTC_NOT_SET:
            self.event_log.last_warning = None
        self.logger.info(f"Епоху встановлено: {self.clock.epoch()}")
        return CommandResult(True, 'epoch_set', data={'epoch': self.clock.epoch()})

    def _apply_config(self, partial: Dict[str, Any], now_ms: int) -> List[str]:
        new_config, applied = self.config.apply_update(partial)
        if not applied:
            return []
        self.config = new_config
        self.logger.info(f"Конфігурацію оновлено: {', '.join(applied)}")
        if self.database is not None and not self.database.save_config(new_config.to_dict()):
            self.event_log.append(now_ms, EventLevel.ERROR, ErrorCode.CONFIG_WRITE,
                                  "Config write failed", 'storage')
        return applied

    def report_auth_failure(self, missing: bool) -> None:
        """Записати попередження про відхилений запит: облікові дані відсутні або невірні."""
        with self._lock:
            if missing:
                code, message = WarnCode.CREDENTIALS_MISSING, "Credentials missing"
            else:
                code, message = WarnCode.CREDENTIALS_INVALID, "Credentials invalid"
            self.event_log.append(self.clock.now_ms(), EventLevel.WARNING, code, message, 'web')

    def get_config(self) -> Dict[str, Any]:
        with self._lock:
            return self.config.to_dict()

    def set_config(self, partial: Dict[str, Any]) -> List[str]:
        """Застосувати часткове оновлення конфігурації; повертає застосовані ключі."""
        with self._lock:
            return self._apply_config(partial, self.clock.now_ms())

    def query_samples(self, since: Any = 0, max_items: Any = None) -> QueryResult:
        with self._lock:
            return self.sync.query_samples(since, max_items)

    def query_events(self, since: Any = 0, max_items: Any = None) -> QueryResult:
        with self._lock:
            return self.sync.query_events(since, max_items)

    def list_sessions(self) -> List[SessionRecord]:
        with self._lock:
            return self.sessions.list_sessions()

    def get_status(self) -> Dict[str, Any]:
        """
        Поточний стан пристрою, останній вимір і справність датчиків.

        Returns:
            Словник зі станом
        """
        with self._lock:
            now = self.clock.now_ms()
            state = self.state
            latest = self.sample_log.latest()

            run_remaining_s = None
            if state.run_until_ms is not None:
                run_remaining_s = max(0, math.ceil((state.run_until_ms - now) / 1000))

            return {
                'state': state.mode.value,
                'relay_on': state.relay_on,
                'desired_on': state.desired_on,
                'fault_latched': state.fault_latched,
                'fault_code': int(state.fault_code),
                'trip_age_ms': now - state.trip_ms if state.trip_ms is not None else None,
                'run_remaining_s': run_remaining_s,
                'sample': latest.to_dict() if latest else None,
                'sample_age_ms': now - latest.ts_ms if latest else None,
                'sensors': {
                    'ds18_ok': self.motor_health.ok,
                    'bme_ok': self.board_health.ok,
                    'adc_ok': self.current_health.ok,
                },
                'session': self.sessions.get_active(),
                'last_warning': self.event_log.last_warning,
                'last_error': self.event_log.last_error,
                'epoch': self.clock.epoch(),
                'rtc_calibrated': self.clock.calibrated,
                'uptime_s': (now - self.started_ms) // 1000
            }

    def get_info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'name': DEVICE_NAME,
                'version': VERSION,
                'uptime_s': (self.clock.now_ms() - self.started_ms) // 1000,
                'sampling_hz': self.config.sampling_hz,
                'period_ms': self.config.period_ms,
                'sample_capacity': self.sample_log.capacity,
                'event_capacity': self.event_log.capacity,
                'session_capacity': self.sessions.sessions.maxlen,
                'source': self.generator.source.get_status()
            }


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number > 0 else None
