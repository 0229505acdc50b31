"""
Машина станів захисту: перевантаження за струмом, перегрів, втрата датчика
струму, автоматичне відновлення та зовнішні команди керування реле.

Кожен перехід - чиста функція над незмінним DeviceState, тому логіку можна
перевіряти без годинника та без решти контролера.
"""

from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Callable, Dict, List, Optional, Tuple

from controllers.device_config import DeviceConfig, OvcMode
from database.models import EventLevel, PendingEvent, Sample


SENSOR_LOST_TRIP_MS = 2500


class DeviceMode(str, Enum):
    """Стан пристрою, похідний від DeviceState."""
    IDLE = 'Idle'
    RUNNING = 'Running'
    FAULT = 'Fault'


class FaultCode(IntEnum):
    """Причина аварії; значення збігаються з кодами помилок журналу."""
    NONE = 0
    OVERCURRENT = 1
    OVERTEMP = 2
    SENSOR_LOST = 5


FAULT_MESSAGES = {
    FaultCode.OVERCURRENT: "Overcurrent latched",
    FaultCode.OVERTEMP: "Overtemperature",
    FaultCode.SENSOR_LOST: "Current sensor lost",
}


@dataclass(frozen=True)
class DeviceState:
    """Стан реле та захисту. fault_latched завжди означає relay_on=False."""
    relay_on: bool = False
    desired_on: bool = False
    fault_latched: bool = False
    fault_code: FaultCode = FaultCode.NONE
    trip_ms: Optional[int] = None
    ovc_over_ms: int = 0
    adc_fail_ms: int = 0
    run_until_ms: Optional[int] = None

    @property
    def mode(self) -> DeviceMode:
        if self.fault_latched:
            return DeviceMode.FAULT
        if self.relay_on:
            return DeviceMode.RUNNING
        return DeviceMode.IDLE


@dataclass(frozen=True)
class Transition:
    """
    Результат одного кроку машини станів.

    Attributes:
        state: Новий стан
        events: Події для журналу
        success: Чи було вимкнення реле (якщо воно сталося) штатним, а не аварійним
    """
    state: DeviceState
    events: Tuple[PendingEvent, ...] = ()
    success: bool = True


def clear_fault_state(state: DeviceState) -> DeviceState:
    """Скинути аварію та всі накопичені тривалості."""
    return replace(
        state,
        fault_latched=False,
        fault_code=FaultCode.NONE,
        trip_ms=None,
        ovc_over_ms=0,
        adc_fail_ms=0
    )


def resolve_relay(state: DeviceState) -> DeviceState:
    """Привести реле у відповідність до desired_on з урахуванням аварії."""
    relay_on = state.desired_on and not state.fault_latched
    if relay_on == state.relay_on:
        return state
    return replace(state, relay_on=relay_on)


def trip(
    state: DeviceState,
    code: FaultCode,
    config: DeviceConfig,
    now_ms: int
) -> Tuple[DeviceState, List[PendingEvent]]:
    """
    Аварійне вимкнення. Повторне спрацювання при вже зафіксованій аварії нічого не змінює.

    Returns:
        Кортеж (новий стан, одна подія рівня помилки або порожній список)
    """
    if state.fault_latched:
        return state, []

    retry = code == FaultCode.OVERCURRENT and config.ovc_mode == OvcMode.AUTO_RETRY
    new_state = replace(
        state,
        fault_latched=True,
        fault_code=code,
        trip_ms=now_ms,
        relay_on=False,
        desired_on=state.desired_on if retry else False,
        run_until_ms=None
    )
    event = PendingEvent(EventLevel.ERROR, int(code), FAULT_MESSAGES.get(code, "Fault"), 'protection')
    return new_state, [event]


def _overheated(sample: Sample, config: DeviceConfig) -> bool:
    motor_hot = sample.motor_c is not None and sample.motor_c >= config.temp_motor_c
    board_hot = sample.board_c is not None and sample.board_c >= config.temp_board_c
    return motor_hot or board_hot


def _cooled_down(sample: Sample, config: DeviceConfig) -> bool:
    if sample.motor_c is None or sample.board_c is None:
        return False
    return (sample.motor_c < config.temp_motor_c - config.temp_hyst_c
            and sample.board_c < config.temp_board_c - config.temp_hyst_c)


def _auto_recover(state: DeviceState, sample: Sample, config: DeviceConfig, now_ms: int) -> DeviceState:
    if not state.fault_latched:
        return state

    if (state.fault_code == FaultCode.OVERCURRENT
            and config.ovc_mode == OvcMode.AUTO_RETRY
            and state.trip_ms is not None
            and now_ms - state.trip_ms >= config.ovc_retry_ms):
        return replace(clear_fault_state(state), desired_on=True)

    if (state.fault_code == FaultCode.OVERTEMP
            and not config.latch_overtemp
            and _cooled_down(sample, config)):
        return clear_fault_state(state)

    return state


def evaluate(
    state: DeviceState,
    sample: Sample,
    config: DeviceConfig,
    now_ms: int,
    dt_ms: int,
    current_ok: bool = True
) -> Transition:
    """
    Один такт машини станів захисту.

    Порядок: таймер роботи, автовідновлення, узгодження реле, накопичення
    тривалостей і правила захисту. Спрацювання захисту завжди останнє слово такту.

    Args:
        state: Поточний стан
        sample: Вимір цього такту
        config: Конфігурація
        now_ms: Час такту
        dt_ms: Тривалість такту
        current_ok: Чи справний канал вимірювання струму

    Returns:
        Transition з новим станом і подіями
    """
    events: List[PendingEvent] = []
    success = True

    if state.run_until_ms is not None and now_ms >= state.run_until_ms:
        state = replace(state, desired_on=False, run_until_ms=None)

    state = _auto_recover(state, sample, config, now_ms)
    state = resolve_relay(state)

    adc_fail_ms = 0 if current_ok else state.adc_fail_ms + dt_ms
    state = replace(state, adc_fail_ms=adc_fail_ms)

    if state.relay_on and not state.fault_latched:
        over = (config.limit_current_a > 0
                and sample.current_a is not None
                and sample.current_a > config.limit_current_a)
        state = replace(state, ovc_over_ms=state.ovc_over_ms + dt_ms if over else 0)

        code = FaultCode.NONE
        if over and state.ovc_over_ms >= config.ovc_min_ms:
            code = FaultCode.OVERCURRENT
        elif _overheated(sample, config):
            code = FaultCode.OVERTEMP
        elif not current_ok and state.adc_fail_ms >= SENSOR_LOST_TRIP_MS:
            code = FaultCode.SENSOR_LOST

        if code != FaultCode.NONE:
            state, trip_events = trip(state, code, config, now_ms)
            events.extend(trip_events)
            success = False

    return Transition(state, tuple(events), success)


def command_start(state: DeviceState, config: DeviceConfig, now_ms: int) -> Transition:
    if state.fault_latched and (config.ovc_mode == OvcMode.AUTO_RETRY or not config.latch_overtemp):
        state = clear_fault_state(state)
    return Transition(resolve_relay(replace(state, desired_on=True)))


def command_relay_on(state: DeviceState, config: DeviceConfig, now_ms: int) -> Transition:
    return Transition(resolve_relay(replace(state, desired_on=True)))


def command_stop(state: DeviceState, config: DeviceConfig, now_ms: int) -> Transition:
    return Transition(resolve_relay(replace(state, desired_on=False, run_until_ms=None)))


def command_clear_fault(state: DeviceState, config: DeviceConfig, now_ms: int) -> Transition:
    if not state.fault_latched:
        return Transition(state)
    state = replace(clear_fault_state(state), desired_on=False, run_until_ms=None)
    return Transition(resolve_relay(state))


def command_run_timer(state: DeviceState, seconds: int, now_ms: int) -> Transition:
    """Скинути аварію, увімкнути і запланувати зупинку через seconds секунд."""
    state = replace(
        clear_fault_state(state),
        desired_on=True,
        run_until_ms=now_ms + seconds * 1000
    )
    return Transition(resolve_relay(state))


COMMANDS: Dict[str, Callable[[DeviceState, DeviceConfig, int], Transition]] = {
    'start': command_start,
    'stop': command_stop,
    'relay_on': command_relay_on,
    'relay_off': command_stop,
    'clear_fault': command_clear_fault,
}


class ProtectionStateMachine:
    """Власник DeviceState; застосовує такти та команди до поточного стану."""

    def __init__(self, state: Optional[DeviceState] = None):
        self.state = state or DeviceState()

    def evaluate(
        self,
        sample: Sample,
        config: DeviceConfig,
        now_ms: int,
        dt_ms: int,
        current_ok: bool = True
    ) -> Transition:
        transition = evaluate(self.state, sample, config, now_ms, dt_ms, current_ok)
        self.state = transition.state
        return transition

    def command(self, action: str, config: DeviceConfig, now_ms: int) -> Optional[Transition]:
        """
        Виконати команду керування.

        Returns:
            Transition або None, якщо команда невідома
        """
        handler = COMMANDS.get(action)
        if handler is None:
            return None
        transition = handler(self.state, config, now_ms)
        self.state = transition.state
        return transition

    def run_timer(self, seconds: int, now_ms: int) -> Transition:
        transition = command_run_timer(self.state, seconds, now_ms)
        self.state = transition.state
        return transition
