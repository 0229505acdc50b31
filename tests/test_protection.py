from dataclasses import replace

import pytest

from controllers.device_config import DeviceConfig, OvcMode
from controllers.protection import (
    SENSOR_LOST_TRIP_MS,
    DeviceMode,
    DeviceState,
    FaultCode,
    ProtectionStateMachine,
    command_clear_fault,
    command_relay_on,
    command_run_timer,
    command_start,
    command_stop,
    evaluate,
)
from database.models import EventLevel

from conftest import make_sample


RUNNING = DeviceState(relay_on=True, desired_on=True)


def make_config(**overrides):
    return replace(DeviceConfig(), **overrides)


def run_until_trip(machine, config, current_a, dt_ms, max_ticks=100, current_ok=True):
    """Повертає номер такту (від 1), на якому спрацював захист, або None."""
    now = 0
    for tick in range(1, max_ticks + 1):
        now += dt_ms
        machine.evaluate(make_sample(now, current_a=current_a), config, now, dt_ms, current_ok)
        if machine.state.fault_latched:
            return tick
    return None


class TestOvercurrent:

    def test_trips_at_tick_where_duration_reaches_min(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=40)
        machine = ProtectionStateMachine(RUNNING)
        assert run_until_trip(machine, config, 15.0, dt_ms=10) == 4
        assert machine.state.fault_code == FaultCode.OVERCURRENT
        assert machine.state.mode == DeviceMode.FAULT

    @pytest.mark.parametrize('min_ms, dt_ms, expected_tick', [
        (40, 10, 4), (45, 10, 5), (20, 20, 1), (100, 30, 4),
    ])
    def test_never_trips_before_min_duration(self, min_ms, dt_ms, expected_tick):
        config = make_config(limit_current_a=10.0, ovc_min_ms=min_ms)
        machine = ProtectionStateMachine(RUNNING)
        assert run_until_trip(machine, config, 12.0, dt_ms=dt_ms) == expected_tick

    def test_accumulator_resets_when_current_drops(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=40)
        state = RUNNING
        now = 0
        for current in (15.0, 15.0, 15.0, 9.0, 15.0, 15.0, 15.0):
            now += 10
            state = evaluate(state, make_sample(now, current_a=current), config, now, 10).state
        assert not state.fault_latched
        assert state.ovc_over_ms == 30

    def test_current_at_limit_is_not_over(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0)
        transition = evaluate(RUNNING, make_sample(10, current_a=10.0), config, 10, 10)
        assert not transition.state.fault_latched

    def test_trip_emits_single_error_event(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=10)
        transition = evaluate(RUNNING, make_sample(10, current_a=20.0), config, 10, 10)
        assert len(transition.events) == 1
        event = transition.events[0]
        assert event.level == EventLevel.ERROR
        assert event.code == 1
        assert event.source == 'protection'
        assert transition.success is False

    def test_not_evaluated_while_relay_off(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0)
        transition = evaluate(DeviceState(), make_sample(10, current_a=20.0), config, 10, 10)
        assert not transition.state.fault_latched
        assert transition.events == ()


class TestOvercurrentRecovery:

    def test_latch_mode_forces_desired_off_and_stays_latched(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0, ovc_mode=OvcMode.LATCH)
        state = evaluate(RUNNING, make_sample(0, current_a=20.0), config, 0, 10).state
        assert state.fault_latched and not state.desired_on and not state.relay_on

        later = evaluate(state, make_sample(60000, current_a=0.0), config, 60000, 10).state
        assert later.fault_latched

    def test_auto_retry_clears_at_first_tick_after_retry_interval(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0,
                             ovc_mode=OvcMode.AUTO_RETRY, ovc_retry_ms=5000)
        state = evaluate(RUNNING, make_sample(1000, current_a=20.0), config, 1000, 10).state
        assert state.fault_latched and state.desired_on and not state.relay_on
        assert state.trip_ms == 1000

        state = evaluate(state, make_sample(5990, current_a=0.0), config, 5990, 10).state
        assert state.fault_latched

        state = evaluate(state, make_sample(6000, current_a=0.0), config, 6000, 10).state
        assert not state.fault_latched
        assert state.desired_on
        assert state.relay_on
        assert state.fault_code == FaultCode.NONE
        assert state.trip_ms is None

    def test_retrip_while_latched_is_noop(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0)
        state = evaluate(RUNNING, make_sample(0, current_a=20.0), config, 0, 10).state
        transition = evaluate(state, make_sample(10, current_a=20.0), config, 10, 10)
        assert transition.events == ()
        assert transition.state.trip_ms == 0


class TestOvertemperature:

    def test_motor_limit_trips_immediately(self):
        config = make_config(temp_motor_c=85.0)
        transition = evaluate(RUNNING, make_sample(10, motor_c=85.0), config, 10, 10)
        assert transition.state.fault_code == FaultCode.OVERTEMP
        assert not transition.state.desired_on

    def test_board_limit_trips_immediately(self):
        config = make_config(temp_board_c=70.0)
        transition = evaluate(RUNNING, make_sample(10, board_c=71.0), config, 10, 10)
        assert transition.state.fault_code == FaultCode.OVERTEMP

    def test_auto_clear_below_hysteresis_when_not_latching(self):
        config = make_config(temp_motor_c=85.0, temp_board_c=70.0, temp_hyst_c=5.0, latch_overtemp=False)
        state = evaluate(RUNNING, make_sample(0, motor_c=90.0), config, 0, 10).state
        assert state.fault_latched

        state = evaluate(state, make_sample(10, motor_c=80.0, board_c=40.0), config, 10, 10).state
        assert state.fault_latched

        state = evaluate(state, make_sample(20, motor_c=79.9, board_c=40.0), config, 20, 10).state
        assert not state.fault_latched
        assert state.mode == DeviceMode.IDLE

    def test_board_must_also_cool_down(self):
        config = make_config(latch_overtemp=False)
        state = evaluate(RUNNING, make_sample(0, board_c=75.0), config, 0, 10).state
        state = evaluate(state, make_sample(10, motor_c=30.0, board_c=66.0), config, 10, 10).state
        assert state.fault_latched

    def test_latching_overtemp_needs_explicit_clear(self):
        config = make_config(latch_overtemp=True)
        state = evaluate(RUNNING, make_sample(0, motor_c=90.0), config, 0, 10).state
        state = evaluate(state, make_sample(10, motor_c=20.0, board_c=20.0), config, 10, 10).state
        assert state.fault_latched
        assert not command_clear_fault(state, config, 20).state.fault_latched


class TestSensorLoss:

    def test_trips_after_threshold_of_unhealthy_current_sensor(self):
        config = make_config()
        machine = ProtectionStateMachine(RUNNING)
        tick = run_until_trip(machine, config, 5.0, dt_ms=100, current_ok=False)
        assert tick == SENSOR_LOST_TRIP_MS // 100
        assert machine.state.fault_code == FaultCode.SENSOR_LOST

    def test_accumulator_resets_when_sensor_recovers(self):
        config = make_config()
        state = RUNNING
        for now in range(100, 2500, 100):
            state = evaluate(state, make_sample(now, current_a=5.0), config, now, 100, current_ok=False).state
        state = evaluate(state, make_sample(2500, current_a=5.0), config, 2500, 100, current_ok=True).state
        assert state.adc_fail_ms == 0
        assert not state.fault_latched

    def test_needs_explicit_clear(self):
        config = make_config(ovc_mode=OvcMode.AUTO_RETRY, ovc_retry_ms=0)
        state = evaluate(replace(RUNNING, adc_fail_ms=2490), make_sample(0, current_a=5.0),
                         config, 0, 10, current_ok=False).state
        assert state.fault_code == FaultCode.SENSOR_LOST
        state = evaluate(state, make_sample(60000, current_a=5.0), config, 60000, 10).state
        assert state.fault_latched


class TestRunTimer:

    def test_expiry_turns_relay_off_as_commanded_stop(self):
        config = make_config()
        state = command_run_timer(DeviceState(), 2, 1000).state
        assert state.relay_on and state.run_until_ms == 3000

        transition = evaluate(state, make_sample(2990), config, 2990, 10)
        assert transition.state.relay_on

        transition = evaluate(transition.state, make_sample(3000), config, 3000, 10)
        assert not transition.state.relay_on
        assert not transition.state.desired_on
        assert transition.state.run_until_ms is None
        assert transition.success

    def test_later_call_replaces_pending_timer(self):
        state = command_run_timer(DeviceState(), 10, 0).state
        state = command_run_timer(state, 3, 1000).state
        assert state.run_until_ms == 4000

    def test_run_timer_clears_fault(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.SENSOR_LOST, trip_ms=0, adc_fail_ms=2600)
        state = command_run_timer(latched, 5, 100).state
        assert not state.fault_latched
        assert state.relay_on
        assert state.adc_fail_ms == 0

    def test_trip_cancels_run_timer(self):
        config = make_config(limit_current_a=10.0, ovc_min_ms=0)
        state = command_run_timer(DeviceState(), 60, 0).state
        state = evaluate(state, make_sample(10, current_a=20.0), config, 10, 10).state
        assert state.run_until_ms is None


class TestCommands:

    def test_start_energizes_relay(self):
        transition = command_start(DeviceState(), make_config(), 0)
        assert transition.state.relay_on
        assert transition.state.mode == DeviceMode.RUNNING

    def test_stop_cancels_timer_and_reports_success(self):
        state = command_run_timer(DeviceState(), 30, 0).state
        transition = command_stop(state, make_config(), 10)
        assert not transition.state.relay_on
        assert transition.state.run_until_ms is None
        assert transition.success

    def test_start_clears_fault_in_auto_retry_mode(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.OVERCURRENT, trip_ms=0)
        config = make_config(ovc_mode=OvcMode.AUTO_RETRY, latch_overtemp=True)
        state = command_start(latched, config, 10).state
        assert not state.fault_latched and state.relay_on

    def test_start_clears_fault_when_overtemp_not_latching(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.OVERTEMP, trip_ms=0)
        config = make_config(ovc_mode=OvcMode.LATCH, latch_overtemp=False)
        assert command_start(latched, config, 10).state.relay_on

    def test_start_keeps_latched_fault_otherwise(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.OVERCURRENT, trip_ms=0)
        config = make_config(ovc_mode=OvcMode.LATCH, latch_overtemp=True)
        state = command_start(latched, config, 10).state
        assert state.fault_latched
        assert state.desired_on
        assert not state.relay_on

    def test_relay_on_never_clears_fault(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.OVERCURRENT, trip_ms=0)
        config = make_config(ovc_mode=OvcMode.AUTO_RETRY, latch_overtemp=False)
        state = command_relay_on(latched, config, 10).state
        assert state.fault_latched and not state.relay_on

    def test_clear_fault_when_not_latched_is_noop(self):
        state = DeviceState(relay_on=True, desired_on=True, run_until_ms=5000)
        transition = command_clear_fault(state, make_config(), 10)
        assert transition.state == state
        assert transition.events == ()

    def test_clear_fault_resets_accumulators_and_desired(self):
        latched = DeviceState(fault_latched=True, fault_code=FaultCode.OVERCURRENT, trip_ms=5,
                              ovc_over_ms=40, adc_fail_ms=100, desired_on=True)
        state = command_clear_fault(latched, make_config(), 10).state
        assert state == DeviceState()

    def test_unknown_command_returns_none(self):
        machine = ProtectionStateMachine()
        assert machine.command('launch', make_config(), 0) is None
        assert machine.state == DeviceState()


class TestInvariants:

    @pytest.mark.parametrize('current, motor, ok', [
        (30.0, 30.0, True), (5.0, 95.0, True), (5.0, 30.0, False),
    ])
    def test_latched_fault_never_leaves_relay_on(self, current, motor, ok):
        config = make_config(ovc_mode=OvcMode.AUTO_RETRY, ovc_min_ms=0, ovc_retry_ms=50)
        machine = ProtectionStateMachine(RUNNING)
        now = 0
        for _ in range(400):
            now += 10
            machine.evaluate(make_sample(now, current_a=current, motor_c=motor), config, now, 10, ok)
            assert not (machine.state.fault_latched and machine.state.relay_on)
