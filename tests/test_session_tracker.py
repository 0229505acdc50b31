import pytest

from controllers.session_tracker import SessionTracker
from database.models import SessionRecord


def run_session(tracker, ticks, power_w, dt_s, current_a=None, start_ms=0, epoch=1000):
    tracker.open(start_ms, epoch)
    for _ in range(ticks):
        tracker.accumulate(power_w, current_a if current_a is not None else power_w / 12.0, dt_s)
    end_ms = start_ms + round(ticks * dt_s * 1000)
    return tracker.close(end_ms, epoch + end_ms // 1000, success=True)


class TestEnergy:

    @pytest.mark.parametrize('ticks, power_w, dt_s', [
        (100, 60.0, 0.02), (3000, 120.0, 0.1), (7, 33.3, 1.0),
    ])
    def test_energy_is_power_times_time(self, ticks, power_w, dt_s):
        tracker = SessionTracker()
        tracker.open(0, 1000)
        for _ in range(ticks):
            tracker.accumulate(power_w, 1.0, dt_s)
        assert tracker.energy_wh == pytest.approx(ticks * power_w * dt_s / 3600)
        assert tracker.peak_power_w == power_w

    def test_constant_120w_for_300s(self):
        record = run_session(SessionTracker(), ticks=15000, power_w=120.0, dt_s=0.02)
        assert record.energy_wh == pytest.approx(10.0)
        assert record.duration_s == 300
        assert record.start_epoch == 1000
        assert record.end_epoch == 1300
        assert record.peak_power_w == 120.0
        assert record.success

    def test_peaks_are_running_maxima(self):
        tracker = SessionTracker()
        tracker.open(0, 0)
        for power, current in ((10.0, 1.0), (250.0, 20.5), (30.0, 2.0)):
            tracker.accumulate(power, current, 0.02)
        record = tracker.close(60, 0, success=False)
        assert record.peak_power_w == 250.0
        assert record.peak_current_a == 20.5
        assert not record.success

    def test_accumulate_without_open_session_is_ignored(self):
        tracker = SessionTracker()
        tracker.accumulate(100.0, 8.0, 1.0)
        assert tracker.energy_wh == 0.0

    def test_values_rounded_on_close(self):
        tracker = SessionTracker()
        tracker.open(0, 0)
        tracker.accumulate(123.456, 10.2889, 1.0)
        record = tracker.close(1500, 1, success=True)
        assert record.energy_wh == 0.03
        assert record.peak_power_w == 123.5
        assert record.peak_current_a == 10.29
        assert record.duration_s == 1


class TestLifecycle:

    def test_session_without_ticks_is_still_recorded(self):
        tracker = SessionTracker()
        tracker.open(500, 10)
        record = tracker.close(500, 10, success=True)
        assert record == SessionRecord(10, 10, 0, 0.0, 0.0, 0.0, True)
        assert tracker.list_sessions() == [record]

    def test_double_open_is_noop(self):
        tracker = SessionTracker()
        assert tracker.open(0, 100)
        tracker.accumulate(36.0, 3.0, 100.0)
        assert not tracker.open(5000, 200)
        assert tracker.start_epoch == 100
        assert tracker.energy_wh == pytest.approx(1.0)

    def test_close_without_session_is_noop(self):
        tracker = SessionTracker()
        assert tracker.close(0, 0, success=True) is None
        assert tracker.list_sessions() == []

    def test_open_resets_accumulators(self):
        tracker = SessionTracker()
        run_session(tracker, ticks=10, power_w=100.0, dt_s=1.0)
        tracker.open(20000, 2000)
        assert tracker.energy_wh == 0.0
        assert tracker.peak_power_w == 0.0

    def test_log_bounded_to_fifty(self):
        tracker = SessionTracker()
        for i in range(55):
            tracker.open(i * 1000, i)
            tracker.close(i * 1000 + 500, i, success=True)
        sessions = tracker.list_sessions()
        assert len(sessions) == 50
        assert sessions[0].start_epoch == 5
        assert sessions[-1].start_epoch == 54

    def test_history_seeds_the_log(self):
        history = [SessionRecord(i, i + 1, 1, 0.1, 5.0, 0.4, True) for i in range(3)]
        tracker = SessionTracker(history=history)
        assert tracker.list_sessions() == history

    def test_active_snapshot(self):
        tracker = SessionTracker()
        assert tracker.get_active() is None
        tracker.open(0, 42)
        tracker.accumulate(72.0, 6.0, 50.0)
        assert tracker.get_active() == {
            'start_epoch': 42, 'energy_wh': 1.0, 'peak_power_w': 72.0, 'peak_current_a': 6.0,
        }
