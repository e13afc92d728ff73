"""
Tuner observer verification

Checks the order of transition callbacks and the loguru rendering of them.
"""

import math

import pytest
from loguru import logger

from twiddlepid import (
    LogMode,
    LogObserver,
    ProbePhase,
    RecordingObserver,
    TuningObserver,
    Twiddle,
)


@pytest.fixture
def log_lines():
    """Capture loguru output as plain messages."""
    lines = []
    handler_id = logger.add(lambda message: lines.append(message.record["message"]), level="DEBUG")
    yield lines
    logger.remove(handler_id)


def make_tuner(observer) -> Twiddle:
    return Twiddle(
        params=[1.0],
        params_delta=[1.0],
        max_steps=2,
        warmup_steps=0,
        divergence_threshold=math.inf,
        observer=observer,
    )


def test_observers_satisfy_protocol():
    assert isinstance(RecordingObserver(), TuningObserver)
    assert isinstance(LogObserver(), TuningObserver)


def test_improvement_event_order():
    recorder = RecordingObserver()
    tuner = make_tuner(recorder)

    tuner.tune(0.5)
    tuner.tune(0.5)

    assert recorder.names() == [
        "warmup_complete",
        "cycle_end",
        "step_scaled",
        "parameter_advance",
        "probe",
        "cycle_complete",
    ]
    report = recorder.of("cycle_end")[0]
    assert report.cycle == 1
    assert report.params == [1.0]
    assert report.deltas == [1.0]
    assert report.score == pytest.approx(0.25)
    assert report.previous_best == math.inf
    assert not report.diverged
    assert recorder.of("step_scaled") == [(0, 1.0, 1.1)]
    assert recorder.of("probe") == [(0, 1.0, pytest.approx(1.1), ProbePhase.INCREASE)]


def test_flip_and_restore_events():
    recorder = RecordingObserver()
    tuner = make_tuner(recorder)
    for cte in [0.5, 0.5, 1.0, 1.0]:
        tuner.tune(cte)

    assert recorder.of("phase_flip") == [(0, ProbePhase.DECREASE)]
    decrease = recorder.of("probe")[-1]
    assert decrease[2] == pytest.approx(2.2)
    assert decrease[3] == ProbePhase.DECREASE

    recorder.clear()
    tuner.tune(1.0)
    tuner.tune(1.0)

    assert recorder.names() == [
        "warmup_complete",
        "cycle_end",
        "probe",
        "step_scaled",
        "parameter_advance",
        "probe",
        "cycle_complete",
    ]
    restore = recorder.of("probe")[0]
    assert restore[2] == pytest.approx(1.1), "Add-back undoes one step"
    assert restore[3] == ProbePhase.INCREASE


def test_log_observer_summary(log_lines):
    tuner = make_tuner(LogObserver(LogMode.LOG_SUMMARY))
    tuner.tune(0.5)
    tuner.tune(0.5)

    assert any(line.startswith("End of Cycle 1 (completed after 2 samples)") for line in log_lines)
    assert any("cycle error: 0.25" in line for line in log_lines)
    assert any(line.startswith("Current best: 0.25") for line in log_lines)
    assert not any("INCREASING" in line for line in log_lines), "Probes only in LOG_ALL"


def test_log_observer_all(log_lines):
    tuner = make_tuner(LogObserver(LogMode.LOG_ALL))
    tuner.tune(0.5)
    tuner.tune(0.5)

    assert "Cycle 1 Warmup Completed" in log_lines
    assert "TUNING p_delta_0: (1 * 1.1)" in log_lines
    assert "INCREASING p_0: (1 + 1.1)" in log_lines
    assert "Active parameter p_0 -> p_0" in log_lines


def test_log_observer_off(log_lines):
    tuner = make_tuner(LogObserver(LogMode.LOG_OFF))
    tuner.tune(0.5)
    tuner.tune(0.5)

    assert log_lines == []


def test_log_observer_reports_convergence(log_lines):
    tuner = Twiddle(
        params=[0.5], params_delta=[0.1], max_steps=1, observer=LogObserver()
    )
    tuner.tune(0.3)
    tuner.tune(0.3)

    finished = [line for line in log_lines if line.startswith("Tuning finished")]
    assert finished == ["Tuning finished, best error: inf | best params: 0.5"]
