import math

import numpy as np
import pytest

from spellvoice.recorders.level_monitor import (
    SILENT_DB,
    AudioLevelMonitor,
    measure_rms,
    rms_to_db,
)

from fakes import LOUD, FakeCapture


class _BrokenSource:
    def level_window(self):
        raise OSError("stream gone")


def test_rms_of_constant_signal():
    assert measure_rms(np.full(100, 0.5, dtype=np.float32)) == pytest.approx(0.5)


def test_rms_of_empty_signal():
    assert measure_rms(np.zeros(0, dtype=np.float32)) == 0.0


def test_db_scale():
    assert rms_to_db(1.0) == pytest.approx(0.0)
    assert rms_to_db(0.1) == pytest.approx(-20.0)
    assert rms_to_db(0.01) == pytest.approx(-40.0)


def test_db_is_floored_and_clamped():
    assert rms_to_db(0.0) == pytest.approx(-160.0)
    assert rms_to_db(4.0) == pytest.approx(0.0)


def test_unavailable_input_is_negative_infinity():
    monitor = AudioLevelMonitor(FakeCapture(), clock=lambda: 5.0)
    sample = monitor.sample_loudness()
    assert sample.timestamp == 5.0
    assert sample.db == SILENT_DB
    assert math.isinf(sample.db) and sample.db < 0


def test_failing_input_is_negative_infinity():
    monitor = AudioLevelMonitor(_BrokenSource())
    assert monitor.sample_loudness(now=1.0).db == SILENT_DB


def test_live_input_loudness():
    capture = FakeCapture([LOUD])
    capture.open()
    sample = AudioLevelMonitor(capture).sample_loudness(now=2.0)
    assert sample.timestamp == 2.0
    assert sample.db == pytest.approx(-20.0, abs=1e-3)


def test_sampling_does_not_consume_audio():
    capture = FakeCapture([LOUD, LOUD])
    capture.open()
    monitor = AudioLevelMonitor(capture)
    monitor.sample_loudness(now=0.0)
    monitor.sample_loudness(now=0.1)
    assert len(capture.drain()) == 2
