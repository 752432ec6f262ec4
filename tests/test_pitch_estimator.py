"""Unit tests for the librosa pitch estimator adapter."""

import numpy as np
import pytest

from intonate import pitch_estimator
from intonate.pitch import name_frequency
from intonate.pitch_estimator import NO_PITCH, LibrosaPitchEstimator, PitchSample

SAMPLE_RATE = 44100


def _sine(frequency: float, size: int = 2048, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(size) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def test_pitch_sample_has_pitch() -> None:
    assert PitchSample(frequency=440.0, clarity=0.9).has_pitch
    assert not PitchSample(frequency=None, clarity=0.9).has_pitch
    assert not PitchSample(frequency=0.0, clarity=0.9).has_pitch
    assert not NO_PITCH.has_pitch


def test_silence_skips_analysis(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args, **kwargs):
        raise AssertionError("pyin should not run on silence")

    monkeypatch.setattr(pitch_estimator.librosa, "pyin", fail)
    estimator = LibrosaPitchEstimator()
    assert estimator.estimate(np.zeros(2048, dtype=np.float32), SAMPLE_RATE) == NO_PITCH
    assert estimator.estimate(np.array([], dtype=np.float32), SAMPLE_RATE) == NO_PITCH


def test_pyin_result_is_mapped(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict = {}

    def fake_pyin(y, **kwargs):
        seen.update(kwargs, size=y.size)
        return np.array([441.5]), np.array([True]), np.array([0.97])

    monkeypatch.setattr(pitch_estimator.librosa, "pyin", fake_pyin)
    sample = LibrosaPitchEstimator(fmin=150.0, fmax=1000.0).estimate(_sine(441.5), SAMPLE_RATE)

    assert sample == PitchSample(frequency=441.5, clarity=pytest.approx(0.97))
    assert seen["frame_length"] == 2048 == seen["size"]
    assert seen["center"] is False
    assert seen["sr"] == SAMPLE_RATE
    assert (seen["fmin"], seen["fmax"]) == (150.0, 1000.0)


def test_unvoiced_frame_has_no_frequency(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        pitch_estimator.librosa,
        "pyin",
        lambda y, **kwargs: (np.array([np.nan]), np.array([False]), np.array([0.12])),
    )
    sample = LibrosaPitchEstimator().estimate(_sine(300.0), SAMPLE_RATE)
    assert sample.frequency is None
    assert sample.clarity == pytest.approx(0.12)


@pytest.mark.integration
def test_real_sine_is_named() -> None:
    sample = LibrosaPitchEstimator().estimate(_sine(440.0, size=4096), SAMPLE_RATE)
    assert sample.has_pitch
    assert name_frequency(sample.frequency) == "A4"
