"""
Shared fakes for the test suite.

Audio input and pitch estimation are replaced with deterministic stand-ins
so session tests never touch a sound card or librosa.
"""

from collections import deque

import numpy as np
import pytest

from intonate.audio_capture import AudioCaptureError, AudioSource
from intonate.pitch_estimator import NO_PITCH, PitchEstimator, PitchSample


class FakeAudioSource(AudioSource):
    """Hands out a silent buffer every frame and records open/close calls."""

    def __init__(
        self, fail_on_open: bool = False, sample_rate: int = 44100, fail_on_read: bool = False
    ) -> None:
        self.sample_rate = sample_rate
        self.fail_on_open = fail_on_open
        self.fail_on_read = fail_on_read
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.read_count = 0

    def open(self) -> None:
        if self.fail_on_open:
            raise AudioCaptureError("Permission denied")
        self.is_open = True
        self.open_count += 1

    def read(self) -> np.ndarray | None:
        self.read_count += 1
        if self.fail_on_read:
            raise AudioCaptureError("Device unplugged")
        return np.zeros(256, dtype=np.float32)

    def close(self) -> None:
        self.is_open = False
        self.close_count += 1


class FakeEstimator(PitchEstimator):
    """Returns queued samples in order, then repeats *default* forever."""

    def __init__(self, *samples: PitchSample, default: PitchSample = NO_PITCH) -> None:
        self.samples = deque(samples)
        self.default = default
        self.calls = 0

    def estimate(self, buffer: np.ndarray, sample_rate: int) -> PitchSample:
        self.calls += 1
        if self.samples:
            return self.samples.popleft()
        return self.default


@pytest.fixture
def source() -> FakeAudioSource:
    return FakeAudioSource()


@pytest.fixture
def estimator() -> FakeEstimator:
    return FakeEstimator()
