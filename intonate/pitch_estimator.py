"""PitchEstimator: turns one buffer of audio samples into a (frequency, clarity) sample."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import librosa
import numpy as np

from intonate.config import DEFAULT_CONFIG

SILENCE_RMS = 0.01  # RMS below this counts as silence


@dataclass(frozen=True)
class PitchSample:
    """
    Best-effort pitch of one analysis frame.

    Attributes:
        frequency: Fundamental frequency in Hz, or None when no pitch was found.
        clarity:   Confidence in [0, 1] that the frame is periodic.
    """

    frequency: float | None
    clarity: float

    @property
    def has_pitch(self) -> bool:
        return self.frequency is not None and math.isfinite(self.frequency) and self.frequency > 0


NO_PITCH = PitchSample(frequency=None, clarity=0.0)


class PitchEstimator(ABC):
    """Abstract fundamental-frequency estimator."""

    @abstractmethod
    def estimate(self, buffer: np.ndarray, sample_rate: int) -> PitchSample:
        """
        Estimate the pitch of a mono *buffer* recorded at *sample_rate*.

        Returns:
            A PitchSample; NO_PITCH (or a None frequency) when nothing is found.
        """


class LibrosaPitchEstimator(PitchEstimator):
    """
    Probabilistic YIN (pYIN) via librosa, applied to a single analysis frame.

    The whole buffer is analysed as one frame (``center=False``); the voiced
    probability pYIN assigns to that frame is reported as the clarity.
    """

    def __init__(
        self,
        fmin: float = DEFAULT_CONFIG.min_frequency,
        fmax: float = DEFAULT_CONFIG.max_frequency,
        silence_rms: float = SILENCE_RMS,
    ) -> None:
        """
        Args:
            fmin:        Lowest frequency to search for, in Hz.
            fmax:        Highest frequency to search for, in Hz.
            silence_rms: Buffers quieter than this are reported as NO_PITCH
                         without running pYIN.
        """
        self.fmin = fmin
        self.fmax = fmax
        self.silence_rms = silence_rms

    def _is_silent(self, buffer: np.ndarray) -> bool:
        if buffer.size == 0:
            return True
        rms = float(np.sqrt(np.mean(np.square(buffer, dtype=np.float64))))
        return rms < self.silence_rms

    def estimate(self, buffer: np.ndarray, sample_rate: int) -> PitchSample:
        signal = np.asarray(buffer, dtype=np.float32).reshape(-1)
        if self._is_silent(signal):
            return NO_PITCH

        f0, _voiced_flag, voiced_prob = librosa.pyin(
            signal,
            fmin=self.fmin,
            fmax=self.fmax,
            sr=sample_rate,
            frame_length=signal.size,
            center=False,
        )
        if f0.size == 0:
            return NO_PITCH

        clarity = float(np.clip(voiced_prob[-1], 0.0, 1.0))
        frequency = float(f0[-1])
        if not np.isfinite(frequency) or frequency <= 0:
            return PitchSample(frequency=None, clarity=clarity)
        return PitchSample(frequency=frequency, clarity=clarity)
