"""Audio sources that feed analysis buffers to a practice session."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

import librosa
import numpy as np

from intonate.config import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


class AudioCaptureError(RuntimeError):
    """The audio input could not be opened (missing device, permission denied, ...)."""


class AudioSource(ABC):
    """
    A provider of mono analysis buffers, one per frame.

    Usage as a context manager guarantees the input is released:

        with MicrophoneSource() as source:
            buffer = source.read()
    """

    sample_rate: int

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the input.

        Raises:
            AudioCaptureError: If the input cannot be acquired. Nothing is
                left allocated in that case.
        """

    @abstractmethod
    def read(self) -> np.ndarray | None:
        """Return the current analysis buffer, or None if no data is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the input. Safe to call when not open."""

    @property
    def exhausted(self) -> bool:
        """True once a finite source has delivered all of its data."""
        return False

    def __enter__(self) -> AudioSource:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MicrophoneSource(AudioSource):
    """
    Live microphone input through sounddevice (PortAudio).

    The stream callback keeps the most recent ``buffer_size`` samples in a
    ring buffer; ``read()`` returns a copy of it in chronological order.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_CONFIG.sample_rate,
        buffer_size: int = DEFAULT_CONFIG.buffer_size,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.device = device
        self._stream: Any = None
        self._ring = np.zeros(buffer_size, dtype=np.float32)
        self._write_pos = 0
        self._filled = 0
        self._lock = threading.Lock()

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        samples = indata[:, 0]
        if samples.size >= self.buffer_size:
            samples = samples[-self.buffer_size :]
        with self._lock:
            end = self._write_pos + samples.size
            if end <= self.buffer_size:
                self._ring[self._write_pos : end] = samples
            else:
                split = self.buffer_size - self._write_pos
                self._ring[self._write_pos :] = samples[:split]
                self._ring[: end - self.buffer_size] = samples[split:]
            self._write_pos = end % self.buffer_size
            self._filled = min(self.buffer_size, self._filled + samples.size)

    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise AudioCaptureError(f"Audio input is unavailable: {exc}") from exc

        stream = None
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=0,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except Exception as exc:
            if stream is not None:
                stream.close()
            raise AudioCaptureError(
                f"Unable to access the microphone ({exc}). "
                "Check that an input device is connected and recording is permitted."
            ) from exc

        with self._lock:
            self._ring[:] = 0.0
            self._write_pos = 0
            self._filled = 0
        self._stream = stream
        logger.info("Microphone opened at %d Hz", self.sample_rate)

    def read(self) -> np.ndarray | None:
        with self._lock:
            if self._filled < self.buffer_size:
                return None
            return np.roll(self._ring, -self._write_pos).copy()

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
            logger.info("Microphone closed")


class AudioFileSource(AudioSource):
    """
    Replays an audio file buffer by buffer, e.g. a recording of a practice run.

    The file is decoded with librosa (mono, resampled to *sample_rate*) when
    the source is opened.
    """

    def __init__(
        self,
        path: str,
        sample_rate: int = DEFAULT_CONFIG.sample_rate,
        buffer_size: int = DEFAULT_CONFIG.buffer_size,
    ) -> None:
        self.path = path
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self._samples: np.ndarray | None = None
        self._position = 0

    def open(self) -> None:
        try:
            samples, _sr = librosa.load(self.path, sr=self.sample_rate, mono=True)
        except Exception as exc:
            raise AudioCaptureError(f"Could not read audio file '{self.path}': {exc}") from exc
        self._samples = samples
        self._position = 0

    def read(self) -> np.ndarray | None:
        if self._samples is None or self.exhausted:
            return None
        end = self._position + self.buffer_size
        buffer = self._samples[self._position : end]
        self._position = end
        if buffer.size < self.buffer_size:
            buffer = np.pad(buffer, (0, self.buffer_size - buffer.size))
        return buffer

    @property
    def exhausted(self) -> bool:
        return self._samples is not None and self._position >= self._samples.size

    def close(self) -> None:
        self._samples = None
        self._position = 0
