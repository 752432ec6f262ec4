"""
Configuration for practice sessions.

PracticeConfig keeps the tunable numbers of the listening loop in one
immutable object so the CLI, the session controller and the audio adapters
share the same values.
"""

from dataclasses import dataclass
from pathlib import Path

import click

from intonate.pitch import IN_TUNE_CENTS, REFERENCE_FREQUENCIES

APP_NAME = "intonate"
BOOKMARK_FILENAME = "bookmark.json"


@dataclass(frozen=True)
class PracticeConfig:
    """
    Settings for the listening loop.

    Attributes:
        clarity_threshold: Frames whose clarity is at or below this value are
            discarded as noise or silence.
        in_tune_cents: Exclusive deviation window for the in-tune verdict.
        sample_rate: Audio sample rate in Hz.
        buffer_size: Samples per analysis frame (2048 ≈ 46 ms at 44.1 kHz).
        frame_interval: Seconds between frames; 1/60 matches a display refresh.
        default_target: Target note a new session starts with.
        min_frequency: Lowest frequency the pitch estimator searches for.
        max_frequency: Highest frequency the pitch estimator searches for.

    Example:
        >>> config = PracticeConfig(in_tune_cents=5.0)
    """

    clarity_threshold: float = 0.9
    in_tune_cents: float = IN_TUNE_CENTS
    sample_rate: int = 44100
    buffer_size: int = 2048
    frame_interval: float = 1 / 60
    default_target: str = "A4"
    min_frequency: float = 160.0
    max_frequency: float = 1400.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.clarity_threshold <= 1.0:
            raise ValueError(
                f"clarity_threshold must be within [0, 1], got {self.clarity_threshold}"
            )
        if self.in_tune_cents <= 0:
            raise ValueError(f"in_tune_cents must be positive, got {self.in_tune_cents}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.frame_interval < 0:
            raise ValueError(f"frame_interval must be non-negative, got {self.frame_interval}")
        if not 0 < self.min_frequency < self.max_frequency:
            raise ValueError(
                f"need 0 < min_frequency < max_frequency, got "
                f"{self.min_frequency} and {self.max_frequency}"
            )
        if self.default_target not in REFERENCE_FREQUENCIES:
            raise ValueError(
                f"Unknown default_target {self.default_target!r}, "
                f"valid options: {list(REFERENCE_FREQUENCIES)}"
            )


DEFAULT_CONFIG = PracticeConfig()
"""Default configuration: 0.9 clarity gate, ±10 cents, 44.1 kHz, 2048-sample frames."""


def default_bookmark_path() -> Path:
    """Per-user location of the bookmark file."""
    return Path(click.get_app_dir(APP_NAME)) / BOOKMARK_FILENAME
