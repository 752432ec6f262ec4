"""Data models for parsed sheet music."""

from dataclasses import dataclass, field
from fractions import Fraction

DEFAULT_TITLE = "Untitled"
DEFAULT_KEY = "C"
DEFAULT_TIME_SIGNATURE = "4/4"


@dataclass(frozen=True)
class Note:
    """
    A single note of a piece.

    Attributes:
        pitch:    Note name, e.g. "A4" or "C#5".
        duration: Length in quarter-note beats (1 = quarter, 1/2 = eighth).
        measure:  Zero-based measure position the note was written in.
        index:    Position of the note in the whole piece; the navigation handle.
    """

    pitch: str
    duration: Fraction
    measure: int
    index: int


@dataclass(frozen=True)
class Measure:
    """One bar of notes. Only the first measure of a sheet carries a time signature."""

    number: int
    notes: tuple[Note, ...]
    time_signature: str | None = None


@dataclass(frozen=True)
class Sheet:
    """
    An immutable, fully parsed piece.

    ``all_notes`` is the concatenation of every measure's notes in order and
    ``all_notes[i].index == i``; both invariants are checked on construction.
    """

    title: str = DEFAULT_TITLE
    key: str = DEFAULT_KEY
    time_signature: str = DEFAULT_TIME_SIGNATURE
    measures: tuple[Measure, ...] = ()
    all_notes: tuple[Note, ...] = field(default=())
    composer: str | None = None

    def __post_init__(self) -> None:
        flattened = tuple(note for measure in self.measures for note in measure.notes)
        if flattened != self.all_notes:
            raise ValueError("all_notes must be the concatenation of the measures' notes")
        for position, note in enumerate(self.all_notes):
            if note.index != position:
                raise ValueError(
                    f"note at position {position} has index {note.index}; indices must be contiguous"
                )

    @classmethod
    def from_measures(cls, measures: list[Measure], **metadata: str | None) -> "Sheet":
        """Build a sheet whose ``all_notes`` is derived from *measures*."""
        all_notes = tuple(note for measure in measures for note in measure.notes)
        return cls(measures=tuple(measures), all_notes=all_notes, **metadata)  # type: ignore[arg-type]

    @property
    def note_count(self) -> int:
        return len(self.all_notes)

    @property
    def is_empty(self) -> bool:
        return not self.all_notes

    @property
    def total_beats(self) -> Fraction:
        """Sum of all note durations, in quarter-note beats."""
        return sum((note.duration for note in self.all_notes), Fraction(0))
