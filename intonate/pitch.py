"""Note naming and tuning evaluation for equal-tempered pitches (A4 = 440 Hz)."""

import math
import re
from dataclasses import dataclass

# Chromatic pitch class names (index 0 = C). Sharps only: flats are never produced.
NOTE_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

A4_FREQUENCY = 440.0
A4_MIDI = 69
SEMITONES_PER_OCTAVE = 12
CENTS_PER_OCTAVE = 1200

#: Deviation (in cents, exclusive) within which a note counts as in tune.
IN_TUNE_CENTS = 10.0

#: Placeholder shown when no pitch is being detected.
NO_NOTE = "--"

_NOTE_NAME_RE = re.compile(r"^([A-Ga-g])([#b]?)(-?\d+)$")
_LETTER_PITCH_CLASS = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}


@dataclass(frozen=True)
class TuningResult:
    """
    Outcome of comparing a detected frequency against a target note.

    Attributes:
        cents:   Signed deviation from the target (positive = sharp).
        in_tune: True when ``abs(cents)`` is below the tolerance.
    """

    cents: float
    in_tune: bool


def _round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return math.floor(value + 0.5)


def frequency_to_midi(frequency: float) -> float:
    """
    Convert a frequency in Hz to a fractional MIDI note number (A4 = 69).

    Raises:
        ValueError: If *frequency* is not a finite positive number.
    """
    if not math.isfinite(frequency) or frequency <= 0:
        raise ValueError(f"frequency must be a positive number, got {frequency!r}")
    return A4_MIDI + SEMITONES_PER_OCTAVE * math.log2(frequency / A4_FREQUENCY)


def midi_to_frequency(midi: float) -> float:
    """Equal-tempered frequency of a (possibly fractional) MIDI note number."""
    return A4_FREQUENCY * 2 ** ((midi - A4_MIDI) / SEMITONES_PER_OCTAVE)


def midi_to_note_name(midi: int) -> str:
    """
    Spell a MIDI note number as a sharp-only note name.

    MIDI octave numbering: C-1 = 0, C0 = 12, ... C4 (Middle C) = 60.
    """
    pitch_class = midi % SEMITONES_PER_OCTAVE
    octave = midi // SEMITONES_PER_OCTAVE - 1
    return f"{NOTE_NAMES[pitch_class]}{octave}"


def note_name_to_midi(name: str) -> int:
    """
    Parse a note name such as ``"A4"``, ``"C#5"`` or ``"Bb3"`` into a MIDI number.

    Raises:
        ValueError: If *name* is not a valid note name.
    """
    match = _NOTE_NAME_RE.match(name.strip())
    if not match:
        raise ValueError(f"Invalid note name {name!r}")
    letter, accidental, octave = match.groups()
    semitone = _LETTER_PITCH_CLASS[letter.upper()]
    if accidental == "#":
        semitone += 1
    elif accidental == "b":
        semitone -= 1
    return (int(octave) + 1) * SEMITONES_PER_OCTAVE + semitone


def name_frequency(frequency: float) -> str:
    """
    Name the equal-tempered note nearest to *frequency*.

    Examples:
        >>> name_frequency(440.0)
        'A4'
        >>> name_frequency(277.18)
        'C#4'

    Raises:
        ValueError: If *frequency* is zero, negative or not finite.
    """
    nearest = _round_half_up(frequency_to_midi(frequency))
    return midi_to_note_name(nearest)


def _build_reference_table(lowest: str, highest: str) -> dict[str, float]:
    low = note_name_to_midi(lowest)
    high = note_name_to_midi(highest)
    return {midi_to_note_name(m): midi_to_frequency(m) for m in range(low, high + 1)}


#: Reference pitches for every practice note from the violin's open G string to A5.
REFERENCE_FREQUENCIES: dict[str, float] = _build_reference_table("G3", "A5")


def reference_frequency(note: str) -> float | None:
    """Return the reference frequency of *note*, or None if it is not a practice note."""
    return REFERENCE_FREQUENCIES.get(note)


def cents_between(frequency: float, reference: float) -> float:
    """Signed distance in cents from *reference* to *frequency*."""
    return CENTS_PER_OCTAVE * math.log2(frequency / reference)


def evaluate_tuning(
    frequency: float,
    target_note: str,
    tolerance_cents: float = IN_TUNE_CENTS,
) -> TuningResult | None:
    """
    Compare *frequency* with the reference pitch of *target_note*.

    Args:
        frequency:       Detected frequency in Hz (must be positive).
        target_note:     Note name to tune against, e.g. ``"A4"``.
        tolerance_cents: Exclusive in-tune window on either side of the target.

    Returns:
        A TuningResult, or None when *target_note* has no reference frequency.
        Callers keep their previous tuning state in that case.
    """
    reference = reference_frequency(target_note)
    if reference is None:
        return None
    cents = cents_between(frequency, reference)
    return TuningResult(cents=cents, in_tune=abs(cents) < tolerance_cents)
