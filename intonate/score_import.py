"""Import structured score files (MusicXML, MIDI, ...) as a flattened Sheet via music21."""

from __future__ import annotations

from fractions import Fraction
from typing import Any

from intonate.pitch import midi_to_note_name
from intonate.sheet_models import (
    DEFAULT_KEY,
    DEFAULT_TIME_SIGNATURE,
    DEFAULT_TITLE,
    Measure,
    Note,
    Sheet,
)


def _parse_score(path: str) -> Any:
    from music21 import converter

    return converter.parse(path)


def _melody_part(score: Any) -> Any | None:
    """First part that contains notes; the score itself if it has no parts."""
    parts = list(getattr(score, "parts", []))
    for part in parts:
        if part.flatten().notes:
            return part
    return None if parts else score


def _extract_time_signature(score: Any) -> str:
    for ts in score.recurse().getElementsByClass("TimeSignature"):
        ratio = getattr(ts, "ratioString", None)
        if isinstance(ratio, str) and ratio:
            return ratio
    return DEFAULT_TIME_SIGNATURE


def _extract_key(score: Any) -> str:
    for key_signature in score.recurse().getElementsByClass("KeySignature"):
        key = key_signature if hasattr(key_signature, "tonic") else key_signature.asKey()
        tonic = key.tonic.name.replace("-", "b")
        return tonic if key.mode == "major" else f"{tonic}m"
    return DEFAULT_KEY


def _element_pitch(element: Any) -> str:
    """Sharp-only note name of a note, or of the highest pitch of a chord."""
    if element.isChord:
        midi = max(p.midi for p in element.pitches)
    else:
        midi = element.pitch.midi
    return midi_to_note_name(int(midi))


def sheet_from_score(score: Any, title: str | None = None) -> Sheet:
    """
    Flatten a music21 score into a Sheet.

    Only the first part with notes is used. Rests are skipped, chords are
    reduced to their top note and every pitch is respelled with sharps so the
    names compare equal to what the note namer reports.
    """
    part = _melody_part(score)
    metadata = getattr(score, "metadata", None)
    resolved_title = title or (metadata.title if metadata is not None else None) or DEFAULT_TITLE
    composer = metadata.composer if metadata is not None else None
    time_signature = _extract_time_signature(score)

    measures: list[Measure] = []
    if part is not None:
        measured = part if part.hasMeasures() else part.makeMeasures()
        index = 0
        for position, bar in enumerate(measured.getElementsByClass("Measure")):
            notes: list[Note] = []
            for element in bar.recurse().notes:
                if not element.isChord and not hasattr(element, "pitch"):
                    continue
                notes.append(
                    Note(
                        pitch=_element_pitch(element),
                        duration=Fraction(element.duration.quarterLength),
                        measure=position,
                        index=index,
                    )
                )
                index += 1
            if notes:
                measures.append(
                    Measure(
                        number=position,
                        notes=tuple(notes),
                        time_signature=None if measures else time_signature,
                    )
                )

    return Sheet.from_measures(
        measures,
        title=resolved_title,
        composer=composer or None,
        key=_extract_key(score),
        time_signature=time_signature,
    )


def load_score(path: str) -> Sheet:
    """
    Parse any music21-readable score file into a Sheet.

    Raises:
        ValueError: If music21 cannot read the file.
    """
    try:
        score = _parse_score(path)
    except Exception as exc:
        raise ValueError(f"Could not read score '{path}': {exc}") from exc
    return sheet_from_score(score)
