"""Unit tests for importing music21 scores as Sheets."""

from fractions import Fraction
from pathlib import Path

import pytest
from music21 import chord, key, meter, metadata, note, stream

from intonate.navigation import NavigationEngine
from intonate.score_import import load_score, sheet_from_score


def _sample_score() -> stream.Score:
    part = stream.Part()
    first = stream.Measure(number=1)
    first.append(meter.TimeSignature("3/4"))
    first.append(key.Key("D"))
    first.append(note.Note("D4", quarterLength=1))
    first.append(note.Note("E-4", quarterLength=0.5))
    first.append(note.Rest(quarterLength=0.5))
    first.append(note.Note("F#4", quarterLength=1))
    second = stream.Measure(number=2)
    second.append(chord.Chord(["D4", "F#4", "A4"], quarterLength=3))
    part.append([first, second])

    score = stream.Score()
    score.insert(0, metadata.Metadata(title="Minuet", composer="Anon."))
    score.insert(0, part)
    return score


def test_sheet_from_score_flattens_melody() -> None:
    sheet = sheet_from_score(_sample_score())

    assert sheet.title == "Minuet"
    assert sheet.composer == "Anon."
    assert sheet.key == "D"
    assert sheet.time_signature == "3/4"
    assert [n.pitch for n in sheet.all_notes] == ["D4", "D#4", "F#4", "A4"]
    assert [n.duration for n in sheet.all_notes] == [
        Fraction(1), Fraction(1, 2), Fraction(1), Fraction(3),
    ]
    assert [n.measure for n in sheet.all_notes] == [0, 0, 0, 1]
    assert [n.index for n in sheet.all_notes] == [0, 1, 2, 3]
    assert sheet.measures[0].time_signature == "3/4"
    assert sheet.measures[1].time_signature is None


def test_title_override() -> None:
    assert sheet_from_score(_sample_score(), title="Other").title == "Other"


def test_imported_sheet_is_navigable() -> None:
    engine = NavigationEngine()
    engine.load_sheet(sheet_from_score(_sample_score()))
    engine.next_measure()
    assert engine.current_note.pitch == "A4"
    assert engine.check_note("A4")


def test_load_score_roundtrip_musicxml(tmp_path: Path) -> None:
    path = tmp_path / "minuet.musicxml"
    _sample_score().write("musicxml", fp=str(path))
    sheet = load_score(str(path))
    assert [n.pitch for n in sheet.all_notes] == ["D4", "D#4", "F#4", "A4"]


def test_load_score_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "broken.musicxml"
    path.write_text("<not-a-score>", encoding="utf-8")
    with pytest.raises(ValueError):
        load_score(str(path))
