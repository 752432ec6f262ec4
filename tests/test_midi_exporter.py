"""Unit tests for MidiExporter."""

from pathlib import Path

import pytest
from midiutil import MIDIFile

from intonate.midi_exporter import TRACK_MELODY, MidiExporter
from intonate.notation_parser import parse_notation
from intonate.samples import load_sample


def test_export_writes_standard_midi_file(tmp_path: Path) -> None:
    out = tmp_path / "twinkle.mid"
    MidiExporter(tempo=90).export(load_sample("twinkle-twinkle"), str(out))
    data = out.read_bytes()
    assert data.startswith(b"MThd")
    assert b"MTrk" in data


def test_build_lays_notes_end_to_end(monkeypatch: pytest.MonkeyPatch) -> None:
    added: list[dict] = []

    def record(self, **kwargs) -> None:
        added.append(kwargs)

    monkeypatch.setattr(MIDIFile, "addNote", record)
    MidiExporter().build(parse_notation("A1/2 ^C G2 | _B0 d"))

    # Zero-length notes are skipped but keep their place in time.
    assert [n["pitch"] for n in added] == [69, 61, 67, 74]
    assert [n["time"] for n in added] == [0.0, 0.5, 1.5, 3.5]
    assert [n["duration"] for n in added] == [0.5, 1.0, 2.0, 1.0]
    assert all(n["track"] == TRACK_MELODY for n in added)


def test_export_to_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        MidiExporter().export(load_sample("mary-lamb"), str(tmp_path / "nope" / "out.mid"))
