"""Tests for the click command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from intonate import __version__, cli
from intonate.navigation import BOOKMARK_KEY
from intonate.pitch import REFERENCE_FREQUENCIES
from intonate.pitch_estimator import PitchSample
from tests.conftest import FakeAudioSource, FakeEstimator


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_name(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["name", "261.63"])
    assert result.exit_code == 0
    assert result.output.strip() == "C4"


def test_name_rejects_zero(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["name", "0"])
    assert result.exit_code == 2
    assert "greater than 0" in result.output


@pytest.mark.parametrize("command", ["name", "check"])
@pytest.mark.parametrize("value", ["nan", "inf"])
def test_non_finite_frequency_is_a_usage_error(runner: CliRunner, command: str, value: str) -> None:
    result = runner.invoke(cli.main, [command, value])
    assert result.exit_code == 2
    assert "finite number" in result.output
    assert not isinstance(result.exception, ValueError)


def test_check_in_tune(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["check", "440", "--target", "A4"])
    assert result.exit_code == 0
    assert "+0.0 cents vs A4" in result.output
    assert "in tune" in result.output


def test_check_flat(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["check", "430", "-t", "A4"])
    assert result.exit_code == 0
    assert result.output.startswith("A4")
    assert "(flat)" in result.output


def test_check_unknown_target(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["check", "440", "--target", "C8"])
    assert result.exit_code == 2


def test_samples(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["samples"])
    assert result.exit_code == 0
    assert "twinkle-twinkle" in result.output
    assert "Ode to Joy (simplified)" in result.output


def test_show_sample(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["show", "ode-to-joy"])
    assert result.exit_code == 0
    assert "Ode to Joy (simplified) — Beethoven" in result.output
    assert "  1 | E4 E4 F4 G4" in result.output
    assert "D4:2" in result.output


def test_show_file_strict(runner: CliRunner, tmp_path: Path) -> None:
    piece = tmp_path / "piece.abc"
    piece.write_text("T:Drill\nC Q D | ^E", encoding="utf-8")
    result = runner.invoke(cli.main, ["show", str(piece), "--strict"])
    assert result.exit_code == 0
    assert "Drill" in result.output
    assert "dropped 'Q'" in result.output
    assert "dropped '^E'" in result.output


def test_show_empty_file(runner: CliRunner, tmp_path: Path) -> None:
    piece = tmp_path / "empty.txt"
    piece.write_text("T:Nothing\n", encoding="utf-8")
    result = runner.invoke(cli.main, ["show", str(piece)])
    assert result.exit_code == 0
    assert "(no notes)" in result.output


def test_show_unknown_source(runner: CliRunner) -> None:
    result = runner.invoke(cli.main, ["show", "no-such-piece"])
    assert result.exit_code == 2
    assert "neither a file nor a sample" in result.output


def test_export(runner: CliRunner, tmp_path: Path) -> None:
    out = tmp_path / "scale.mid"
    result = runner.invoke(cli.main, ["export", "simple-scale", "-o", str(out), "--tempo", "60"])
    assert result.exit_code == 0
    assert out.read_bytes().startswith(b"MThd")
    assert "Wrote 16 notes" in result.output


def test_bookmark_show_and_clear(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "bookmark.json"
    path.write_text(json.dumps({BOOKMARK_KEY: "6"}), encoding="utf-8")

    result = runner.invoke(cli.main, ["bookmark", "show", "--bookmark-file", str(path)])
    assert result.exit_code == 0
    assert "note 7" in result.output

    result = runner.invoke(cli.main, ["bookmark", "clear", "--bookmark-file", str(path)])
    assert result.exit_code == 0
    assert json.loads(path.read_text(encoding="utf-8")) == {BOOKMARK_KEY: "0"}


def _patch_audio(monkeypatch: pytest.MonkeyPatch, source: FakeAudioSource, estimator: FakeEstimator) -> None:
    monkeypatch.setattr(cli, "_make_source", lambda input_path, config: source)
    monkeypatch.setattr(cli, "_make_estimator", lambda config: estimator)


def test_tune_reports_microphone_failure(runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_audio(monkeypatch, FakeAudioSource(fail_on_open=True), FakeEstimator())
    result = runner.invoke(cli.main, ["tune"])
    assert result.exit_code == 1
    assert "Permission denied" in result.output


def test_tune_reports_lost_input(runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_audio(monkeypatch, FakeAudioSource(fail_on_read=True), FakeEstimator())
    result = runner.invoke(cli.main, ["tune"])
    assert result.exit_code == 1
    assert "Audio input stopped unexpectedly" in result.output


def test_follow_plays_through_piece(
    runner: CliRunner, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    piece = tmp_path / "piece.abc"
    piece.write_text("T:Three\nC D | E", encoding="utf-8")
    notes = ["C4", "D4", "E4", "E4"]
    estimator = FakeEstimator(
        *(PitchSample(frequency=REFERENCE_FREQUENCIES[n], clarity=0.99) for n in notes)
    )
    source = FakeAudioSource()
    _patch_audio(monkeypatch, source, estimator)
    bookmark = tmp_path / "bookmark.json"

    result = runner.invoke(
        cli.main,
        ["follow", str(piece), "--bookmark-file", str(bookmark), "--from-start"],
    )

    assert result.exit_code == 0, result.output
    assert "Start at note 1/3: play C4" in result.output
    assert "Note 3/3 (measure 2): play E4" in result.output
    assert "Finished the piece!" in result.output
    assert json.loads(bookmark.read_text(encoding="utf-8")) == {BOOKMARK_KEY: "2"}
    assert source.close_count >= 1


def test_follow_reports_microphone_failure(
    runner: CliRunner, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    _patch_audio(monkeypatch, FakeAudioSource(fail_on_open=True), FakeEstimator())
    result = runner.invoke(
        cli.main, ["follow", "mary-lamb", "--bookmark-file", str(tmp_path / "b.json")]
    )
    assert result.exit_code == 1
    assert "ERROR" in result.output
