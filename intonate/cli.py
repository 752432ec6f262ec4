"""intonate CLI entry point."""

import logging
import math
import sys
import time
from pathlib import Path

import click

from intonate import __version__
from intonate.audio_capture import AudioCaptureError, AudioFileSource, AudioSource, MicrophoneSource
from intonate.config import DEFAULT_CONFIG, PracticeConfig, default_bookmark_path
from intonate.navigation import JsonFileBookmarkStore, NavigationEngine
from intonate.notation_parser import ParseDiagnostic, StrictTokenResolver, parse_notation
from intonate.pitch import REFERENCE_FREQUENCIES, evaluate_tuning, name_frequency
from intonate.pitch_estimator import LibrosaPitchEstimator, PitchEstimator
from intonate.samples import SAMPLE_SHEETS, load_sample
from intonate.session import PracticeSession, SessionState
from intonate.sheet_models import Note, Sheet

SCORE_SUFFIXES = {".xml", ".musicxml", ".mxl", ".mid", ".midi", ".krn", ".mei"}
POLL_INTERVAL = 0.1  # seconds between checks of the foreground loop


def _load_sheet(source: str, strict: bool = False) -> tuple[Sheet, list[ParseDiagnostic]]:
    """Resolve SOURCE as a bundled sample name, a notation file or a score file."""
    if source in SAMPLE_SHEETS:
        return load_sample(source), []

    path = Path(source)
    if not path.is_file():
        available = ", ".join(sorted(SAMPLE_SHEETS))
        raise click.BadParameter(
            f"'{source}' is neither a file nor a sample ({available}).",
            param_hint="SOURCE",
        )

    if path.suffix.lower() in SCORE_SUFFIXES:
        from intonate.score_import import load_score

        try:
            return load_score(str(path)), []
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="SOURCE") from exc

    text = path.read_text(encoding="utf-8")
    if strict:
        resolver = StrictTokenResolver()
        return parse_notation(text, resolver), resolver.diagnostics
    return parse_notation(text), []


def _check_frequency(frequency: float) -> None:
    if not math.isfinite(frequency) or frequency <= 0:
        raise click.BadParameter("must be a finite number greater than 0.", param_hint="FREQUENCY")


def _format_note(note: Note) -> str:
    if note.duration == 1:
        return note.pitch
    return f"{note.pitch}:{note.duration}"


def _make_source(input_path: str | None, config: PracticeConfig) -> AudioSource:
    if input_path is not None:
        return AudioFileSource(input_path, config.sample_rate, config.buffer_size)
    return MicrophoneSource(config.sample_rate, config.buffer_size)


def _make_estimator(config: PracticeConfig) -> PitchEstimator:
    return LibrosaPitchEstimator(fmin=config.min_frequency, fmax=config.max_frequency)


def _run_session(session: PracticeSession, until=None) -> None:
    """
    Drive *session* until Ctrl+C, the file input runs out or *until()* is true.

    The session is always stopped on return.

    Raises:
        AudioCaptureError: If the source cannot be opened, or the session
            stopped on its own because the input failed.
    """
    source = session.source
    try:
        session.start(run_loop=not isinstance(source, AudioFileSource))
        while True:
            if until is not None and until():
                break
            if not session.is_listening:
                raise AudioCaptureError("Audio input stopped unexpectedly.")
            if isinstance(source, AudioFileSource):
                if source.exhausted:
                    break
                buffer = source.read()
                if buffer is not None:
                    session.process_buffer(buffer)
            else:
                time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()
        click.echo()


def _tuning_line(state: SessionState) -> str:
    if state.cents is None:
        return f"{state.note:<4} {state.frequency:8.2f} Hz"
    verdict = "IN TUNE" if state.in_tune else ("sharp" if state.cents > 0 else "flat")
    return (
        f"{state.note:<4} {state.frequency:8.2f} Hz  "
        f"{state.cents:+6.1f} cents vs {state.target_note}  {verdict:<7}  "
        f"clarity {state.clarity * 100:3.0f}%"
    )


def _target_option(func):
    return click.option(
        "--target",
        "-t",
        type=click.Choice(list(REFERENCE_FREQUENCIES), case_sensitive=True),
        default=DEFAULT_CONFIG.default_target,
        show_default=True,
        help="Note to tune against.",
    )(func)


def _bookmark_option(func):
    return click.option(
        "--bookmark-file",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        metavar="PATH",
        help="Where the bookmark is stored. Defaults to the per-user app directory.",
    )(func)


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="intonate")
@click.option("--verbose", "-v", is_flag=True, help="Log session details to stderr.")
def main(verbose: bool) -> None:
    """intonate — intonation trainer and sheet-music follower."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── one-shot pitch commands ────────────────────────────────────────────────────

@main.command()
@click.argument("frequency", type=float)
def name(frequency: float) -> None:
    """Print the note nearest to FREQUENCY (Hz)."""
    _check_frequency(frequency)
    click.echo(name_frequency(frequency))


@main.command()
@click.argument("frequency", type=float)
@_target_option
@click.option(
    "--tolerance",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_CONFIG.in_tune_cents,
    show_default=True,
    metavar="CENTS",
    help="In-tune window on either side of the target.",
)
def check(frequency: float, target: str, tolerance: float) -> None:
    """Compare FREQUENCY (Hz) with a target note."""
    _check_frequency(frequency)
    result = evaluate_tuning(frequency, target, tolerance)
    if result is None:  # pragma: no cover - guarded by click.Choice
        raise click.BadParameter(f"unknown note {target}", param_hint="--target")
    verdict = "in tune" if result.in_tune else ("sharp" if result.cents > 0 else "flat")
    click.echo(f"{name_frequency(frequency)}  {result.cents:+.1f} cents vs {target}  ({verdict})")


# ── sheet commands ─────────────────────────────────────────────────────────────

@main.command()
def samples() -> None:
    """List the bundled sample pieces."""
    for key in sorted(SAMPLE_SHEETS):
        sheet = load_sample(key)
        click.echo(f"  {key:<16} {sheet.title}  ({sheet.note_count} notes)")


@main.command()
@click.argument("source")
@click.option("--strict", is_flag=True, help="Report tokens that could not be parsed.")
def show(source: str, strict: bool) -> None:
    """
    Print a piece measure by measure.

    SOURCE is a sample name (see `intonate samples`), a notation text file,
    or a MusicXML/MIDI score.

    \b
    Examples:
      intonate show twinkle-twinkle
      intonate show my_piece.abc --strict
      intonate show etude.musicxml
    """
    sheet, diagnostics = _load_sheet(source, strict)

    click.echo(sheet.title + (f" — {sheet.composer}" if sheet.composer else ""))
    click.echo(f"  Key: {sheet.key}  |  Time: {sheet.time_signature}  |  Notes: {sheet.note_count}")
    click.echo()
    for measure in sheet.measures:
        tokens = " ".join(_format_note(note) for note in measure.notes)
        click.echo(f"  {measure.number + 1:>3} | {tokens}")

    if not sheet.measures:
        click.echo("  (no notes)")

    for diagnostic in diagnostics:
        click.echo(
            f"  WARNING: measure {diagnostic.measure + 1}: "
            f"dropped '{diagnostic.token}' ({diagnostic.reason})",
            err=True,
        )


@main.command()
@click.argument("source")
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination MIDI file path. Defaults to <source-name>.mid.",
)
@click.option(
    "--tempo",
    type=click.IntRange(20, 300),
    default=80,
    show_default=True,
    help="Playback tempo in BPM.",
)
def export(source: str, output: str | None, tempo: int) -> None:
    """Write SOURCE as a MIDI file to listen to before practising."""
    from intonate.midi_exporter import MidiExporter

    sheet, _ = _load_sheet(source)
    if sheet.is_empty:
        click.echo("  ERROR: The piece contains no notes.", err=True)
        sys.exit(1)

    resolved_output = output or f"{Path(source).stem}.mid"
    try:
        MidiExporter(tempo=tempo).export(sheet, resolved_output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write MIDI file — {exc}", err=True)
        sys.exit(1)
    click.echo(f"Wrote {sheet.note_count} notes to '{resolved_output}'.")


# ── bookmark commands ──────────────────────────────────────────────────────────

@main.group()
def bookmark() -> None:
    """Inspect or clear the saved practice position."""


@bookmark.command("show")
@_bookmark_option
def bookmark_show(bookmark_file: Path | None) -> None:
    """Print the bookmarked note number."""
    store = JsonFileBookmarkStore(bookmark_file or default_bookmark_path())
    click.echo(f"Bookmark: note {store.load() + 1}  ({store.path})")


@bookmark.command("clear")
@_bookmark_option
def bookmark_clear(bookmark_file: Path | None) -> None:
    """Reset the bookmark to the first note."""
    store = JsonFileBookmarkStore(bookmark_file or default_bookmark_path())
    try:
        store.save(0)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write bookmark — {exc}", err=True)
        sys.exit(1)
    click.echo("Bookmark cleared.")


# ── live commands ──────────────────────────────────────────────────────────────

def _live_options(func):
    func = click.option(
        "--input",
        "input_path",
        type=click.Path(exists=True, dir_okay=False, readable=True),
        default=None,
        metavar="AUDIO",
        help="Analyse an audio file instead of the microphone.",
    )(func)
    func = click.option(
        "--clarity",
        type=click.FloatRange(0, 1),
        default=DEFAULT_CONFIG.clarity_threshold,
        show_default=True,
        help="Discard frames at or below this pitch clarity.",
    )(func)
    return func


@main.command()
@_target_option
@_live_options
def tune(target: str, input_path: str | None, clarity: float) -> None:
    """
    Live tuner: show the detected note and its deviation from --target.

    Press Ctrl+C to stop.
    """
    config = PracticeConfig(clarity_threshold=clarity, default_target=target)
    session = PracticeSession(_make_source(input_path, config), _make_estimator(config), config=config)

    def on_state(state: SessionState) -> None:
        if state.listening:
            click.echo("\r" + _tuning_line(state), nl=False)

    session.subscribe(on_state)

    click.echo(f"intonate v{__version__} — tuning against {target}. Press Ctrl+C to stop.")
    try:
        _run_session(session)
    except AudioCaptureError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)


@main.command()
@click.argument("source")
@_live_options
@_bookmark_option
@click.option(
    "--from-start/--from-bookmark",
    default=False,
    show_default=True,
    help="Begin at the first note instead of the saved bookmark.",
)
def follow(
    source: str,
    input_path: str | None,
    clarity: float,
    bookmark_file: Path | None,
    from_start: bool,
) -> None:
    """
    Play through SOURCE note by note; each correct note advances the cursor.

    On exit (Ctrl+C or end of piece) the position is saved as the bookmark.
    """
    sheet, _ = _load_sheet(source)
    if sheet.is_empty:
        click.echo("  ERROR: The piece contains no notes.", err=True)
        sys.exit(1)

    navigator = NavigationEngine(JsonFileBookmarkStore(bookmark_file or default_bookmark_path()))
    navigator.load_sheet(sheet)
    if from_start:
        navigator.reset()

    config = PracticeConfig(clarity_threshold=clarity)
    session = PracticeSession(
        _make_source(input_path, config),
        _make_estimator(config),
        navigator=navigator,
        config=config,
    )

    last_cursor = navigator.cursor

    def on_state(state: SessionState) -> None:
        nonlocal last_cursor
        if not state.listening or state.cursor is None or state.cursor == last_cursor:
            return
        last_cursor = state.cursor
        note = sheet.all_notes[state.cursor]
        click.echo(
            f"\nNote {note.index + 1}/{sheet.note_count} "
            f"(measure {note.measure + 1}): play {note.pitch}"
        )

    session.subscribe(on_state)

    click.echo(f"intonate v{__version__} — {sheet.title}")
    first = navigator.current_note
    if first is not None:
        click.echo(f"Start at note {first.index + 1}/{sheet.note_count}: play {first.pitch}")

    try:
        _run_session(session, until=lambda: session.state.finished)
    except AudioCaptureError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)

    try:
        navigator.set_bookmark()
    except OSError as exc:
        click.echo(f"  WARNING: Could not save bookmark — {exc}", err=True)
    if session.state.finished:
        click.echo("Finished the piece!")
    click.echo(f"Bookmark saved at note {navigator.bookmark + 1}.")


if __name__ == "__main__":
    main()
