"""MidiExporter: writes a parsed Sheet as a reference MIDI file to play along with."""

from midiutil import MIDIFile

from intonate.pitch import note_name_to_midi
from intonate.sheet_models import Sheet

# Format 1 MIDI: track 0 only carries tempo, notes go on track 1.
TRACK_CONDUCTOR = 0
TRACK_MELODY = 1

CHANNEL_MELODY = 0
# General MIDI program 40 = Violin (0-based)
VIOLIN_PROGRAM = 40


class MidiExporter:
    """
    Writes a Sheet as a single-melody Standard MIDI File.

    Notes are laid end to end: each starts where the previous one finished,
    using the note durations (quarter-note beats) straight from the sheet.
    """

    DEFAULT_TEMPO = 80     # BPM, a comfortable practice tempo
    DEFAULT_VELOCITY = 80  # MIDI velocity (0-127)

    def __init__(
        self,
        tempo: int = DEFAULT_TEMPO,
        velocity: int = DEFAULT_VELOCITY,
        program: int = VIOLIN_PROGRAM,
    ) -> None:
        """
        Args:
            tempo:    Playback tempo in beats per minute.
            velocity: MIDI note-on velocity.
            program:  General MIDI instrument (0-127) for the melody track.
        """
        self.tempo = tempo
        self.velocity = velocity
        self.program = program

    def build(self, sheet: Sheet) -> MIDIFile:
        """Build the in-memory MIDI file for *sheet*."""
        midi = MIDIFile(numTracks=2, removeDuplicates=False, deinterleave=False)
        midi.addTempo(TRACK_CONDUCTOR, 0, self.tempo)
        midi.addTrackName(TRACK_MELODY, 0, sheet.title)
        midi.addProgramChange(TRACK_MELODY, CHANNEL_MELODY, 0, self.program)

        beat = 0.0
        for note in sheet.all_notes:
            duration = float(note.duration)
            if duration > 0:
                midi.addNote(
                    track=TRACK_MELODY,
                    channel=CHANNEL_MELODY,
                    pitch=note_name_to_midi(note.pitch),
                    time=beat,
                    duration=duration,
                    volume=self.velocity,
                )
            beat += duration
        return midi

    def export(self, sheet: Sheet, output_path: str) -> None:
        """
        Render *sheet* to a Standard MIDI File.

        Raises:
            OSError: If the output file cannot be opened for writing.
        """
        midi = self.build(sheet)
        with open(output_path, "wb") as f:
            midi.writeFile(f)
