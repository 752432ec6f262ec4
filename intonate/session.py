"""PracticeSession: live pitch feedback, optionally following a sheet note by note."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace

import numpy as np

from intonate.audio_capture import AudioSource
from intonate.config import DEFAULT_CONFIG, PracticeConfig
from intonate.navigation import NavigationEngine
from intonate.pitch import NO_NOTE, evaluate_tuning, name_frequency
from intonate.pitch_estimator import PitchEstimator, PitchSample

logger = logging.getLogger(__name__)

StateListener = Callable[["SessionState"], None]


@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of a practice session.

    Attributes:
        listening:   True between start() and stop().
        note:        Last detected note name, or NO_NOTE.
        frequency:   Last accepted frequency in Hz (0 when none).
        clarity:     Clarity of the last accepted frame (0 when none).
        target_note: Note the player is tuning against.
        in_tune:     Whether the last evaluation was within tolerance.
        cents:       Deviation of the last evaluation, None before the first one.
        cursor:      Navigation cursor when following a sheet, else None.
        finished:    True once the last note of the followed sheet was played.
    """

    listening: bool = False
    note: str = NO_NOTE
    frequency: float = 0.0
    clarity: float = 0.0
    target_note: str = DEFAULT_CONFIG.default_target
    in_tune: bool = False
    cents: float | None = None
    cursor: int | None = None
    finished: bool = False


class PracticeSession:
    """
    Couples an audio source and a pitch estimator into per-frame tuning feedback.

    Lifecycle
    ---------
    ``start()`` opens the source and runs a frame task that reads one buffer
    per ``config.frame_interval``, estimates its pitch and applies it.
    ``stop()`` cancels the task, releases the source and clears the detected
    pitch. Both are idempotent. Frames are applied one at a time under a lock
    that ``stop()`` also takes, so no frame is applied once ``stop()`` returns.

    Frames whose clarity does not exceed ``config.clarity_threshold`` are
    discarded. Accepted frames update the detected note, re-evaluate tuning
    against the target and, when a NavigationEngine is attached, each note
    onset is passed to its ``check_note`` so the cursor follows the player;
    the target note then moves on to the note under the cursor. A note counts
    as a new onset when it differs from the last accepted note or follows a
    discarded frame, so a sustained note matches only once.
    """

    def __init__(
        self,
        source: AudioSource,
        estimator: PitchEstimator,
        navigator: NavigationEngine | None = None,
        config: PracticeConfig = DEFAULT_CONFIG,
    ) -> None:
        self.source = source
        self.estimator = estimator
        self.navigator = navigator
        self.config = config

        self._state = SessionState(target_note=config.default_target)
        self._lock = threading.RLock()
        self._listeners: list[StateListener] = []
        self._cancel: threading.Event | None = None
        self._worker: threading.Thread | None = None
        self._held_note: str | None = None

    # ------------------------------------------------------------------
    # State and subscriptions
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state.listening

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Call *listener* with every new SessionState.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: SessionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    # ------------------------------------------------------------------
    # Frame handling
    # ------------------------------------------------------------------

    def _retune(self, state: SessionState) -> SessionState:
        """Re-evaluate *state*'s frequency against its target; unknown targets change nothing."""
        if state.frequency <= 0:
            return state
        result = evaluate_tuning(state.frequency, state.target_note, self.config.in_tune_cents)
        if result is None:
            return state
        return replace(state, in_tune=result.in_tune, cents=result.cents)

    def process_sample(self, sample: PitchSample) -> bool:
        """
        Apply one pitch sample to the session.

        Returns:
            True if the sample was accepted, False if it was discarded
            (not listening, no pitch, or clarity at or below the threshold).
        """
        with self._lock:
            if not self._state.listening:
                return False
            return self._apply(sample)

    def process_buffer(self, buffer: np.ndarray) -> bool:
        """Estimate the pitch of *buffer* and apply it. See process_sample()."""
        sample = self.estimator.estimate(buffer, self.source.sample_rate)
        return self.process_sample(sample)

    def _apply(self, sample: PitchSample) -> bool:
        if not sample.has_pitch or sample.clarity <= self.config.clarity_threshold:
            self._held_note = None
            return False

        frequency = float(sample.frequency)  # type: ignore[arg-type]
        note = name_frequency(frequency)
        state = replace(self._state, frequency=frequency, clarity=sample.clarity, note=note)
        state = self._retune(state)

        # Only the onset of a note reaches the navigator; a held note matches once.
        onset = note != self._held_note
        self._held_note = note
        if self.navigator is not None and onset:
            was_last = self.navigator.is_finished
            if self.navigator.check_note(note):
                logger.debug("Matched %s, cursor now %s", note, self.navigator.cursor)
                state = self._follow_cursor(state, finished=state.finished or was_last)
        self._publish(state)
        return True

    def _follow_cursor(self, state: SessionState, finished: bool = False) -> SessionState:
        """Point the target at the note under the navigation cursor."""
        note = self.navigator.current_note if self.navigator is not None else None
        if note is None:
            return state
        return replace(state, cursor=note.index, target_note=note.pitch, finished=finished)

    def _run(self, cancel: threading.Event) -> None:
        """Frame task: one buffer per frame until *cancel* is set."""
        while not cancel.is_set():
            try:
                buffer = self.source.read()
            except Exception:
                if cancel.is_set():
                    return
                logger.exception("Reading from the audio source failed; stopping")
                self.stop()
                return
            if buffer is not None:
                try:
                    sample = self.estimator.estimate(buffer, self.source.sample_rate)
                except Exception:
                    logger.exception("Pitch estimation failed; skipping frame")
                    sample = None
                if sample is not None:
                    with self._lock:
                        if cancel.is_set():
                            break
                        self._apply(sample)
            cancel.wait(self.config.frame_interval)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, run_loop: bool = True) -> None:
        """
        Open the audio source and begin listening. No-op if already listening.

        Args:
            run_loop: Start the background frame task. Pass False to drive the
                      session manually with process_buffer()/process_sample().

        Raises:
            AudioCaptureError: If the source cannot be opened; the session
                stays stopped.
        """
        with self._lock:
            if self._state.listening:
                return
            self.source.open()
            self._held_note = None
            state = replace(self._state, listening=True, finished=False)
            self._publish(self._follow_cursor(state))

            if run_loop:
                cancel = threading.Event()
                worker = threading.Thread(
                    target=self._run, args=(cancel,), name="intonate-frames", daemon=True
                )
                self._cancel, self._worker = cancel, worker
                worker.start()
        logger.info("Listening started (target %s)", self._state.target_note)

    def stop(self) -> None:
        """Stop listening and release the audio source. Safe to call at any time."""
        cancel, worker = self._cancel, self._worker
        if cancel is not None:
            cancel.set()

        was_listening = False
        try:
            with self._lock:
                was_listening = self._state.listening
                self._held_note = None
                self._publish(
                    replace(
                        self._state,
                        listening=False,
                        note=NO_NOTE,
                        frequency=0.0,
                        clarity=0.0,
                        in_tune=False,
                        cents=None,
                    )
                )
            if worker is not None and worker is not threading.current_thread():
                worker.join(timeout=max(1.0, 10 * self.config.frame_interval))
        finally:
            self._cancel = self._worker = None
            self.source.close()

        if was_listening:
            logger.info("Listening stopped")

    def set_target_note(self, note: str) -> None:
        """Change the target note; the held frequency is re-evaluated at once."""
        with self._lock:
            self._publish(self._retune(replace(self._state, target_note=note)))

    def __enter__(self) -> PracticeSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
