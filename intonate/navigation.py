"""NavigationEngine: cursor, measure jumps and bookmarks over a parsed Sheet."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from intonate.sheet_models import Note, Sheet

logger = logging.getLogger(__name__)

#: Fixed key under which the bookmark is persisted.
BOOKMARK_KEY = "violin-companion-bookmark"


# ── Bookmark storage ─────────────────────────────────────────────────────────

class BookmarkStore(ABC):
    """Durable storage for the single bookmarked note index."""

    @abstractmethod
    def load(self) -> int:
        """Return the stored index, or 0 when nothing usable is stored."""

    @abstractmethod
    def save(self, index: int) -> None:
        """Persist *index*, replacing any previous value."""


class InMemoryBookmarkStore(BookmarkStore):
    """Process-local store; the default when no durable store is injected."""

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self.save_count = 0

    def load(self) -> int:
        return self.index

    def save(self, index: int) -> None:
        self.index = index
        self.save_count += 1


class JsonFileBookmarkStore(BookmarkStore):
    """
    Keeps the bookmark in a small JSON key-value file.

    The value is stored as a string under BOOKMARK_KEY. Missing, unreadable
    or non-numeric content loads as 0; other keys in the file are preserved.
    """

    def __init__(self, path: str | os.PathLike[str], key: str = BOOKMARK_KEY) -> None:
        self.path = Path(path)
        self.key = key

    def _read(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable bookmark file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> int:
        raw = self._read().get(self.key)
        if raw is None:
            return 0
        try:
            return int(str(raw).strip())
        except ValueError:
            logger.warning("Ignoring non-numeric bookmark value %r", raw)
            return 0

    def save(self, index: int) -> None:
        """
        Write *index* to disk.

        Raises:
            OSError: If the file cannot be written.
        """
        data = self._read()
        data[self.key] = str(index)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh)


# ── Navigation ───────────────────────────────────────────────────────────────

class NavigationEngine:
    """
    Tracks the practice position within a Sheet.

    The cursor is a note index: ``0 <= cursor < len(sheet.all_notes)`` while a
    sheet is loaded (0 for an empty sheet) and None before the first load.
    Every movement clamps to the piece; none of them wraps or raises.

    Usage:

        engine = NavigationEngine(JsonFileBookmarkStore(path))
        engine.load_sheet(parse_notation(text))
        if engine.check_note("G4"):
            ...  # cursor moved on to the next note
    """

    def __init__(self, store: BookmarkStore | None = None) -> None:
        self.store = store if store is not None else InMemoryBookmarkStore()
        self._sheet: Sheet | None = None
        self._cursor: int | None = None
        self._bookmark = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def sheet(self) -> Sheet | None:
        return self._sheet

    @property
    def cursor(self) -> int | None:
        return self._cursor

    @property
    def bookmark(self) -> int:
        return self._bookmark

    @property
    def current_note(self) -> Note | None:
        """The note under the cursor, or None when nothing is loaded."""
        if self._sheet is None or self._cursor is None or self._sheet.is_empty:
            return None
        return self._sheet.all_notes[self._cursor]

    @property
    def is_finished(self) -> bool:
        """True when the cursor sits on the last note of a non-empty sheet."""
        if self._sheet is None or self._sheet.is_empty:
            return False
        return self._cursor == self._sheet.note_count - 1

    def _notes(self) -> tuple[Note, ...]:
        return self._sheet.all_notes if self._sheet is not None else ()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_sheet(self, sheet: Sheet) -> None:
        """
        Replace the current piece and place the cursor on the stored bookmark.

        A bookmark outside the new piece is reset to 0 and saved again.
        """
        self._sheet = sheet
        bookmark = self.store.load()
        if not 0 <= bookmark < sheet.note_count:
            logger.info(
                "Bookmark %d is outside '%s' (%d notes); resetting to 0",
                bookmark,
                sheet.title,
                sheet.note_count,
            )
            bookmark = 0
            self.store.save(bookmark)
        self._bookmark = bookmark
        self._cursor = bookmark

    # ------------------------------------------------------------------
    # Note-wise movement
    # ------------------------------------------------------------------

    def previous_note(self) -> None:
        if self._cursor is not None and self._cursor > 0:
            self._cursor -= 1

    def next_note(self) -> None:
        if self._cursor is not None and self._cursor < len(self._notes()) - 1:
            self._cursor += 1

    def reset(self) -> None:
        if self._sheet is not None:
            self._cursor = 0

    # ------------------------------------------------------------------
    # Measure-wise movement
    # ------------------------------------------------------------------

    def previous_measure(self) -> None:
        """Jump to the first note of the previous measure, or to the start of the piece."""
        note = self.current_note
        if note is None:
            return
        notes = self._notes()

        target_measure = None
        for i in range(note.index - 1, -1, -1):
            if notes[i].measure < note.measure:
                target_measure = notes[i].measure
                break

        if target_measure is None:
            self._cursor = 0
            return
        self._cursor = next(n.index for n in notes if n.measure == target_measure)

    def next_measure(self) -> None:
        """Jump to the first note of the next measure; stays put in the final measure."""
        note = self.current_note
        if note is None:
            return
        for candidate in self._notes()[note.index + 1 :]:
            if candidate.measure > note.measure:
                self._cursor = candidate.index
                return

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    def set_bookmark(self) -> None:
        """Remember the cursor position and persist it."""
        if self._cursor is None:
            return
        self._bookmark = self._cursor
        self.store.save(self._bookmark)

    def go_to_bookmark(self) -> None:
        if self._sheet is not None:
            self._cursor = self._bookmark

    # ------------------------------------------------------------------
    # Auto-advance
    # ------------------------------------------------------------------

    def check_note(self, detected: str) -> bool:
        """
        Advance to the next note if *detected* is the note under the cursor.

        Returns:
            True if the note matched (and the cursor advanced where possible).
        """
        note = self.current_note
        if note is None or detected != note.pitch:
            return False
        self.next_note()
        return True
