"""NotationParser: turns compact ABC-style notation text into a navigable Sheet.

Format
------
Plain text, one directive or run of notes per line::

    T:Twinkle Twinkle Little Star
    C:Traditional
    M:4/4
    K:C
    % comment lines start with a percent sign
    C C G G | A A G2 | F F E E | D D C2 |

``T:``/``C:``/``K:``/``M:`` set the title, composer, key and time signature.
Every other non-blank line contributes note tokens; ``|`` separates measures.

Tokens
------
Uppercase letters are octave 4, lowercase octave 5. ``^`` raises C, D, F, G
and A by a semitone. ``_`` is accepted on D, E, G, A and B but yields the
natural pitch (flats are not lowered). A trailing duration such as ``2``,
``1/2`` or ``1.5`` gives the length in quarter-note beats (default 1).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from typing import Final

from intonate.sheet_models import (
    DEFAULT_KEY,
    DEFAULT_TIME_SIGNATURE,
    DEFAULT_TITLE,
    Measure,
    Note,
    Sheet,
)

MEASURE_SEPARATOR: Final[str] = "|"
COMMENT_PREFIX: Final[str] = "%"
DEFAULT_DURATION: Final[Fraction] = Fraction(1)

_METADATA_FIELDS: Final[dict[str, str]] = {
    "T:": "title",
    "C:": "composer",
    "K:": "key",
    "M:": "time_signature",
}

_DURATION_SUFFIX_RE = re.compile(r"[0-9/.]+$")
# Leading number of a suffix part; anything after it is ignored ("2." -> 2).
_LEADING_INT_RE = re.compile(r"\d+")
_LEADING_DECIMAL_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def _build_pitch_table() -> dict[str, str]:
    table: dict[str, str] = {}
    for letter in "CDEFGAB":
        table[letter] = f"{letter}4"
        table[letter.lower()] = f"{letter}5"
    for letter in "CDFGA":
        table[f"^{letter}"] = f"{letter}#4"
        table[f"^{letter.lower()}"] = f"{letter}#5"
    # Flats keep the natural pitch of their letter.
    for letter in "DEGAB":
        table[f"_{letter}"] = f"{letter}4"
        table[f"_{letter.lower()}"] = f"{letter}5"
    return table


#: Every letter-form the parser understands, mapped to its note name.
PITCH_TABLE: Final[dict[str, str]] = _build_pitch_table()


@dataclass(frozen=True)
class ParseDiagnostic:
    """A token that could not be turned into a note."""

    token: str
    measure: int
    reason: str


def split_duration(token: str) -> tuple[str, Fraction]:
    """
    Split *token* into its letter-form and duration in quarter-note beats.

    A fraction is read from the leading integers of its first two parts, so
    ``"1/2/3"`` and ``"1/2."`` are both a half beat; a plain number from its
    leading decimal (``"1.5.2"`` is 1.5). A suffix without a usable number
    (``"/"``, ``"/2"``, ``"3/"``, ``"1/0"``) yields the default duration.

    Examples:
        >>> split_duration("G2")
        ('G', Fraction(2, 1))
        >>> split_duration("^f1/2")
        ('^f', Fraction(1, 2))
    """
    match = _DURATION_SUFFIX_RE.search(token)
    if not match:
        return token, DEFAULT_DURATION

    suffix = match.group(0)
    letter_form = token[: -len(suffix)]
    return letter_form, _read_duration(suffix)


def _read_duration(suffix: str) -> Fraction:
    if "/" in suffix:
        parts = suffix.split("/")
        numerator = _LEADING_INT_RE.match(parts[0])
        denominator = _LEADING_INT_RE.match(parts[1])
        if not numerator or not denominator or int(denominator.group(0)) == 0:
            return DEFAULT_DURATION
        return Fraction(int(numerator.group(0)), int(denominator.group(0)))

    number = _LEADING_DECIMAL_RE.match(suffix)
    if not number:
        return DEFAULT_DURATION
    return Fraction(number.group(0).rstrip("."))


class TokenResolver(ABC):
    """
    Strategy for turning one whitespace-separated token into a Note.

    The parser owns measure segmentation and index bookkeeping; resolvers only
    decide what a single token means.
    """

    @abstractmethod
    def resolve(self, token: str, measure: int, index: int) -> Note | None:
        """
        Resolve *token* found in *measure*.

        Args:
            token:   Raw token text, e.g. ``"^c1/2"``.
            measure: Zero-based measure position.
            index:   Index the note receives if the token resolves.

        Returns:
            The parsed Note, or None to drop the token.
        """


class LenientTokenResolver(TokenResolver):
    """Resolve tokens through PITCH_TABLE, silently dropping anything unknown."""

    def resolve(self, token: str, measure: int, index: int) -> Note | None:
        letter_form, duration = split_duration(token)
        pitch = PITCH_TABLE.get(letter_form)
        if pitch is None:
            return None
        return Note(pitch=pitch, duration=duration, measure=measure, index=index)


class StrictTokenResolver(LenientTokenResolver):
    """Lenient resolution that also records a diagnostic for each dropped token."""

    def __init__(self) -> None:
        self.diagnostics: list[ParseDiagnostic] = []

    def resolve(self, token: str, measure: int, index: int) -> Note | None:
        note = super().resolve(token, measure, index)
        if note is None:
            letter_form, _ = split_duration(token)
            self.diagnostics.append(
                ParseDiagnostic(
                    token=token,
                    measure=measure,
                    reason=f"unknown note {letter_form!r}" if letter_form else "missing note letter",
                )
            )
        return note


def _split_lines(text: str) -> tuple[dict[str, str], str]:
    """Separate metadata directives from note text."""
    metadata: dict[str, str] = {}
    note_lines: list[str] = []

    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(COMMENT_PREFIX):
            continue
        field_name = _METADATA_FIELDS.get(trimmed[:2])
        if field_name is not None:
            metadata[field_name] = trimmed[2:].strip()
        else:
            note_lines.append(trimmed)

    return metadata, " ".join(note_lines)


def parse_notation(text: str, resolver: TokenResolver | None = None) -> Sheet:
    """
    Parse notation *text* into a Sheet.

    Never raises for malformed content: unknown tokens are handed to
    *resolver* (LenientTokenResolver by default) and dropped, and input
    without any notes produces an empty Sheet.
    """
    resolver = resolver or LenientTokenResolver()
    metadata, note_text = _split_lines(text)

    time_signature = metadata.get("time_signature") or DEFAULT_TIME_SIGNATURE
    segments = [s for s in note_text.split(MEASURE_SEPARATOR) if s.strip()]

    measures: list[Measure] = []
    next_index = 0
    for measure_number, segment in enumerate(segments):
        notes: list[Note] = []
        for token in segment.split():
            note = resolver.resolve(token, measure_number, next_index)
            if note is not None:
                notes.append(note)
                next_index += 1

        if notes:
            measures.append(
                Measure(
                    number=measure_number,
                    notes=tuple(notes),
                    time_signature=None if measures else time_signature,
                )
            )

    return Sheet.from_measures(
        measures,
        title=metadata.get("title") or DEFAULT_TITLE,
        composer=metadata.get("composer") or None,
        key=metadata.get("key") or DEFAULT_KEY,
        time_signature=time_signature,
    )
