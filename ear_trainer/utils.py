"""Parsing helpers shared by the command line and web front ends.

Both interfaces accept melodies as comma separated text (``"C4,D4,E4"`` or
``"60,62,64"``) and JSON lists. Keeping the conversion here means they report
identical error messages for the same bad input.

Usage Example
-------------
>>> parse_note_list("C4, 62 ,E4")
[60, 62, 64]
>>> build_melody([60, 62], [1, 0.5])
[MelodyNote(pitch=60, duration_beats=1.0), MelodyNote(pitch=62, duration_beats=0.5)]
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Union

from .models import Melody, MelodyNote, PlayedNote
from .note_utils import midi_to_note, parse_note

__all__ = [
    "build_melody",
    "build_played",
    "format_melody",
    "parse_float_list",
    "parse_note_list",
]


def _split(text: str) -> List[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def parse_note_list(value: Union[str, Iterable[Union[str, int]]]) -> List[int]:
    """Return MIDI numbers for a comma separated string or a list of tokens.

    Raises
    ------
    ValueError
        If any token is neither a note name nor a MIDI number.
    """

    tokens = _split(value) if isinstance(value, str) else list(value)
    pitches: List[int] = []
    for token in tokens:
        if isinstance(token, bool):
            raise ValueError(f"Invalid note: {token!r}")
        if isinstance(token, int):
            if not 0 <= token <= 127:
                raise ValueError(f"MIDI note {token} out of range 0-127")
            pitches.append(token)
        else:
            pitches.append(parse_note(str(token)))
    return pitches


def parse_float_list(value: Union[str, Iterable[Union[str, float]]], what: str) -> List[float]:
    """Return floats from a comma separated string or list; ``what`` names them in errors."""

    tokens = _split(value) if isinstance(value, str) else list(value)
    try:
        return [float(token) for token in tokens]
    except (TypeError, ValueError):
        raise ValueError(f"{what} must be numbers") from None


def build_melody(pitches: Sequence[int], durations: Optional[Sequence[float]] = None) -> Melody:
    """Pair ``pitches`` with ``durations`` (beats) into a melody.

    Raises
    ------
    ValueError
        If the two lists differ in length or a duration is not positive.
    """

    if durations is None:
        return [MelodyNote(p) for p in pitches]
    if len(durations) != len(pitches):
        raise ValueError("durations must have one value per target note")
    if any(d <= 0 for d in durations):
        raise ValueError("durations must be positive")
    return [MelodyNote(p, float(d)) for p, d in zip(pitches, durations)]


def build_played(
    pitches: Sequence[int], onsets: Optional[Sequence[float]] = None
) -> List[PlayedNote]:
    """Pair played ``pitches`` with onsets in seconds.

    Without onsets every note is placed at ``0.0``, which is only meaningful
    when rhythm is not scored.
    """

    if onsets is None:
        return [PlayedNote(p, 0.0) for p in pitches]
    if len(onsets) != len(pitches):
        raise ValueError("onsets must have one value per played note")
    return [PlayedNote(p, float(t)) for p, t in zip(pitches, onsets)]


def format_melody(melody: Melody, prefer_flats: bool = False) -> str:
    """Return ``melody`` as note names, adding ``:beats`` when durations exist."""

    parts = []
    for note in melody:
        name = midi_to_note(note.pitch, prefer_flats=prefer_flats)
        if note.duration_beats is not None:
            name = f"{name}:{note.duration_beats:g}"
        parts.append(name)
    return " ".join(parts)
