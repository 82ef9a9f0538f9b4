"""Utility functions for translating note names to MIDI numbers.

The helpers are shared by the CLI, the web API and the scale tables so every
entry point accepts the same spellings (``C#4``, ``Db4``, ``c-1`` ...).

Example
-------
>>> from ear_trainer.note_utils import note_to_midi, midi_to_note
>>> note_to_midi("C4")
60
>>> midi_to_note(61, prefer_flats=True)
'Db4'
"""

# Modification Summary
# ---------------------
# * ``parse_note`` accepts either a note name or a bare MIDI number so played
#   sequences typed on the command line can mix both forms.
# * ``midi_to_note`` gained a ``prefer_flats`` switch used when labelling
#   melodies in flat keys.

from __future__ import annotations

import logging
import re
from functools import lru_cache

__all__ = [
    "NOTE_TO_SEMITONE",
    "NOTES",
    "FLAT_NOTES",
    "note_to_midi",
    "midi_to_note",
    "pitch_class",
    "get_interval",
    "parse_note",
]

logger = logging.getLogger(__name__)

# NOTE_TO_SEMITONE maps both sharp and flat spellings to the semitone offset
# within an octave so enharmonic names resolve to the same pitch.
NOTE_TO_SEMITONE = {
    "C": 0,
    "B#": 0,
    "C#": 1,
    "Db": 1,
    "D": 2,
    "D#": 3,
    "Eb": 3,
    "E": 4,
    "Fb": 4,
    "E#": 5,
    "F": 5,
    "F#": 6,
    "Gb": 6,
    "G": 7,
    "G#": 8,
    "Ab": 8,
    "A": 9,
    "A#": 10,
    "Bb": 10,
    "B": 11,
    "Cb": 11,
}

NOTES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
FLAT_NOTES = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]


@lru_cache(maxsize=None)
def note_to_midi(note: str) -> int:
    """Convert a note string such as ``C#4`` into a MIDI number.

    Parameters
    ----------
    note:
        Note name including octave. Octaves may be negative (``C-1``).

    Returns
    -------
    int
        MIDI note number in the range ``0-127``.

    Raises
    ------
    ValueError
        If ``note`` is malformed or the computed value falls outside ``0-127``.
    """

    match = re.fullmatch(r"([A-Ga-g][#b]?)(-?\d+)", note.strip())
    if not match:
        logger.error("Invalid note format: %s", note)
        raise ValueError(f"Invalid note format: {note}")

    note_name, octave_str = match.groups()
    note_name = note_name[0].upper() + note_name[1:]
    # MIDI octave numbers are offset by one relative to scientific pitch
    # notation so C4 lands on 60.
    octave = int(octave_str) + 1

    try:
        note_idx = NOTE_TO_SEMITONE[note_name]
    except KeyError:
        logger.error("Unknown note name: %s", note_name)
        raise ValueError(f"Unknown note name: {note_name}")

    midi_val = note_idx + octave * 12
    if not 0 <= midi_val <= 127:
        logger.error("MIDI value out of range: %s -> %d", note, midi_val)
        raise ValueError(
            f"Computed MIDI value {midi_val} out of range 0-127 for note {note}"
        )
    return midi_val


def midi_to_note(midi_note: int, prefer_flats: bool = False) -> str:
    """Convert a MIDI number into a note name such as ``C4``.

    Raises
    ------
    ValueError
        If ``midi_note`` is outside the inclusive ``0-127`` range.

    Examples
    --------
    >>> midi_to_note(60)
    'C4'
    >>> midi_to_note(-1)
    Traceback (most recent call last):
        ...
    ValueError: MIDI note -1 out of range 0-127
    """

    if not 0 <= midi_note <= 127:
        raise ValueError(f"MIDI note {midi_note} out of range 0-127")
    names = FLAT_NOTES if prefer_flats else NOTES
    return f"{names[midi_note % 12]}{midi_note // 12 - 1}"


def pitch_class(midi_note: int) -> int:
    """Return the pitch class (0 = C) of ``midi_note``."""

    return midi_note % 12


def get_interval(note1: int, note2: int) -> int:
    """Return the distance between two MIDI numbers in semitones."""

    return abs(note1 - note2)


def parse_note(token: str) -> int:
    """Return the MIDI number for ``token`` which may be ``"61"`` or ``"C#4"``."""

    token = token.strip()
    if re.fullmatch(r"\d+", token):
        value = int(token)
        if not 0 <= value <= 127:
            raise ValueError(f"MIDI note {value} out of range 0-127")
        return value
    return note_to_midi(token)
