"""Scale and key tables used to build exercise melodies.

The generator never computes scales itself. It asks a *scale provider* for
two things: the sorted in-scale MIDI pitches within a range and the pitch
classes of the tonic triad. :class:`StandardScales` answers both questions
from the tables below; tests substitute small fakes implementing the
:class:`ScaleProvider` protocol.

Unknown keys or scales yield empty results (with a warning) rather than
exceptions so melody generation can fall back to a fixed fragment. The
``canonical_*`` helpers raise ``ValueError`` and are used wherever user input
is validated.

Example
-------
>>> scale_pitches_in_range("C", "pentatonic", 60, 72)
[60, 62, 64, 67, 69, 72]
>>> sorted(tonic_triad_pitch_classes("A", "natural minor"))
[0, 4, 9]
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, FrozenSet, List, Protocol, Tuple

from .note_utils import FLAT_NOTES, NOTE_TO_SEMITONE

__all__ = [
    "KEYS",
    "SCALE_PATTERNS",
    "ScaleProvider",
    "StandardScales",
    "canonical_key",
    "canonical_scale",
    "key_prefers_flats",
    "scale_pitches_in_range",
    "tonic_triad_pitch_classes",
]

logger = logging.getLogger(__name__)

# Roots offered to users. Spellings follow the conventional key signatures
# (flats for Db/Eb/Ab/Bb, sharp for F#).
KEYS: List[str] = ["C", "Db", "D", "Eb", "E", "F", "F#", "G", "Ab", "A", "Bb", "B"]

# Mapping of scale name to semitone offsets from the root.
SCALE_PATTERNS: Dict[str, Tuple[int, ...]] = {
    "major": (0, 2, 4, 5, 7, 9, 11),
    "natural minor": (0, 2, 3, 5, 7, 8, 10),
    "harmonic minor": (0, 2, 3, 5, 7, 8, 11),
    # Major pentatonic; five degrees give a shorter pitch set per octave.
    "pentatonic": (0, 2, 4, 7, 9),
    # Major blues adds the flat third passing tone to the pentatonic.
    "blues": (0, 2, 3, 4, 7, 9),
    "chromatic": tuple(range(12)),
}

# Scales whose tonic triad is minor. Everything else uses a major triad.
_MINOR_TRIAD_SCALES = frozenset({"natural minor", "harmonic minor"})

_CANONICAL_SCALES = {name.lower(): name for name in SCALE_PATTERNS}


class ScaleProvider(Protocol):
    """Interface the melody generator expects from a scale source."""

    def scale_pitches_in_range(
        self, key: str, scale_name: str, low: int, high: int
    ) -> List[int]:
        ...

    def tonic_triad_pitch_classes(self, key: str, scale_name: str) -> FrozenSet[int]:
        ...


@lru_cache(maxsize=None)
def canonical_key(name: str) -> str:
    """Return the canonical spelling for ``name``.

    Enharmonic spellings map to the entry in :data:`KEYS` (``C#`` → ``Db``)
    and capitalisation is ignored.

    Raises
    ------
    ValueError
        If ``name`` is not a pitch name.
    """

    cleaned = name.strip()
    if cleaned:
        cleaned = cleaned[0].upper() + cleaned[1:].lower()
    semitone = NOTE_TO_SEMITONE.get(cleaned)
    if semitone is None:
        raise ValueError(f"Unknown key: {name}")
    return KEYS[semitone]


@lru_cache(maxsize=None)
def canonical_scale(name: str) -> str:
    """Return the scale name from :data:`SCALE_PATTERNS` matching ``name``.

    Raises
    ------
    ValueError
        If ``name`` is not a known scale.
    """

    scale = _CANONICAL_SCALES.get(" ".join(name.strip().lower().split()))
    if scale is None:
        raise ValueError(f"Unknown scale: {name}")
    return scale


def _root_and_scale(key: str, scale_name: str) -> Tuple[int, str]:
    """Resolve ``key``/``scale_name`` to ``(root_pitch_class, scale)``."""

    root = KEYS.index(canonical_key(key))
    return root, canonical_scale(scale_name)


@lru_cache(maxsize=256)
def _pitches(key: str, scale_name: str, low: int, high: int) -> Tuple[int, ...]:
    try:
        root, scale = _root_and_scale(key, scale_name)
    except ValueError:
        logger.warning("No scale available for key=%r scale=%r", key, scale_name)
        return ()
    classes = {(root + offset) % 12 for offset in SCALE_PATTERNS[scale]}
    return tuple(m for m in range(max(0, low), min(127, high) + 1) if m % 12 in classes)


def scale_pitches_in_range(key: str, scale_name: str, low: int, high: int) -> List[int]:
    """Return sorted in-scale MIDI pitches between ``low`` and ``high``.

    Both bounds are inclusive and clipped to ``0-127``. An empty list is
    returned for unknown keys or scales.
    """

    return list(_pitches(key, scale_name, low, high))


@lru_cache(maxsize=None)
def tonic_triad_pitch_classes(key: str, scale_name: str) -> FrozenSet[int]:
    """Return the root, third and fifth pitch classes of the tonic triad.

    Minor scales use a minor third, every other scale a major third. An
    unknown key or scale yields an empty set.
    """

    try:
        root, scale = _root_and_scale(key, scale_name)
    except ValueError:
        logger.warning("No tonic triad for key=%r scale=%r", key, scale_name)
        return frozenset()
    third = 3 if scale in _MINOR_TRIAD_SCALES else 4
    return frozenset({root, (root + third) % 12, (root + 7) % 12})


class StandardScales:
    """Default :class:`ScaleProvider` backed by :data:`SCALE_PATTERNS`."""

    def scale_pitches_in_range(
        self, key: str, scale_name: str, low: int, high: int
    ) -> List[int]:
        return scale_pitches_in_range(key, scale_name, low, high)

    def tonic_triad_pitch_classes(self, key: str, scale_name: str) -> FrozenSet[int]:
        return tonic_triad_pitch_classes(key, scale_name)


def key_prefers_flats(key: str) -> bool:
    """``True`` when ``key`` is conventionally spelled with flats."""

    try:
        name = canonical_key(key)
    except ValueError:
        return False
    return name == "F" or (name in FLAT_NOTES and "b" in name)
