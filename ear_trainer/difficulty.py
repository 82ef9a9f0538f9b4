"""Progressive difficulty ladder.

A streak of consecutive pitch-perfect rounds unlocks harder exercises. The
ladder is a hand-authored table of :class:`DifficultyLevel` records sorted by
the streak each level requires; lookups are plain table scans. Thresholds
and overrides are data and may be tuned without touching the functions
below, which all accept an alternative ``levels`` table.

Overrides only carry auto-scaled fields (note count, maximum interval,
rhythm mode, tempo and allowed durations). The user's key, scale and octave
cannot be expressed by :class:`ConfigOverride` and are therefore never
changed by the ladder.

Example
-------
>>> level_for_streak(4).name
'Easy'
>>> sorted(changed_fields(2, 3))
['max_interval_semitones', 'note_count']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Sequence

from .models import ConfigOverride, DifficultyLevel

__all__ = [
    "DIFFICULTY_LEVELS",
    "LevelDescription",
    "base_override",
    "changed_fields",
    "config_override_for_streak",
    "describe_level",
    "level_for_streak",
    "next_level_after",
    "validate_levels",
]

_ALL_DURATIONS = (0.5, 1.0, 1.5, 2.0)

DIFFICULTY_LEVELS: Sequence[DifficultyLevel] = (
    DifficultyLevel(1, "Beginner", 0, ConfigOverride(
        note_count=3, max_interval_semitones=3, rhythm_mode_enabled=False, tempo_bpm=100)),
    DifficultyLevel(2, "Easy", 3, ConfigOverride(
        note_count=4, max_interval_semitones=5, rhythm_mode_enabled=False, tempo_bpm=100)),
    DifficultyLevel(3, "Moderate", 6, ConfigOverride(
        note_count=4, max_interval_semitones=7, rhythm_mode_enabled=False, tempo_bpm=100)),
    DifficultyLevel(4, "Intermediate", 10, ConfigOverride(
        note_count=5, max_interval_semitones=7, rhythm_mode_enabled=True, tempo_bpm=100,
        allowed_durations=(0.5, 1.0))),
    DifficultyLevel(5, "Challenging", 15, ConfigOverride(
        note_count=5, max_interval_semitones=9, rhythm_mode_enabled=True, tempo_bpm=110,
        allowed_durations=(0.5, 1.0, 2.0))),
    DifficultyLevel(6, "Advanced", 20, ConfigOverride(
        note_count=6, max_interval_semitones=9, rhythm_mode_enabled=True, tempo_bpm=120,
        allowed_durations=_ALL_DURATIONS)),
    DifficultyLevel(7, "Expert", 26, ConfigOverride(
        note_count=7, max_interval_semitones=12, rhythm_mode_enabled=True, tempo_bpm=140,
        allowed_durations=_ALL_DURATIONS)),
    DifficultyLevel(8, "Master", 33, ConfigOverride(
        note_count=8, max_interval_semitones=12, rhythm_mode_enabled=True, tempo_bpm=160,
        allowed_durations=_ALL_DURATIONS)),
)

# Labels for the interval sizes used by the table.
INTERVAL_LABELS = {
    3: "Minor 3rd",
    5: "Perfect 4th",
    7: "Perfect 5th",
    9: "Major 6th",
    12: "Octave",
}

DURATION_LABELS = {0.5: "8th", 1.0: "Qtr", 1.5: "Dot Qtr", 2.0: "Half"}


def validate_levels(levels: Sequence[DifficultyLevel]) -> Sequence[DifficultyLevel]:
    """Return ``levels`` after checking the table is well formed.

    Raises
    ------
    ValueError
        If the table is empty, does not start at streak ``0`` or is not
        strictly ascending in both streak and level number.
    """

    if not levels:
        raise ValueError("levels must not be empty")
    if levels[0].streak_required != 0:
        raise ValueError("the first level must require a streak of 0")
    for prev, curr in zip(levels, levels[1:]):
        if curr.streak_required <= prev.streak_required:
            raise ValueError("streak thresholds must be strictly ascending")
        if curr.level_number <= prev.level_number:
            raise ValueError("level numbers must be strictly ascending")
    return levels


def level_for_streak(
    streak: int, levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS
) -> DifficultyLevel:
    """Return the highest level whose threshold ``streak`` has reached.

    Streaks below the first threshold map to the first level.
    """

    best = levels[0]
    for level in levels:
        if streak >= level.streak_required:
            best = level
    return best


def next_level_after(
    streak: int, levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS
) -> Optional[DifficultyLevel]:
    """Return the level following the one for ``streak`` or ``None`` at the top."""

    current = level_for_streak(streak, levels)
    position = list(levels).index(current) + 1
    if position >= len(levels):
        return None
    return levels[position]


def config_override_for_streak(
    streak: int, levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS
) -> ConfigOverride:
    """Return the configuration override for ``streak``."""

    return level_for_streak(streak, levels).config_override


def base_override(levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS) -> ConfigOverride:
    """Return the first level's override, applied whenever a streak resets."""

    return levels[0].config_override


def changed_fields(
    from_streak: int,
    to_streak: int,
    levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS,
) -> FrozenSet[str]:
    """Return the override fields whose values differ between two streaks.

    A field set by only one of the two overrides counts as changed.
    """

    before = config_override_for_streak(from_streak, levels)
    after = config_override_for_streak(to_streak, levels)
    names = before.present_fields() | after.present_fields()
    return frozenset(n for n in names if getattr(before, n) != getattr(after, n))


@dataclass(frozen=True)
class LevelDescription:
    """Human-readable summary of a level's settings."""

    notes: str
    max_leap: str
    rhythm: str
    tempo: str


def describe_level(level: DifficultyLevel) -> LevelDescription:
    """Return display labels for ``level``."""

    override = level.config_override
    notes = f"{override.note_count if override.note_count is not None else '?'} notes"
    interval = override.max_interval_semitones
    max_leap = INTERVAL_LABELS.get(interval, f"{interval} semitones") if interval else "?"
    if override.rhythm_mode_enabled:
        durations = override.allowed_durations or _ALL_DURATIONS
        rhythm = ", ".join(DURATION_LABELS.get(d, f"{d:g} beats") for d in durations)
    else:
        rhythm = "Off"
    tempo_value = override.tempo_bpm
    tempo = f"{tempo_value:g} BPM" if tempo_value is not None else "? BPM"
    return LevelDescription(notes, max_leap, rhythm, tempo)
