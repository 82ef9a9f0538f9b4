"""Plain data containers shared by the generator, comparator and ladder.

Every record is a frozen :mod:`dataclasses` instance so melodies, results and
difficulty levels can be shared between rounds and used as dict keys.
Status values use string enums so they serialise to the same labels the web
API and CLI print (``"on-time"``, ``"missing"`` ...).

Example
-------
>>> cfg = DifficultyConfig(note_count=5)
>>> ConfigOverride(note_count=3, tempo_bpm=90).apply_to(cfg).note_count
3
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

__all__ = [
    "AUTO_SCALED_FIELDS",
    "ComparisonResult",
    "ConfigOverride",
    "DifficultyConfig",
    "DifficultyLevel",
    "Melody",
    "MelodyNote",
    "MIN_NOTE_COUNT",
    "MAX_NOTE_COUNT",
    "NoteStatus",
    "PlayedNote",
    "TimingStatus",
]

# Exercise length limits. The generator itself accepts any positive count but
# user-facing configuration is restricted to the range the ladder covers.
MIN_NOTE_COUNT = 3
MAX_NOTE_COUNT = 8


class NoteStatus(str, Enum):
    """Per-note pitch verdict."""

    CORRECT = "correct"
    WRONG = "wrong"
    MISSING = "missing"
    EXTRA = "extra"


class TimingStatus(str, Enum):
    """Per-note timing verdict used in rhythm mode."""

    ON_TIME = "on-time"
    EARLY = "early"
    LATE = "late"


@dataclass(frozen=True)
class MelodyNote:
    """A single target note.

    ``duration_beats`` is ``None`` for pitch-only melodies. Playback treats the
    missing value as a quarter note but the comparator never mixes the two
    modes within one melody.
    """

    pitch: int
    duration_beats: Optional[float] = None


Melody = List[MelodyNote]


@dataclass(frozen=True)
class PlayedNote:
    """A note captured from the input device.

    ``onset_seconds`` is measured from the instant recording started.
    """

    pitch: int
    onset_seconds: float


@dataclass(frozen=True)
class DifficultyConfig:
    """Parameters controlling a single exercise round.

    ``key``, ``scale_name`` and ``octave_base`` belong to the user. The
    difficulty ladder only ever touches the fields listed in
    :data:`AUTO_SCALED_FIELDS`.
    """

    note_count: int = 4
    scale_name: str = "major"
    key: str = "C"
    tempo_bpm: float = 100
    max_interval_semitones: int = 7
    rhythm_mode_enabled: bool = False
    allowed_durations: Optional[Tuple[float, ...]] = None
    octave_base: int = 4

    def validate(self) -> "DifficultyConfig":
        """Return ``self`` after checking every field.

        Raises
        ------
        ValueError
            If a numeric field is out of range or the key/scale is unknown.
        """

        from .scales import canonical_key, canonical_scale

        for name in ("note_count", "max_interval_semitones", "octave_base"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
        if isinstance(self.tempo_bpm, bool) or not isinstance(self.tempo_bpm, (int, float)):
            raise ValueError("tempo_bpm must be a number")
        if not isinstance(self.rhythm_mode_enabled, bool):
            raise ValueError("rhythm_mode_enabled must be true or false")
        if not MIN_NOTE_COUNT <= self.note_count <= MAX_NOTE_COUNT:
            raise ValueError(
                f"note_count must be between {MIN_NOTE_COUNT} and {MAX_NOTE_COUNT}"
            )
        if self.tempo_bpm <= 0:
            raise ValueError("tempo_bpm must be positive")
        if self.max_interval_semitones <= 0:
            raise ValueError("max_interval_semitones must be positive")
        if self.allowed_durations is not None and any(
            d <= 0 for d in self.allowed_durations
        ):
            raise ValueError("allowed_durations must contain positive values")
        if not 0 <= self.octave_base <= 8:
            raise ValueError("octave_base must be between 0 and 8")
        canonical_key(self.key)
        canonical_scale(self.scale_name)
        return self

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        if self.allowed_durations is not None:
            data["allowed_durations"] = list(self.allowed_durations)
        return data


@dataclass(frozen=True)
class ConfigOverride:
    """Partial configuration emitted by the difficulty ladder.

    Only auto-scaled fields exist on this record, so an override cannot
    replace the user's key, scale or octave. ``None`` means "leave as is".
    """

    note_count: Optional[int] = None
    max_interval_semitones: Optional[int] = None
    rhythm_mode_enabled: Optional[bool] = None
    tempo_bpm: Optional[float] = None
    allowed_durations: Optional[Tuple[float, ...]] = None

    def present_fields(self) -> FrozenSet[str]:
        """Names of the fields this override sets."""

        return frozenset(f.name for f in fields(self) if getattr(self, f.name) is not None)

    def apply_to(self, config: DifficultyConfig) -> DifficultyConfig:
        """Return ``config`` with every present field replaced."""

        changes = {name: getattr(self, name) for name in self.present_fields()}
        return replace(config, **changes)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {}
        for name in sorted(self.present_fields()):
            value = getattr(self, name)
            data[name] = list(value) if isinstance(value, tuple) else value
        return data


# Derived from the override record so the two can never drift apart.
AUTO_SCALED_FIELDS: FrozenSet[str] = frozenset(f.name for f in fields(ConfigOverride))


@dataclass(frozen=True)
class DifficultyLevel:
    """One rung of the progressive difficulty ladder."""

    level_number: int
    name: str
    streak_required: int
    config_override: ConfigOverride


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing a played sequence against its target."""

    combined_score: int
    pitch_score: int
    target_marks: Tuple[NoteStatus, ...]
    played_marks: Tuple[NoteStatus, ...]
    rhythm_score: Optional[int] = None
    timing_marks: Optional[Tuple[TimingStatus, ...]] = None

    @property
    def is_perfect(self) -> bool:
        """``True`` when every target pitch was reproduced in order."""

        return self.pitch_score == 100

    def to_dict(self) -> Dict[str, object]:
        return {
            "combined_score": self.combined_score,
            "pitch_score": self.pitch_score,
            "rhythm_score": self.rhythm_score,
            "target_marks": [m.value for m in self.target_marks],
            "played_marks": [m.value for m in self.played_marks],
            "timing_marks": (
                None if self.timing_marks is None else [m.value for m in self.timing_marks]
            ),
        }
