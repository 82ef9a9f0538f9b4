"""Round orchestration, streak tracking and experience points.

:class:`TrainingSession` drives one exercise after another:

``setup`` → ``listening`` → (``counting-in``) → ``playing`` → ``review``

While ``playing`` it accumulates :class:`PlayedNote` events; finishing the
round freezes them, scores them with :func:`compare_melodies`, records the
round in :class:`SessionStats` and, in progressive mode, merges the ladder's
override for the new streak into the configuration used by the next round.

Session statistics are persisted as JSON in the same way user settings are,
see :func:`load_stats` and :func:`save_stats`.

Example
-------
>>> import random
>>> session = TrainingSession(rng=random.Random(1))
>>> melody = session.start_round()
>>> session.start_playing()
>>> for i, note in enumerate(melody):
...     _ = session.add_note(PlayedNote(note.pitch, i * 0.6))
>>> session.finish_playing().streak
1
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .comparator import ComparisonOptions, compare_melodies
from .difficulty import (
    DIFFICULTY_LEVELS,
    changed_fields,
    config_override_for_streak,
    level_for_streak,
)
from .generator import generate_melody
from .models import (
    ComparisonResult,
    DifficultyConfig,
    DifficultyLevel,
    Melody,
    PlayedNote,
)
from .scales import ScaleProvider
from .weighting import RandomSource, round_half_up

__all__ = [
    "DEFAULT_STATS_FILE",
    "MAX_HISTORY",
    "RoundOutcome",
    "RoundPhase",
    "RoundRecord",
    "SessionError",
    "SessionStats",
    "TrainingSession",
    "XPBreakdown",
    "compute_xp",
    "load_stats",
    "save_stats",
]

logger = logging.getLogger(__name__)

env_path = os.environ.get("EAR_TRAINER_STATS_FILE")
if env_path:
    DEFAULT_STATS_FILE = Path(env_path).expanduser()
else:
    DEFAULT_STATS_FILE = Path.home() / ".ear_trainer_stats.json"

# Only the most recent rounds are kept so the stats file stays small.
MAX_HISTORY = 100

NO_REPLAY_BONUS = 25
PERFECT_BONUS = 50


class SessionError(RuntimeError):
    """Raised when a round transition is requested in the wrong phase."""


class RoundPhase(str, Enum):
    SETUP = "setup"
    LISTENING = "listening"
    COUNTING_IN = "counting-in"
    PLAYING = "playing"
    REVIEW = "review"


@dataclass(frozen=True)
class XPBreakdown:
    """Individual components of the experience awarded for a round."""

    base_xp: int
    no_replay_bonus: int
    perfect_bonus: int
    streak_multiplier: float
    difficulty_multiplier: float
    total_xp: int


def compute_xp(score: int, replays_used: int, note_count: int, streak: int) -> XPBreakdown:
    """Return the experience breakdown for a scored round.

    The base award equals ``score``. It is scaled by the streak (1.5x from 3,
    2x from 5, 3x from 10) and by melody length relative to four notes. A
    flat bonus rewards answering after a single listen and another a perfect
    score.
    """

    if streak >= 10:
        streak_multiplier = 3.0
    elif streak >= 5:
        streak_multiplier = 2.0
    elif streak >= 3:
        streak_multiplier = 1.5
    else:
        streak_multiplier = 1.0
    difficulty_multiplier = note_count / 4
    no_replay = NO_REPLAY_BONUS if replays_used == 1 else 0
    perfect = PERFECT_BONUS if score == 100 else 0
    total = round_half_up(score * streak_multiplier * difficulty_multiplier + no_replay + perfect)
    return XPBreakdown(score, no_replay, perfect, streak_multiplier, difficulty_multiplier, total)


@dataclass(frozen=True)
class RoundRecord:
    timestamp: float
    score: int
    note_count: int
    scale_name: str
    key: str
    replays_used: int
    perfect: bool
    xp: int


_RECORD_FIELDS = frozenset(f.name for f in fields(RoundRecord))


@dataclass
class SessionStats:
    """Running totals across rounds."""

    current_streak: int = 0
    best_streak: int = 0
    total_rounds: int = 0
    total_perfects: int = 0
    total_xp: int = 0
    history: List[RoundRecord] = field(default_factory=list)

    def record_round(
        self, result: ComparisonResult, config: DifficultyConfig, replays_used: int
    ) -> XPBreakdown:
        """Update the totals with a finished round and return its XP.

        A pitch-perfect round extends the streak; anything else resets it.
        The streak is updated before XP is computed so the round that
        reaches a threshold already earns the higher multiplier.
        """

        perfect = result.is_perfect
        self.current_streak = self.current_streak + 1 if perfect else 0
        xp = compute_xp(result.combined_score, replays_used, config.note_count, self.current_streak)
        self.best_streak = max(self.best_streak, self.current_streak)
        self.total_rounds += 1
        self.total_perfects += 1 if perfect else 0
        self.total_xp += xp.total_xp
        self.history.append(
            RoundRecord(
                timestamp=time.time(),
                score=result.combined_score,
                note_count=config.note_count,
                scale_name=config.scale_name,
                key=config.key,
                replays_used=replays_used,
                perfect=perfect,
                xp=xp.total_xp,
            )
        )
        del self.history[:-MAX_HISTORY]
        return xp

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SessionStats":
        """Build stats from JSON data, ignoring unknown keys.

        History entries that are not objects or lack a field are skipped
        with a warning so the running totals survive a damaged history.
        """

        history: List[RoundRecord] = []
        for entry in data.get("history", []):
            if not isinstance(entry, dict):
                logger.warning("Skipping history entry %r", entry)
                continue
            try:
                history.append(
                    RoundRecord(**{k: v for k, v in entry.items() if k in _RECORD_FIELDS})
                )
            except TypeError as exc:
                logger.warning("Skipping history entry %r: %s", entry, exc)
        return cls(
            current_streak=int(data.get("current_streak", 0)),
            best_streak=int(data.get("best_streak", 0)),
            total_rounds=int(data.get("total_rounds", 0)),
            total_perfects=int(data.get("total_perfects", 0)),
            total_xp=int(data.get("total_xp", 0)),
            history=history[-MAX_HISTORY:],
        )


def load_stats(path: Path = DEFAULT_STATS_FILE) -> SessionStats:
    """Load stats from ``path`` or return empty stats when unavailable.

    @param path (Path): Location of the JSON stats file.
    @returns SessionStats: Persisted totals, or defaults if the file is
        missing, unreadable or does not hold a JSON object.
    """

    if path.is_file():
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Could not load stats from %s: %s", path, exc)
            return SessionStats()
        if not isinstance(data, dict):
            logger.error("Stats file %s does not contain a JSON object", path)
            return SessionStats()
        try:
            return SessionStats.from_dict(data)
        except (ValueError, TypeError) as exc:
            logger.error("Could not load stats from %s: %s", path, exc)
    return SessionStats()


def save_stats(stats: SessionStats, path: Path = DEFAULT_STATS_FILE) -> None:
    """Write ``stats`` to ``path`` as JSON.

    Failures are logged and otherwise ignored so a read-only home directory
    never interrupts practice.
    """

    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(stats.to_dict(), fh, indent=2)
    except OSError as exc:
        logger.error("Could not save stats to %s: %s", path, exc)


@dataclass(frozen=True)
class RoundOutcome:
    """Everything produced by finishing a round."""

    result: ComparisonResult
    xp: XPBreakdown
    streak: int
    level: DifficultyLevel
    level_changed: bool
    changed_fields: FrozenSet[str]


class TrainingSession:
    """Stateful driver for consecutive ear-training rounds."""

    def __init__(
        self,
        config: Optional[DifficultyConfig] = None,
        rng: Optional[RandomSource] = None,
        scale_provider: Optional[ScaleProvider] = None,
        *,
        progressive: bool = True,
        stats: Optional[SessionStats] = None,
        levels: Sequence[DifficultyLevel] = DIFFICULTY_LEVELS,
    ) -> None:
        """Create a session.

        Parameters
        ----------
        config:
            Starting configuration. Defaults to :class:`DifficultyConfig()`.
            In progressive mode the override for the stored streak is merged
            in immediately so a resumed session continues at its level.
        rng, scale_provider:
            Forwarded to :func:`generate_melody`.
        progressive:
            When ``False`` the configuration only changes through
            :meth:`update_difficulty`.
        stats:
            Running totals, e.g. from :func:`load_stats`.
        levels:
            Ladder table to consult.
        """

        self.stats = stats if stats is not None else SessionStats()
        self.progressive = progressive
        self.levels = levels
        self._rng = rng
        self._scale_provider = scale_provider
        config = config if config is not None else DifficultyConfig()
        if progressive:
            config = config_override_for_streak(self.stats.current_streak, levels).apply_to(config)
        self.config = config
        self.phase = RoundPhase.SETUP
        self.melody: Melody = []
        self._played: List[PlayedNote] = []
        self.replays_used = 0
        self.round_number = 0
        self.result: Optional[ComparisonResult] = None

    @property
    def streak(self) -> int:
        return self.stats.current_streak

    @property
    def played_notes(self) -> Tuple[PlayedNote, ...]:
        return tuple(self._played)

    @property
    def level(self) -> DifficultyLevel:
        return level_for_streak(self.streak, self.levels)

    def _require(self, *phases: RoundPhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise SessionError(f"cannot do that while {self.phase.value}; expected {allowed}")

    def _new_melody(self) -> Melody:
        return generate_melody(self.config, self._rng, self._scale_provider)

    def start_round(self) -> Melody:
        """Generate a new target melody and begin listening."""

        self._require(RoundPhase.SETUP, RoundPhase.REVIEW)
        self.melody = self._new_melody()
        self._played = []
        self.replays_used = 0
        self.result = None
        self.round_number += 1
        self.phase = RoundPhase.LISTENING
        logger.debug("Round %d: %s", self.round_number, [n.pitch for n in self.melody])
        return self.melody

    def replay(self) -> int:
        """Count another listen of the target melody."""

        self._require(RoundPhase.LISTENING)
        self.replays_used += 1
        return self.replays_used

    def start_counting_in(self) -> None:
        self._require(RoundPhase.LISTENING)
        self.phase = RoundPhase.COUNTING_IN

    def start_playing(self) -> None:
        """Begin capturing played notes, discarding anything captured before."""

        self._require(RoundPhase.LISTENING, RoundPhase.COUNTING_IN)
        self._played = []
        self.phase = RoundPhase.PLAYING

    def add_note(self, note: PlayedNote) -> bool:
        """Record ``note`` if the session is capturing; return whether it was kept."""

        if self.phase is not RoundPhase.PLAYING:
            logger.debug("Ignoring note %s received while %s", note, self.phase.value)
            return False
        self._played.append(note)
        return True

    def finish_playing(self) -> RoundOutcome:
        """Score the captured notes and advance the streak."""

        self._require(RoundPhase.PLAYING)
        played = tuple(self._played)
        options = ComparisonOptions(
            rhythm_mode_enabled=self.config.rhythm_mode_enabled,
            tempo_bpm=self.config.tempo_bpm,
        )
        result = compare_melodies(self.melody, played, options)
        self.result = result
        self.phase = RoundPhase.REVIEW

        previous_streak = self.streak
        previous_level = self.level
        xp = self.stats.record_round(result, self.config, self.replays_used)

        fields_changed: FrozenSet[str] = frozenset()
        if self.progressive:
            fields_changed = changed_fields(previous_streak, self.streak, self.levels)
            # Pure function of the streak, so reapplying an unchanged level is
            # a no-op.
            self.config = config_override_for_streak(self.streak, self.levels).apply_to(
                self.config
            )
        level = self.level
        if level != previous_level:
            logger.info("Difficulty level now %d (%s)", level.level_number, level.name)
        return RoundOutcome(
            result=result,
            xp=xp,
            streak=self.streak,
            level=level,
            level_changed=level != previous_level,
            changed_fields=fields_changed,
        )

    def update_difficulty(self, **changes: object) -> DifficultyConfig:
        """Apply user edits to the configuration.

        The new configuration is validated. While listening to a melody that
        has not been attempted yet, a fresh melody is generated so it matches
        the new settings.

        Raises
        ------
        ValueError
            If the resulting configuration is invalid.
        """

        if "allowed_durations" in changes and changes["allowed_durations"] is not None:
            changes["allowed_durations"] = tuple(changes["allowed_durations"])  # type: ignore[arg-type]
        self.config = replace(self.config, **changes).validate()  # type: ignore[arg-type]
        if self.phase is RoundPhase.LISTENING and not self._played:
            self.melody = self._new_melody()
            self.replays_used = 0
        return self.config
