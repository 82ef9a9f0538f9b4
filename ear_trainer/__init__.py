#!/usr/bin/env python3
"""Ear Trainer library.

This package builds melodic dictation exercises. A typical round calls
:func:`generate_melody` with a :class:`DifficultyConfig`, plays the result to
the learner, captures their answer as :class:`PlayedNote` events and scores it
with :func:`compare_melodies`. :class:`TrainingSession` strings rounds
together and uses the progressive difficulty ladder in
:mod:`ear_trainer.difficulty` to make exercises harder as the learner's streak
of perfect rounds grows.

Underlying Algorithms
---------------------
* **Generation** walks the configured scale around middle C, weighting each
  candidate by harmonic function, melodic motion and leap recovery, and ends
  on a strong cadence tone.
* **Comparison** aligns played pitches with the target using the longest
  common subsequence so insertions and omissions only cost the notes
  involved. In rhythm mode matched notes are also scored for onset timing.
* **Progression** maps the streak to a fixed table of levels and returns the
  configuration fields a level changes.

All randomness is injected (see :mod:`ear_trainer.weighting`), so a seeded
``random.Random`` reproduces a melody exactly.

Features include:
- Scale tables for six scale types in all twelve keys.
- Rhythm-mode melodies with weighted durations.
- MIDI export of melodies and import of recorded answers via ``mido``.
- Command line and Flask JSON interfaces.
- JSON persistence for user settings and session statistics.
"""

__version__ = "0.1.0"

import json
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Dict, Optional

from .models import (  # noqa: F401
    AUTO_SCALED_FIELDS,
    ComparisonResult,
    ConfigOverride,
    DifficultyConfig,
    DifficultyLevel,
    Melody,
    MelodyNote,
    NoteStatus,
    PlayedNote,
    TimingStatus,
)
from .note_utils import midi_to_note, note_to_midi, parse_note  # noqa: F401
from .scales import (  # noqa: F401
    KEYS,
    SCALE_PATTERNS,
    ScaleProvider,
    StandardScales,
    canonical_key,
    canonical_scale,
    scale_pitches_in_range,
    tonic_triad_pitch_classes,
)
from .weighting import RandomSource, weighted_choice  # noqa: F401
from .rhythm_engine import DURATION_POOL, RhythmGenerator  # noqa: F401
from .generator import GENERATION_HIGH, GENERATION_LOW, generate_melody  # noqa: F401
from .comparator import ComparisonOptions, compare_melodies, lcs_pairs  # noqa: F401
from .difficulty import (  # noqa: F401
    DIFFICULTY_LEVELS,
    base_override,
    changed_fields,
    config_override_for_streak,
    describe_level,
    level_for_streak,
    next_level_after,
)
from .session import (  # noqa: F401
    RoundPhase,
    SessionError,
    SessionStats,
    TrainingSession,
    compute_xp,
    load_stats,
    save_stats,
)

logger = logging.getLogger(__name__)

# Default path for storing user preferences. The file lives in the user's
# home directory so settings persist between runs.
env_path = os.environ.get("EAR_TRAINER_SETTINGS_FILE")
if env_path:
    DEFAULT_SETTINGS_FILE = Path(env_path).expanduser()
else:
    DEFAULT_SETTINGS_FILE = Path.home() / ".ear_trainer_settings.json"

_CONFIG_FIELDS = {f.name for f in fields(DifficultyConfig)}


def load_settings(path: Path = DEFAULT_SETTINGS_FILE) -> dict:
    """Load saved user settings from ``path`` if it exists.

    @param path (Path): Location of the settings file.
    @returns dict: Loaded settings or an empty dictionary when unavailable.
    """

    if path.is_file():
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Could not load settings: %s", exc)
            return {}
        if isinstance(data, dict):
            return data
        logger.error("Settings file %s does not contain a JSON object", path)
    return {}


def save_settings(settings: dict, path: Path = DEFAULT_SETTINGS_FILE) -> None:
    """Save user ``settings`` to ``path`` as JSON.

    @param settings (dict): Options to be persisted.
    @param path (Path): Destination file path.
    @returns None: Errors are logged so failing to save never blocks practice.
    """

    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, indent=2)
    except OSError as exc:
        logger.error("Could not save settings: %s", exc)


def config_from_settings(
    settings: Dict[str, object], base: Optional[DifficultyConfig] = None
) -> DifficultyConfig:
    """Build a validated :class:`DifficultyConfig` from a settings mapping.

    Unknown keys are ignored so older or newer settings files still load.
    Key and scale names are canonicalised.

    Raises
    ------
    ValueError
        If a known field holds an invalid value.
    """

    values = {k: v for k, v in settings.items() if k in _CONFIG_FIELDS}
    if values.get("allowed_durations") is not None:
        values["allowed_durations"] = tuple(float(d) for d in values["allowed_durations"])  # type: ignore[union-attr]
    if "key" in values:
        values["key"] = canonical_key(str(values["key"]))
    if "scale_name" in values:
        values["scale_name"] = canonical_scale(str(values["scale_name"]))
    base = base if base is not None else DifficultyConfig()
    merged = {**base.to_dict(), **values}
    if merged.get("allowed_durations") is not None:
        merged["allowed_durations"] = tuple(merged["allowed_durations"])  # type: ignore[arg-type]
    try:
        return DifficultyConfig(**merged).validate()  # type: ignore[arg-type]
    except TypeError as exc:
        raise ValueError(f"Invalid settings: {exc}") from exc


def run_cli(argv=None) -> None:
    from .cli import run_cli as _run_cli

    _run_cli(argv)


def main() -> None:
    from .cli import main as _main

    _main()


if __name__ == "__main__":
    main()
