"""Command line helpers for Ear Trainer.

Modification summary
--------------------
* Split the interface into subcommands so generation, scoring and ladder
  inspection each get focused options.
* ``generate`` reads defaults from the JSON settings file selected with
  ``--settings-file`` and can persist the final configuration with
  ``--save-settings``.
* ``compare`` accepts notes as names or MIDI numbers, or recorded MIDI files,
  and prints either a readable report or JSON.
* Validation failures are reported through ``logging.error`` followed by an
  exit status of ``1`` so scripts can detect bad input.

Example
-------
Running ``python -m ear_trainer generate --key G --scale major --notes 5 \
    --seed 7 --output round.mid`` prints the note names of a five note melody
and writes it to ``round.mid``. Scoring an answer looks like::

    python -m ear_trainer compare --target C4,D4,E4,F4 --played C4,E4,D4,F4
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import List, Optional

from .comparator import ComparisonOptions, compare_melodies
from .difficulty import DIFFICULTY_LEVELS, describe_level, level_for_streak, next_level_after
from .generator import generate_melody
from .midi_io import create_midi_file, read_melody, read_played_notes
from .models import MAX_NOTE_COUNT, MIN_NOTE_COUNT, DifficultyLevel
from .note_utils import midi_to_note
from .scales import KEYS, SCALE_PATTERNS, key_prefers_flats
from .utils import (
    build_melody,
    build_played,
    format_melody,
    parse_float_list,
    parse_note_list,
)

__all__ = ["run_cli", "main"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ear-trainer",
        description="Generate melodic dictation exercises and score answers.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a melody for one round")
    gen.add_argument("--key", type=str, help="Tonic of the scale (e.g., C, F#, Bb).")
    gen.add_argument("--scale", type=str, help="Scale name (see list-scales).")
    gen.add_argument(
        "--notes",
        type=int,
        help=f"Number of notes ({MIN_NOTE_COUNT}-{MAX_NOTE_COUNT}).",
    )
    gen.add_argument("--bpm", type=float, help="Tempo in beats per minute.")
    gen.add_argument("--max-interval", type=int, help="Largest leap in semitones.")
    gen.add_argument("--rhythm", action="store_true", default=None, help="Give each note a duration.")
    gen.add_argument("--seed", type=int, help="Random seed for reproducible output")
    gen.add_argument("--output", type=str, help="Write the melody to this MIDI file.")
    gen.add_argument("--instrument", type=int, default=0, help="MIDI program number for playback")
    gen.add_argument("--json", action="store_true", help="Print the melody as JSON.")
    gen.add_argument(
        "--settings-file",
        type=str,
        help="JSON settings file supplying defaults for the options above",
    )
    gen.add_argument(
        "--save-settings",
        action="store_true",
        help="Store the resulting configuration in the settings file",
    )

    cmp_ = sub.add_parser("compare", help="Score a played answer against a target")
    target = cmp_.add_mutually_exclusive_group(required=True)
    target.add_argument("--target", type=str, help="Target notes, e.g. C4,D4,E4 or 60,62,64.")
    target.add_argument("--target-midi", type=str, help="MIDI file holding the target melody.")
    played = cmp_.add_mutually_exclusive_group(required=True)
    played.add_argument("--played", type=str, help="Played notes in the order they were heard.")
    played.add_argument("--played-midi", type=str, help="MIDI recording of the answer.")
    cmp_.add_argument("--onsets", type=str, help="Onset of each played note in seconds.")
    cmp_.add_argument("--durations", type=str, help="Duration of each target note in beats.")
    cmp_.add_argument("--rhythm", action="store_true", help="Also score note timing.")
    cmp_.add_argument("--bpm", type=float, default=100, help="Tempo used for rhythm scoring (default: 100).")
    cmp_.add_argument("--json", action="store_true", help="Print the result as JSON.")

    ladder = sub.add_parser("ladder", help="Show the difficulty levels")
    ladder.add_argument("--streak", type=int, help="Show the level for this streak and the next one.")

    sub.add_parser("list-keys", help="List all supported keys")
    sub.add_parser("list-scales", help="List all supported scales")
    return parser


def _fail(message: str) -> None:
    logging.error(message)
    sys.exit(1)


def _generate(args: argparse.Namespace) -> None:
    from . import DEFAULT_SETTINGS_FILE, config_from_settings, load_settings, save_settings

    settings_path = (
        Path(args.settings_file).expanduser() if args.settings_file else DEFAULT_SETTINGS_FILE
    )
    settings = load_settings(settings_path)
    flags = {
        "key": args.key,
        "scale_name": args.scale,
        "note_count": args.notes,
        "tempo_bpm": args.bpm,
        "max_interval_semitones": args.max_interval,
        "rhythm_mode_enabled": args.rhythm,
    }
    settings.update({k: v for k, v in flags.items() if v is not None})
    try:
        config = config_from_settings(settings)
    except ValueError as exc:
        _fail(str(exc))

    if args.seed is not None:
        logging.info("Using seed %d", args.seed)
    rng = random.Random(args.seed)
    melody = generate_melody(config, rng)

    if args.json:
        payload = {
            "config": config.to_dict(),
            "notes": [
                {
                    "pitch": n.pitch,
                    "name": midi_to_note(n.pitch, key_prefers_flats(config.key)),
                    "duration_beats": n.duration_beats,
                }
                for n in melody
            ],
        }
        print(json.dumps(payload, indent=2))
    else:
        print(format_melody(melody, key_prefers_flats(config.key)))

    if args.output:
        try:
            create_midi_file(melody, config.tempo_bpm, args.output, program=args.instrument)
        except ValueError as exc:
            _fail(str(exc))
        except OSError as exc:
            _fail(f"Could not write MIDI file: {exc}")

    if args.save_settings:
        save_settings(config.to_dict(), settings_path)


def _compare(args: argparse.Namespace) -> None:
    try:
        if args.target is not None:
            durations = (
                parse_float_list(args.durations, "durations") if args.durations else None
            )
            target = build_melody(parse_note_list(args.target), durations)
        else:
            target = read_melody(args.target_midi)

        if args.played is not None:
            onsets = parse_float_list(args.onsets, "onsets") if args.onsets else None
            if args.rhythm and onsets is None:
                raise ValueError("--onsets is required with --rhythm and --played")
            played = build_played(parse_note_list(args.played), onsets)
        else:
            played = read_played_notes(args.played_midi)
    except ValueError as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(f"Could not read MIDI file: {exc}")

    if args.bpm <= 0:
        _fail("BPM must be positive.")

    options = ComparisonOptions(rhythm_mode_enabled=args.rhythm, tempo_bpm=args.bpm)
    result = compare_melodies(target, played, options)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    print(f"Pitch score: {result.pitch_score}")
    if result.rhythm_score is not None:
        print(f"Rhythm score: {result.rhythm_score}")
    print(f"Combined score: {result.combined_score}")
    print(
        "Target: "
        + " ".join(f"{midi_to_note(n.pitch)}({m.value})" for n, m in zip(target, result.target_marks))
    )
    print(
        "Played: "
        + " ".join(f"{midi_to_note(n.pitch)}({m.value})" for n, m in zip(played, result.played_marks))
    )
    if result.timing_marks is not None:
        print("Timing: " + " ".join(m.value for m in result.timing_marks))


def _level_line(level: DifficultyLevel) -> str:
    desc = describe_level(level)
    return (
        f"{level.level_number}. {level.name:<13} streak {level.streak_required:>2}+  "
        f"{desc.notes}, {desc.max_leap}, rhythm {desc.rhythm}, {desc.tempo}"
    )


def _ladder(args: argparse.Namespace) -> None:
    if args.streak is None:
        for level in DIFFICULTY_LEVELS:
            print(_level_line(level))
        return
    if args.streak < 0:
        _fail("Streak must be non-negative.")
    print(_level_line(level_for_streak(args.streak)))
    upcoming = next_level_after(args.streak)
    if upcoming is None:
        print("Top level reached.")
    else:
        remaining = upcoming.streak_required - args.streak
        print(f"Next: {upcoming.name} after {remaining} more perfect round(s)")


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Parse ``argv`` (default ``sys.argv[1:]``) and run the chosen subcommand.

    Invalid input is logged and terminates the process with status ``1``.
    """

    args = _build_parser().parse_args(argv)
    if args.command == "generate":
        _generate(args)
    elif args.command == "compare":
        _compare(args)
    elif args.command == "ladder":
        _ladder(args)
    elif args.command == "list-keys":
        print("\n".join(KEYS))
    elif args.command == "list-scales":
        print("\n".join(SCALE_PATTERNS))


def main(argv: Optional[List[str]] = None) -> None:
    """Console entry point used by ``ear-trainer`` and ``python -m ear_trainer``."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    run_cli(argv)
