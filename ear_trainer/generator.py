"""Melody generation for ear-training rounds.

Underlying Algorithm
--------------------
Melodies are a constrained, weighted random walk over the pitches of the
configured scale within a fixed register around middle C. The walk starts
on a tonic-triad tone near the middle of the register and then repeatedly
picks a nearby scale pitch. Candidate weights favour triad tones and
stepwise motion, and a leap is followed by a bias toward motion in the
opposite direction. The final note leans strongly toward the tonic or the
fifth so each phrase sounds resolved.

Algorithm Pseudocode
--------------------
::

    pitches = scale_pitches_in_range(key, scale, LOW, HIGH)
    current = triad_index_near_center(pitches)
    for position in 1 .. note_count - 1:
        candidates = [j for j in pitches if 0 < |p[j] - p[current]| <= max_interval]
        weights = harmonic(j) * motion(|j - current|) * recovery(j)
        current = weighted_choice(candidates, weights)
        track_leap(current - previous)

The register is deliberately independent of ``octave_base``; the octave
setting only affects how notes are labelled by user interfaces.
"""

from __future__ import annotations

import logging
import random
from typing import FrozenSet, List, Optional

from .models import DifficultyConfig, Melody, MelodyNote
from .note_utils import NOTE_TO_SEMITONE
from .rhythm_engine import RhythmGenerator
from .scales import ScaleProvider, StandardScales
from .weighting import (
    RandomSource,
    index_near_center,
    uniform_index,
    weighted_choice,
)

__all__ = [
    "GENERATION_LOW",
    "GENERATION_HIGH",
    "FALLBACK_FRAGMENT",
    "candidate_weight",
    "generate_melody",
]

logger = logging.getLogger(__name__)

MIDDLE_C = 60
# Fixed register: a minor sixth below middle C up to the octave above.
GENERATION_LOW = MIDDLE_C - 8
GENERATION_HIGH = MIDDLE_C + 12

# Used when the scale provider has nothing to offer for the requested key.
FALLBACK_FRAGMENT = (60, 62, 64, 65)

# Harmonic weights. Triad tones are preferred throughout; the final note
# replaces that preference with a cadence toward the tonic or the fifth.
TRIAD_WEIGHT = 4
NON_TRIAD_WEIGHT = 1
RESOLUTION_ROOT_WEIGHT = 6
RESOLUTION_FIFTH_WEIGHT = 3

# Motion weights indexed by distance in scale steps.
STEP_WEIGHT = 5
SKIP_WEIGHT = 3
LEAP_WEIGHT = 1

# A transition of this many scale steps or more counts as a leap.
LEAP_THRESHOLD = 3
RECOVERY_WEIGHT = 3


def candidate_weight(
    candidate_index: int,
    current_index: int,
    candidate_pitch_class: int,
    triad: FrozenSet[int],
    root_pc: int,
    fifth_pc: int,
    leap_dir: int,
    resolving: bool,
) -> int:
    """Return the selection weight of a candidate scale index.

    Parameters
    ----------
    candidate_index, current_index:
        Positions within the sorted scale pitch list.
    candidate_pitch_class:
        Pitch class of the candidate pitch.
    triad:
        Tonic-triad pitch classes.
    root_pc, fifth_pc:
        Tonic and dominant pitch classes used for the final note.
    leap_dir:
        ``1``/``-1`` when the previous transition leapt up/down, ``0``
        otherwise.
    resolving:
        ``True`` while choosing the last note of the melody.
    """

    if resolving:
        if candidate_pitch_class == root_pc:
            harmonic = RESOLUTION_ROOT_WEIGHT
        elif candidate_pitch_class == fifth_pc:
            harmonic = RESOLUTION_FIFTH_WEIGHT
        else:
            harmonic = NON_TRIAD_WEIGHT
    else:
        harmonic = TRIAD_WEIGHT if candidate_pitch_class in triad else NON_TRIAD_WEIGHT

    distance = abs(candidate_index - current_index)
    if distance <= 1:
        motion = STEP_WEIGHT
    elif distance <= 2:
        motion = SKIP_WEIGHT
    else:
        motion = LEAP_WEIGHT

    direction = candidate_index - current_index
    recovery = RECOVERY_WEIGHT if leap_dir * direction < 0 else 1
    return harmonic * motion * recovery


def _root_pitch_class(key: str, pitches: List[int], triad: FrozenSet[int]) -> int:
    """Return the tonic pitch class for cadence weighting.

    The key name is authoritative. Keys the note table cannot parse fall back
    to the lowest in-range triad tone, then to C.
    """

    cleaned = key.strip()
    if cleaned:
        cleaned = cleaned[0].upper() + cleaned[1:].lower()
    if cleaned in NOTE_TO_SEMITONE:
        return NOTE_TO_SEMITONE[cleaned]
    for pitch in pitches:
        if pitch % 12 in triad:
            return pitch % 12
    return 0


def _fallback_melody(
    config: DifficultyConfig, rhythm: RhythmGenerator, rng: RandomSource
) -> Melody:
    """Return :data:`FALLBACK_FRAGMENT` cycled to ``note_count`` notes."""

    logger.warning(
        "Scale %r in key %r produced no pitches; using fallback fragment.",
        config.scale_name,
        config.key,
    )
    if config.rhythm_mode_enabled:
        durations: List[Optional[float]] = list(rhythm.generate(config.note_count, rng))
    else:
        durations = [None] * config.note_count
    return [
        MelodyNote(FALLBACK_FRAGMENT[position % len(FALLBACK_FRAGMENT)], duration)
        for position, duration in enumerate(durations)
    ]


def generate_melody(
    config: DifficultyConfig,
    rng: Optional[RandomSource] = None,
    scale_provider: Optional[ScaleProvider] = None,
) -> Melody:
    """Return a melody of ``config.note_count`` notes.

    The function never raises for a well-typed configuration. Two situations
    are recovered from silently:

    * the scale provider returns no pitches for the key/scale, in which case
      a fixed fragment starting on middle C is used;
    * no scale pitch lies within ``max_interval_semitones`` of the current
      note, in which case any scale pitch is chosen uniformly.

    @param config (DifficultyConfig): Exercise parameters. ``key``,
        ``scale_name``, ``note_count``, ``max_interval_semitones`` and
        ``rhythm_mode_enabled`` are consulted.
    @param rng (RandomSource|None): Source of randomness. A fresh
        :class:`random.Random` is used when omitted; pass a seeded instance
        for reproducible melodies.
    @param scale_provider (ScaleProvider|None): Scale lookup, defaulting to
        :class:`StandardScales`.
    @returns Melody: Notes in performance order. Durations are set only in
        rhythm mode.
    """

    rng = rng if rng is not None else random.Random()
    provider = scale_provider if scale_provider is not None else StandardScales()
    rhythm = RhythmGenerator()

    if config.note_count <= 0:
        return []

    pitches = provider.scale_pitches_in_range(
        config.key, config.scale_name, GENERATION_LOW, GENERATION_HIGH
    )
    if not pitches:
        return _fallback_melody(config, rhythm, rng)

    def _duration() -> Optional[float]:
        return rhythm.next_duration(rng) if config.rhythm_mode_enabled else None

    triad = frozenset(provider.tonic_triad_pitch_classes(config.key, config.scale_name))
    root_pc = _root_pitch_class(config.key, pitches, triad)
    fifth_pc = (root_pc + 7) % 12

    # Start on a triad tone close to the middle of the register.
    triad_indices = [i for i, pitch in enumerate(pitches) if pitch % 12 in triad]
    if triad_indices:
        current = triad_indices[index_near_center(len(triad_indices), rng)]
    else:
        current = index_near_center(len(pitches), rng)

    melody: Melody = [MelodyNote(pitches[current], _duration())]
    leap_dir = 0

    for position in range(1, config.note_count):
        resolving = position == config.note_count - 1
        current_pitch = pitches[current]
        candidates = [
            j
            for j, pitch in enumerate(pitches)
            if 0 < abs(pitch - current_pitch) <= config.max_interval_semitones
        ]

        if not candidates:
            logger.debug(
                "No scale pitch within %d semitones of %d; choosing at random.",
                config.max_interval_semitones,
                current_pitch,
            )
            next_index = uniform_index(len(pitches), rng)
        else:
            weighted = [
                (
                    j,
                    candidate_weight(
                        j,
                        current,
                        pitches[j] % 12,
                        triad,
                        root_pc,
                        fifth_pc,
                        leap_dir,
                        resolving,
                    ),
                )
                for j in candidates
            ]
            next_index = weighted_choice(weighted, rng)

        # Remember leaps so the next choice can compensate.
        step = next_index - current
        if abs(step) >= LEAP_THRESHOLD:
            leap_dir = 1 if step > 0 else -1
        else:
            leap_dir = 0

        current = next_index
        melody.append(MelodyNote(pitches[current], _duration()))

    return melody
