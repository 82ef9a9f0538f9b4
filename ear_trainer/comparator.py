"""Scoring a played note sequence against its target melody.

Pitch accuracy is measured with a longest-common-subsequence alignment
rather than by position. A single inserted or skipped note therefore costs
only that note instead of shifting every later comparison out of step.

Example
-------
>>> from ear_trainer.models import MelodyNote, PlayedNote
>>> target = [MelodyNote(p) for p in (60, 62, 64, 65)]
>>> played = [PlayedNote(p, 0.0) for p in (60, 64, 62, 65)]
>>> compare_melodies(target, played).pitch_score
75

Design Notes
------------
- The dynamic-programming table is a NumPy integer matrix of shape
  ``(len(target) + 1, len(played) + 1)``. Exercises are at most a handful of
  notes so memory is never a concern.
- Backtracking prefers stepping back along the target when both directions
  keep the same LCS length, so the chosen alignment is deterministic.
- Rhythm is only scored for aligned pairs. Unaligned target notes carry no
  timing information and are reported as on time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import (
    ComparisonResult,
    MelodyNote,
    NoteStatus,
    PlayedNote,
    TimingStatus,
)
from .weighting import round_half_up

__all__ = [
    "ComparisonOptions",
    "compare_melodies",
    "expected_onsets",
    "lcs_pairs",
    "GOOD_TOLERANCE",
    "OK_TOLERANCE",
]

# Timing tolerances in seconds.
GOOD_TOLERANCE = 0.1
OK_TOLERANCE = 0.2
# Absorbs float error so an onset exactly on a tolerance edge counts as inside.
_EPSILON = 1e-9

GOOD_POINTS = 100
OK_POINTS = 50

PITCH_SHARE = 0.6
RHYTHM_SHARE = 0.4


@dataclass(frozen=True)
class ComparisonOptions:
    """Switches for rhythm scoring.

    Rhythm is scored only when ``rhythm_mode_enabled`` is set and a positive
    ``tempo_bpm`` is supplied.
    """

    rhythm_mode_enabled: bool = False
    tempo_bpm: Optional[float] = None


def lcs_pairs(target: Sequence[int], played: Sequence[int]) -> List[Tuple[int, int]]:
    """Return ``(target_index, played_index)`` pairs of one maximal LCS.

    Pairs are sorted in ascending order of both indices.
    """

    n, m = len(target), len(played)
    table = np.zeros((n + 1, m + 1), dtype=np.int32)
    for i in range(1, n + 1):
        for j in range(1, m + 1):
            if target[i - 1] == played[j - 1]:
                table[i, j] = table[i - 1, j - 1] + 1
            else:
                table[i, j] = max(table[i - 1, j], table[i, j - 1])

    pairs: List[Tuple[int, int]] = []
    i, j = n, m
    while i > 0 and j > 0:
        if target[i - 1] == played[j - 1]:
            pairs.append((i - 1, j - 1))
            i -= 1
            j -= 1
        elif table[i - 1, j] >= table[i, j - 1]:
            i -= 1
        else:
            j -= 1
    pairs.reverse()
    return pairs


def expected_onsets(target: Sequence[MelodyNote], tempo_bpm: float) -> List[float]:
    """Return the expected onset of each target note in seconds.

    Notes without a duration occupy one beat.
    """

    seconds_per_beat = 60.0 / tempo_bpm
    onsets: List[float] = []
    beats = 0.0
    for note in target:
        onsets.append(beats * seconds_per_beat)
        beats += note.duration_beats if note.duration_beats is not None else 1.0
    return onsets


def _classify(error: float) -> Tuple[int, TimingStatus]:
    """Return ``(points, status)`` for a signed timing error in seconds."""

    magnitude = abs(error)
    if magnitude <= GOOD_TOLERANCE + _EPSILON:
        return GOOD_POINTS, TimingStatus.ON_TIME
    status = TimingStatus.EARLY if error < 0 else TimingStatus.LATE
    if magnitude <= OK_TOLERANCE + _EPSILON:
        return OK_POINTS, status
    return 0, status


def compare_melodies(
    target: Sequence[MelodyNote],
    played: Sequence[PlayedNote],
    options: Optional[ComparisonOptions] = None,
) -> ComparisonResult:
    """Score ``played`` against ``target``.

    Parameters
    ----------
    target:
        Melody the user was asked to reproduce.
    played:
        Captured notes in arrival order. The sequence must not change while
        the comparison runs.
    options:
        Rhythm scoring switches. ``None`` scores pitch only.

    Returns
    -------
    ComparisonResult
        Scores in ``0-100`` with one mark per target note and one per played
        note. Rhythm fields are ``None`` unless rhythm scoring applied.
    """

    if not target:
        score = 100 if not played else 0
        return ComparisonResult(
            combined_score=score,
            pitch_score=score,
            target_marks=(),
            played_marks=tuple(NoteStatus.EXTRA for _ in played),
        )
    if not played:
        return ComparisonResult(
            combined_score=0,
            pitch_score=0,
            target_marks=tuple(NoteStatus.MISSING for _ in target),
            played_marks=(),
        )

    target_pitches = [note.pitch for note in target]
    played_pitches = [note.pitch for note in played]
    pairs = lcs_pairs(target_pitches, played_pitches)

    matched_target = {t for t, _ in pairs}
    matched_played = {p for _, p in pairs}
    target_set = set(target_pitches)

    target_marks = tuple(
        NoteStatus.CORRECT if i in matched_target else NoteStatus.MISSING
        for i in range(len(target))
    )
    played_marks = tuple(
        NoteStatus.CORRECT
        if j in matched_played
        else NoteStatus.WRONG
        if pitch in target_set
        else NoteStatus.EXTRA
        for j, pitch in enumerate(played_pitches)
    )
    pitch_score = round_half_up(100 * len(pairs) / len(target))

    if options is None or not options.rhythm_mode_enabled or not options.tempo_bpm:
        return ComparisonResult(
            combined_score=pitch_score,
            pitch_score=pitch_score,
            target_marks=target_marks,
            played_marks=played_marks,
        )

    onsets = expected_onsets(target, options.tempo_bpm)
    timing: List[TimingStatus] = [TimingStatus.ON_TIME] * len(target)
    points: List[int] = []
    for t_idx, p_idx in pairs:
        earned, status = _classify(played[p_idx].onset_seconds - onsets[t_idx])
        points.append(earned)
        timing[t_idx] = status

    rhythm_score = round_half_up(sum(points) / len(points)) if points else 0
    combined = round_half_up(PITCH_SHARE * pitch_score + RHYTHM_SHARE * rhythm_score)
    return ComparisonResult(
        combined_score=combined,
        pitch_score=pitch_score,
        target_marks=target_marks,
        played_marks=played_marks,
        rhythm_score=rhythm_score,
        timing_marks=tuple(timing),
    )
