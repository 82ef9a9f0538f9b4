"""Tests for pitch alignment and rhythm scoring.

Pitch scoring uses a longest-common-subsequence alignment so inserted or
skipped notes only affect themselves. Rhythm scoring is checked with
onsets placed on, inside and beyond the two timing tolerances.
"""

from __future__ import annotations

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

comparator = importlib.import_module("ear_trainer.comparator")
models = importlib.import_module("ear_trainer.models")

MelodyNote = models.MelodyNote
PlayedNote = models.PlayedNote
NoteStatus = models.NoteStatus
TimingStatus = models.TimingStatus


def _target(*pitches, durations=None):
    if durations is None:
        return [MelodyNote(p) for p in pitches]
    return [MelodyNote(p, d) for p, d in zip(pitches, durations)]


def _played(*pitches, onsets=None):
    onsets = onsets if onsets is not None else [0.0] * len(pitches)
    return [PlayedNote(p, t) for p, t in zip(pitches, onsets)]


def test_lcs_pairs_prefers_earlier_target_alignment():
    pairs = comparator.lcs_pairs([60, 62, 64, 65], [60, 64, 62, 65])
    assert pairs == [(0, 0), (1, 2), (3, 3)]


def test_lcs_pairs_empty():
    assert comparator.lcs_pairs([], [60]) == []


def test_swapped_notes_score_75():
    result = comparator.compare_melodies(_target(60, 62, 64, 65), _played(60, 64, 62, 65))
    assert result.pitch_score == 75
    assert result.combined_score == 75
    assert result.target_marks == (
        NoteStatus.CORRECT,
        NoteStatus.CORRECT,
        NoteStatus.MISSING,
        NoteStatus.CORRECT,
    )
    assert result.played_marks == (
        NoteStatus.CORRECT,
        NoteStatus.WRONG,
        NoteStatus.CORRECT,
        NoteStatus.CORRECT,
    )
    assert not result.is_perfect
    assert result.rhythm_score is None
    assert result.timing_marks is None


def test_inserted_note_only_costs_itself():
    result = comparator.compare_melodies(_target(60, 62, 64), _played(60, 61, 62, 64))
    assert result.pitch_score == 100
    assert result.is_perfect
    assert result.played_marks == (
        NoteStatus.CORRECT,
        NoteStatus.EXTRA,
        NoteStatus.CORRECT,
        NoteStatus.CORRECT,
    )


def test_skipped_note_is_missing():
    result = comparator.compare_melodies(_target(60, 62, 64), _played(60, 64))
    assert result.pitch_score == 67
    assert result.target_marks[1] is NoteStatus.MISSING


def test_marks_have_one_entry_per_note():
    target = _target(60, 62, 64, 65, 67)
    played = _played(67, 60, 61, 64)
    result = comparator.compare_melodies(target, played)
    assert len(result.target_marks) == len(target)
    assert len(result.played_marks) == len(played)
    correct_target = result.target_marks.count(NoteStatus.CORRECT)
    assert correct_target == result.played_marks.count(NoteStatus.CORRECT)


def test_empty_inputs():
    assert comparator.compare_melodies([], []).pitch_score == 100
    only_played = comparator.compare_melodies([], _played(60))
    assert only_played.pitch_score == 0
    assert only_played.played_marks == (NoteStatus.EXTRA,)
    nothing_played = comparator.compare_melodies(_target(60, 62), [])
    assert nothing_played.combined_score == 0
    assert nothing_played.target_marks == (NoteStatus.MISSING, NoteStatus.MISSING)


def test_expected_onsets_default_to_one_beat():
    target = _target(60, 62, 64, durations=[0.5, None, 1.0])
    assert comparator.expected_onsets(target, 120) == [0.0, 0.25, 0.75]


@pytest.mark.parametrize(
    "onset, score, status",
    [
        (0.0, 100, TimingStatus.ON_TIME),
        (0.1, 100, TimingStatus.ON_TIME),
        (0.15, 50, TimingStatus.LATE),
        (-0.15, 50, TimingStatus.EARLY),
        (0.2, 50, TimingStatus.LATE),
        (0.3, 0, TimingStatus.LATE),
        (-0.3, 0, TimingStatus.EARLY),
    ],
)
def test_rhythm_tolerances(onset, score, status):
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=120)
    result = comparator.compare_melodies(
        _target(60, durations=[1.0]), _played(60, onsets=[onset]), options
    )
    assert result.rhythm_score == score
    assert result.timing_marks == (status,)


def test_tolerance_edge_with_float_error():
    # 0.6 - 0.5 is slightly above 0.1 in binary floating point.
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=120)
    result = comparator.compare_melodies(
        _target(60, 62, durations=[1.0, 1.0]), _played(60, 62, onsets=[0.0, 0.6]), options
    )
    assert result.rhythm_score == 100


def test_combined_score_weights_pitch_and_rhythm():
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=120)
    result = comparator.compare_melodies(
        _target(60, 62, durations=[1.0, 1.0]),
        _played(60, 62, onsets=[0.0, 0.65]),
        options,
    )
    assert result.pitch_score == 100
    assert result.rhythm_score == 75
    assert result.combined_score == 90
    assert result.timing_marks == (TimingStatus.ON_TIME, TimingStatus.LATE)


def test_rhythm_without_matches_scores_zero():
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=100)
    result = comparator.compare_melodies(_target(60), _played(61), options)
    assert result.rhythm_score == 0
    assert result.combined_score == 0
    assert result.timing_marks == (TimingStatus.ON_TIME,)


def test_rhythm_requires_tempo():
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=None)
    result = comparator.compare_melodies(_target(60), _played(60, onsets=[5.0]), options)
    assert result.rhythm_score is None
    assert result.combined_score == 100


def test_result_to_dict_uses_plain_values():
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=60)
    data = comparator.compare_melodies(_target(60), _played(60), options).to_dict()
    assert data["target_marks"] == ["correct"]
    assert data["timing_marks"] == ["on-time"]
    assert data["rhythm_score"] == 100


@pytest.mark.parametrize("seed", range(25))
def test_generated_rhythm_melody_played_on_time_is_perfect(seed):
    generator = importlib.import_module("ear_trainer.generator")
    config = models.DifficultyConfig(note_count=8, rhythm_mode_enabled=True, tempo_bpm=137)
    target = generator.generate_melody(config, random.Random(seed))
    onsets = comparator.expected_onsets(target, config.tempo_bpm)
    played = [PlayedNote(note.pitch, onset) for note, onset in zip(target, onsets)]
    options = comparator.ComparisonOptions(rhythm_mode_enabled=True, tempo_bpm=137)
    result = comparator.compare_melodies(target, played, options)
    assert (result.pitch_score, result.rhythm_score, result.combined_score) == (100, 100, 100)
    assert set(result.target_marks) == {NoteStatus.CORRECT}
    assert set(result.played_marks) == {NoteStatus.CORRECT}
    assert result.timing_marks == (TimingStatus.ON_TIME,) * 8
