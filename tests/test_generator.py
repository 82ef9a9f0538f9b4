"""Tests for melody generation.

Generation is random, so most checks assert properties that must hold for
every seed: length, register, scale membership and interval limits. Fixed
seeds confirm determinism and small fake scale providers exercise the
fallback paths.
"""

from __future__ import annotations

import importlib
import logging
import random
import sys
from collections import Counter
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

generator = importlib.import_module("ear_trainer.generator")
models = importlib.import_module("ear_trainer.models")
scales = importlib.import_module("ear_trainer.scales")
rhythm_engine = importlib.import_module("ear_trainer.rhythm_engine")

DifficultyConfig = models.DifficultyConfig


class FakeScales:
    """Scale provider returning fixed pitches."""

    def __init__(self, pitches, triad=frozenset({0})):
        self.pitches = list(pitches)
        self.triad = frozenset(triad)

    def scale_pitches_in_range(self, key, scale_name, low, high):
        return list(self.pitches)

    def tonic_triad_pitch_classes(self, key, scale_name):
        return self.triad


@pytest.mark.parametrize("seed", range(20))
@pytest.mark.parametrize(
    "key, scale, max_interval",
    [
        ("C", "major", 3),
        ("G", "major", 7),
        ("A", "natural minor", 5),
        ("Eb", "harmonic minor", 12),
        ("F#", "pentatonic", 3),
        ("Bb", "blues", 5),
        ("D", "chromatic", 2),
    ],
)
def test_melody_properties(seed, key, scale, max_interval):
    config = DifficultyConfig(
        note_count=6, key=key, scale_name=scale, max_interval_semitones=max_interval
    )
    melody = generator.generate_melody(config, random.Random(seed))
    pitches = [note.pitch for note in melody]
    allowed = set(scales.scale_pitches_in_range(key, scale, 52, 72))
    triad = scales.tonic_triad_pitch_classes(key, scale)

    assert len(melody) == 6
    assert set(pitches) <= allowed
    assert pitches[0] % 12 in triad
    for prev, curr in zip(pitches, pitches[1:]):
        assert 0 < abs(curr - prev) <= max_interval
    assert all(note.duration_beats is None for note in melody)


def test_same_seed_same_melody():
    config = DifficultyConfig(note_count=8, rhythm_mode_enabled=True)
    first = generator.generate_melody(config, random.Random(42))
    second = generator.generate_melody(config, random.Random(42))
    assert first == second


def test_rhythm_mode_assigns_durations():
    config = DifficultyConfig(note_count=8, rhythm_mode_enabled=True)
    melody = generator.generate_melody(config, random.Random(5))
    assert all(note.duration_beats in rhythm_engine.DURATION_POOL for note in melody)


def test_zero_notes_returns_empty():
    assert generator.generate_melody(DifficultyConfig(note_count=0), random.Random(1)) == []


def test_default_rng_is_used_when_omitted():
    assert len(generator.generate_melody(DifficultyConfig(note_count=3))) == 3


def test_fallback_fragment_for_unknown_scale(caplog):
    config = DifficultyConfig(note_count=6, scale_name="no such scale")
    with caplog.at_level(logging.WARNING):
        melody = generator.generate_melody(config, random.Random(1))
    assert [n.pitch for n in melody] == [60, 62, 64, 65, 60, 62]
    assert "fallback" in caplog.text


def test_fallback_fragment_truncates():
    config = DifficultyConfig(note_count=3)
    melody = generator.generate_melody(config, random.Random(1), FakeScales([]))
    assert [n.pitch for n in melody] == [60, 62, 64]


def test_fallback_fragment_draws_rhythm_pattern():
    config = DifficultyConfig(note_count=5, rhythm_mode_enabled=True)
    melody = generator.generate_melody(config, random.Random(9), FakeScales([]))
    expected = rhythm_engine.RhythmGenerator().generate(5, random.Random(9))
    assert [n.pitch for n in melody] == [60, 62, 64, 65, 60]
    assert [n.duration_beats for n in melody] == expected


def test_no_candidates_picks_any_scale_pitch():
    config = DifficultyConfig(note_count=5, max_interval_semitones=3)
    provider = FakeScales([60, 72])
    melody = generator.generate_melody(config, random.Random(9), provider)
    assert len(melody) == 5
    assert {n.pitch for n in melody} <= {60, 72}


def test_empty_triad_still_generates():
    config = DifficultyConfig(note_count=4, max_interval_semitones=4)
    provider = FakeScales([60, 62, 64, 65, 67], triad=frozenset())
    melody = generator.generate_melody(config, random.Random(2), provider)
    assert len(melody) == 4


def test_candidate_weight_components():
    triad = frozenset({0, 4, 7})
    # Triad tone a step away with no leap to recover from.
    assert generator.candidate_weight(3, 2, 4, triad, 0, 7, 0, False) == 4 * 5
    # Non-triad tone a skip away.
    assert generator.candidate_weight(4, 2, 2, triad, 0, 7, 0, False) == 1 * 3
    # Leap after an upward leap is rewarded when moving down.
    assert generator.candidate_weight(0, 5, 0, triad, 0, 7, 1, False) == 4 * 1 * 3
    assert generator.candidate_weight(9, 5, 0, triad, 0, 7, 1, False) == 4 * 1


def test_candidate_weight_resolution():
    triad = frozenset({0, 4, 7})
    assert generator.candidate_weight(3, 2, 0, triad, 0, 7, 0, True) == 6 * 5
    assert generator.candidate_weight(3, 2, 7, triad, 0, 7, 0, True) == 3 * 5
    # The third is a triad tone but gets no cadence weight.
    assert generator.candidate_weight(3, 2, 4, triad, 0, 7, 0, True) == 1 * 5


def test_final_note_favours_tonic():
    config = DifficultyConfig(note_count=4, max_interval_semitones=12)
    endings = Counter(
        generator.generate_melody(config, random.Random(seed))[-1].pitch % 12
        for seed in range(300)
    )
    assert endings.most_common(1)[0][0] == 0


@pytest.mark.parametrize(
    "key, pitches, triad, expected",
    [
        ("A", [55, 60, 64, 69], frozenset({9, 0, 4}), 9),
        ("bb", [53, 58, 62], frozenset({10, 2, 5}), 10),
        ("nonsense", [55, 57, 60, 64], frozenset({9, 0, 4}), 9),
        ("nonsense", [55, 62], frozenset({9, 0, 4}), 0),
        ("", [50, 52], frozenset(), 0),
    ],
)
def test_root_comes_from_key_then_lowest_triad_tone(key, pitches, triad, expected):
    assert generator._root_pitch_class(key, pitches, triad) == expected
