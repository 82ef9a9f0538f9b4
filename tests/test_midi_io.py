"""Unit tests for ``midi_io``.

Melodies are written with the real ``mido`` library into ``tmp_path`` and
read back to confirm note events, timing and the conversion of recorded
answers into :class:`PlayedNote` sequences.
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import mido
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

midi_io = importlib.import_module("ear_trainer.midi_io")
models = importlib.import_module("ear_trainer.models")

MelodyNote = models.MelodyNote
PlayedNote = models.PlayedNote


def test_create_midi_file_writes_note_events(tmp_path):
    melody = [MelodyNote(60, 1.0), MelodyNote(64, 0.5), MelodyNote(67)]
    path = tmp_path / "nested" / "round.mid"
    result = midi_io.create_midi_file(melody, 120, path, program=40)

    assert isinstance(result, mido.MidiFile)
    assert path.exists()
    loaded = mido.MidiFile(str(path))
    messages = list(loaded.tracks[0])
    tempos = [m.tempo for m in messages if m.type == "set_tempo"]
    assert tempos == [mido.bpm2tempo(120)]
    programs = [m.program for m in messages if m.type == "program_change"]
    assert programs == [40]
    ons = [m.note for m in messages if m.type == "note_on" and m.velocity > 0]
    assert ons == [60, 64, 67]
    offs = [m.time for m in messages if m.type == "note_off"]
    assert offs == [480, 240, 480]


@pytest.mark.parametrize(
    "kwargs",
    [{"tempo_bpm": 0}, {"tempo_bpm": 100, "program": 128}, {"tempo_bpm": 100, "velocity": 0}],
)
def test_create_midi_file_validation(tmp_path, kwargs):
    with pytest.raises(ValueError):
        midi_io.create_midi_file([MelodyNote(60)], output_file=tmp_path / "x.mid", **kwargs)


def test_read_melody_recovers_durations(tmp_path):
    melody = [MelodyNote(62, 1.5), MelodyNote(65, 0.5), MelodyNote(69, 2.0)]
    path = tmp_path / "target.mid"
    midi_io.create_midi_file(melody, 90, path)
    assert midi_io.read_melody(path) == melody
    assert midi_io.read_melody(path, with_durations=False) == [
        MelodyNote(62),
        MelodyNote(65),
        MelodyNote(69),
    ]


def test_read_played_notes_uses_seconds(tmp_path):
    path = tmp_path / "answer.mid"
    midi_io.create_midi_file([MelodyNote(60), MelodyNote(62), MelodyNote(64)], 120, path)
    played = midi_io.read_played_notes(path)
    assert [n.pitch for n in played] == [60, 62, 64]
    assert [n.onset_seconds for n in played] == pytest.approx([0.0, 0.5, 1.0])


def test_played_notes_from_messages_accumulates_deltas():
    messages = [
        mido.Message("note_on", note=60, velocity=80, time=0.0),
        mido.Message("note_off", note=60, velocity=0, time=0.4),
        mido.Message("note_on", note=62, velocity=80, time=0.2),
        mido.Message("note_on", note=62, velocity=0, time=0.3),
        mido.Message("control_change", control=64, value=0, time=0.1),
        mido.Message("note_on", note=64, velocity=70, time=0.0),
    ]
    played = midi_io.played_notes_from_messages(messages)
    assert [n.pitch for n in played] == [60, 62, 64]
    assert [n.onset_seconds for n in played] == pytest.approx([0.0, 0.6, 1.0])


def test_played_notes_from_timed_subtracts_start():
    events = [
        (10.25, mido.Message("note_on", note=67, velocity=90)),
        (10.5, mido.Message("note_off", note=67)),
        (10.75, mido.Message("note_on", note=69, velocity=90)),
    ]
    played = midi_io.played_notes_from_timed(events, start=10.0)
    assert played == [PlayedNote(67, 0.25), PlayedNote(69, 0.75)]
