"""Command line interface tests.

``run_cli`` is called with explicit argument lists. Output is captured with
``capsys`` and failures are expected to log an error and exit with status
``1``. Every ``generate`` call points ``--settings-file`` into ``tmp_path`` so
the user's real settings never leak into the results.
"""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path

import mido
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

cli = importlib.import_module("ear_trainer.cli")


@pytest.fixture
def settings_file(tmp_path):
    return str(tmp_path / "settings.json")


def test_list_keys_and_scales(capsys):
    cli.run_cli(["list-keys"])
    keys = capsys.readouterr().out.split()
    assert keys[0] == "C" and "F#" in keys and len(keys) == 12
    cli.run_cli(["list-scales"])
    assert "harmonic minor" in capsys.readouterr().out


def test_generate_is_reproducible(capsys, settings_file):
    args = ["generate", "--notes", "5", "--seed", "11", "--settings-file", settings_file]
    cli.run_cli(args)
    first = capsys.readouterr().out.strip()
    cli.run_cli(args)
    second = capsys.readouterr().out.strip()
    assert first == second
    assert len(first.split()) == 5


def test_generate_json_and_flat_spelling(capsys, settings_file):
    cli.run_cli(
        ["generate", "--key", "Bb", "--notes", "4", "--rhythm", "--seed", "2", "--json",
         "--settings-file", settings_file]
    )
    data = json.loads(capsys.readouterr().out)
    assert data["config"]["key"] == "Bb"
    assert len(data["notes"]) == 4
    assert all(note["duration_beats"] is not None for note in data["notes"])
    assert not any("#" in note["name"] for note in data["notes"])


def test_generate_writes_midi(tmp_path, settings_file):
    output = tmp_path / "out" / "round.mid"
    cli.run_cli(
        ["generate", "--notes", "3", "--seed", "1", "--output", str(output),
         "--settings-file", settings_file]
    )
    notes = [m for m in mido.MidiFile(str(output)) if m.type == "note_on" and m.velocity]
    assert len(notes) == 3


def test_generate_reads_and_saves_settings(tmp_path, capsys):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"note_count": 6, "key": "D"}))
    cli.run_cli(["generate", "--seed", "4", "--settings-file", str(path), "--save-settings"])
    assert len(capsys.readouterr().out.split()) == 6
    saved = json.loads(path.read_text())
    assert saved["key"] == "D"
    assert saved["note_count"] == 6


def test_generate_invalid_key_exits(caplog, settings_file):
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc:
            cli.run_cli(["generate", "--key", "H", "--settings-file", settings_file])
    assert exc.value.code == 1
    assert "Unknown key" in caplog.text


def test_generate_invalid_note_count_exits(settings_file):
    with pytest.raises(SystemExit) as exc:
        cli.run_cli(["generate", "--notes", "20", "--settings-file", settings_file])
    assert exc.value.code == 1


def test_compare_report(capsys):
    cli.run_cli(["compare", "--target", "C4,D4,E4,F4", "--played", "C4,E4,D4,F4"])
    out = capsys.readouterr().out
    assert "Pitch score: 75" in out
    assert "Combined score: 75" in out
    assert "Rhythm score" not in out


def test_compare_json_with_rhythm(capsys):
    cli.run_cli(
        ["compare", "--target", "60,62", "--durations", "1,1", "--played", "60,62",
         "--onsets", "0,0.65", "--rhythm", "--bpm", "120", "--json"]
    )
    data = json.loads(capsys.readouterr().out)
    assert data["pitch_score"] == 100
    assert data["rhythm_score"] == 75
    assert data["combined_score"] == 90
    assert data["timing_marks"] == ["on-time", "late"]


def test_compare_midi_inputs(tmp_path, capsys):
    from ear_trainer.midi_io import create_midi_file
    from ear_trainer.models import MelodyNote

    target = tmp_path / "target.mid"
    played = tmp_path / "played.mid"
    create_midi_file([MelodyNote(60), MelodyNote(64), MelodyNote(67)], 100, target)
    create_midi_file([MelodyNote(60), MelodyNote(67)], 100, played)
    cli.run_cli(["compare", "--target-midi", str(target), "--played-midi", str(played), "--json"])
    assert json.loads(capsys.readouterr().out)["pitch_score"] == 67


@pytest.mark.parametrize(
    "extra",
    [
        ["--played", "C4,D4", "--rhythm"],
        ["--played", "C4,Q4"],
        ["--played", "C4,D4", "--onsets", "0"],
        ["--played", "C4", "--bpm", "0"],
        ["--played-midi", "does-not-exist.mid"],
    ],
)
def test_compare_errors_exit(extra, caplog):
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc:
            cli.run_cli(["compare", "--target", "C4,D4"] + extra)
    assert exc.value.code == 1
    assert caplog.records


def test_ladder_table(capsys):
    cli.run_cli(["ladder"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 8
    assert lines[0].startswith("1. Beginner")


def test_ladder_for_streak(capsys):
    cli.run_cli(["ladder", "--streak", "4"])
    out = capsys.readouterr().out
    assert "Easy" in out
    assert "Next: Moderate after 2 more" in out
    cli.run_cli(["ladder", "--streak", "40"])
    assert "Top level reached." in capsys.readouterr().out


def test_missing_subcommand_is_usage_error():
    with pytest.raises(SystemExit) as exc:
        cli.run_cli([])
    assert exc.value.code == 2


def test_main_configures_logging(monkeypatch, capsys):
    calls = {}
    monkeypatch.setattr(cli.logging, "basicConfig", lambda **kw: calls.update(kw))
    cli.main(["list-scales"])
    assert calls["level"] == logging.INFO
    assert "major" in capsys.readouterr().out
