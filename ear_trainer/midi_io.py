"""Reading and writing exercise material as MIDI.

Modification summary
--------------------
* ``create_midi_file`` renders a :data:`Melody` on a single track with the
  exercise tempo so generated rounds can be opened in any MIDI player.
* ``played_notes_from_messages`` and ``played_notes_from_timed`` turn
  ``mido`` note messages into :class:`PlayedNote` sequences, the form the
  comparator consumes. The first handles messages whose ``time`` is a delta
  in seconds (as yielded when iterating a ``MidiFile``); the second handles
  live input where each message arrives with an absolute timestamp.
* ``read_melody`` recovers a target melody, with durations in beats, from a
  monophonic MIDI file.

The module never opens MIDI ports; capturing from a device is left to the
caller, who hands the received messages to the helpers here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import mido
from mido import Message, MetaMessage, MidiFile, MidiTrack

from .models import Melody, MelodyNote, PlayedNote

__all__ = [
    "TICKS_PER_BEAT",
    "create_midi_file",
    "played_notes_from_messages",
    "played_notes_from_timed",
    "read_melody",
    "read_played_notes",
]

logger = logging.getLogger(__name__)

TICKS_PER_BEAT = 480


def _is_note_on(msg: Message) -> bool:
    return msg.type == "note_on" and msg.velocity > 0


def _is_note_off(msg: Message) -> bool:
    return msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0)


def create_midi_file(
    melody: Melody,
    tempo_bpm: float,
    output_file: Union[str, Path],
    program: int = 0,
    velocity: int = 96,
) -> MidiFile:
    """Write ``melody`` to ``output_file`` and return the ``MidiFile``.

    Notes without a duration last one beat. The parent directory of
    ``output_file`` is created when missing.

    Raises
    ------
    ValueError
        If ``tempo_bpm`` is not positive or ``program``/``velocity`` fall
        outside the MIDI data range.
    """

    if tempo_bpm <= 0:
        raise ValueError("tempo_bpm must be positive")
    if not 0 <= program <= 127:
        raise ValueError("program must be between 0 and 127")
    if not 1 <= velocity <= 127:
        raise ValueError("velocity must be between 1 and 127")

    mid = MidiFile(ticks_per_beat=TICKS_PER_BEAT)
    track = MidiTrack()
    mid.tracks.append(track)
    track.append(MetaMessage("set_tempo", tempo=mido.bpm2tempo(tempo_bpm), time=0))
    track.append(Message("program_change", program=program, time=0))

    for note in melody:
        beats = note.duration_beats if note.duration_beats is not None else 1.0
        ticks = int(round(beats * TICKS_PER_BEAT))
        track.append(Message("note_on", note=note.pitch, velocity=velocity, time=0))
        track.append(Message("note_off", note=note.pitch, velocity=0, time=ticks))

    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    mid.save(str(path))
    logger.info("Wrote %d notes to %s", len(melody), path)
    return mid


def played_notes_from_messages(messages: Iterable[Message]) -> List[PlayedNote]:
    """Convert delta-timed messages into played notes.

    ``time`` on each message is the number of seconds since the previous
    message. Onsets are measured from the start of the stream; only
    ``note_on`` events with a positive velocity produce notes.
    """

    notes: List[PlayedNote] = []
    elapsed = 0.0
    for msg in messages:
        elapsed += msg.time
        if _is_note_on(msg):
            notes.append(PlayedNote(msg.note, elapsed))
    return notes


def played_notes_from_timed(
    events: Iterable[Tuple[float, Message]], start: float
) -> List[PlayedNote]:
    """Convert ``(timestamp, message)`` pairs into played notes.

    ``start`` is the instant recording began, on the same clock as the
    timestamps. Events are kept in arrival order.
    """

    return [PlayedNote(msg.note, stamp - start) for stamp, msg in events if _is_note_on(msg)]


def read_played_notes(path: Union[str, Path]) -> List[PlayedNote]:
    """Return the notes of a recorded MIDI file with onsets in seconds."""

    return played_notes_from_messages(MidiFile(str(path)))


def read_melody(path: Union[str, Path], with_durations: bool = True) -> Melody:
    """Load a monophonic melody from a MIDI file.

    Each duration is the time until the next note starts, so rests are
    folded into the preceding note and onsets line up with what the
    comparator expects. The last note uses its sounding length. Pass
    ``with_durations=False`` for a pitch-only melody.
    """

    mid = MidiFile(str(path))
    onsets: List[Tuple[int, int]] = []
    last_off: Optional[int] = None
    ticks = 0
    for msg in mido.merge_tracks(mid.tracks):
        ticks += msg.time
        if _is_note_on(msg):
            onsets.append((ticks, msg.note))
        elif _is_note_off(msg) and onsets and msg.note == onsets[-1][1]:
            last_off = ticks

    if not with_durations:
        return [MelodyNote(pitch) for _, pitch in onsets]

    melody: Melody = []
    for idx, (start, pitch) in enumerate(onsets):
        if idx + 1 < len(onsets):
            end = onsets[idx + 1][0]
        else:
            end = last_off if last_off is not None and last_off > start else start + mid.ticks_per_beat
        melody.append(MelodyNote(pitch, (end - start) / mid.ticks_per_beat))
    return melody
