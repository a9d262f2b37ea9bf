#!/usr/bin/env python3
"""
MIDI Encoder

Serializes a finalized Melody into a single-track (format 0) Standard MIDI File:
set-tempo, program change, then a note-on / note-off pair per note. Pauses and
unparseable note names produce no events; they only move the time cursor.
The output is deterministic: the same melody always yields the same bytes.

Usage:
    python midi_encoder.py --melody melody.json --output melody.mid
"""

import argparse
import io
import math
from pathlib import Path
from typing import List, Tuple

try:
    import mido
except ImportError:
    print("Error: mido not installed. Install with: pip install mido")
    import sys
    sys.exit(1)

from melody import Melody
from pitch_utils import note_name_to_midi
from quantizer import validate_tempo


DEFAULT_TICKS_PER_QUARTER = 480
DEFAULT_VELOCITY = 80
DEFAULT_PROGRAM = 0  # Acoustic Grand Piano


def seconds_to_ticks(duration: float, bpm: float,
                     ticks_per_quarter: int = DEFAULT_TICKS_PER_QUARTER) -> int:
    """Convert seconds to ticks: duration * (bpm / 60) * ticks_per_quarter, rounded half up."""
    return max(0, int(math.floor(duration * (bpm / 60.0) * ticks_per_quarter + 0.5)))


def build_midi_file(melody: Melody, ticks_per_quarter: int = DEFAULT_TICKS_PER_QUARTER,
                    velocity: int = DEFAULT_VELOCITY, program: int = DEFAULT_PROGRAM,
                    channel: int = 0) -> mido.MidiFile:
    """
    Build the MIDI file object for a melody.

    Args:
        melody: Finalized melody
        ticks_per_quarter: Time division
        velocity: Note-on velocity (1-127)
        program: General MIDI program selected before the first note
        channel: MIDI channel (0-15)

    Returns:
        mido.MidiFile (type 0, one track)

    Raises:
        ValueError: If the tempo cannot be stored in a MIDI file
    """
    validate_tempo(melody.bpm)

    midi_file = mido.MidiFile(type=0, ticks_per_beat=ticks_per_quarter)
    track = mido.MidiTrack()
    midi_file.tracks.append(track)

    track.append(mido.MetaMessage('set_tempo', tempo=mido.bpm2tempo(melody.bpm), time=0))

    # (absolute tick, message)
    timed: List[Tuple[int, mido.Message]] = []
    cursor = 0
    for event in melody.events:
        ticks = seconds_to_ticks(event.duration_seconds, melody.bpm, ticks_per_quarter)
        if not event.is_pause:
            note = note_name_to_midi(event.note_name)
            if note is not None:
                timed.append((cursor, mido.Message('note_on', note=note, velocity=velocity,
                                                   channel=channel)))
                timed.append((cursor + ticks, mido.Message('note_off', note=note, velocity=0,
                                                           channel=channel)))
        cursor += ticks

    if timed:
        track.append(mido.Message('program_change', program=program, channel=channel, time=0))

    # Stable sort keeps note-off before the next note-on at the same tick
    timed.sort(key=lambda item: item[0])
    last_tick = 0
    for tick, message in timed:
        track.append(message.copy(time=tick - last_tick))
        last_tick = tick

    track.append(mido.MetaMessage('end_of_track', time=0))
    return midi_file


def melody_to_midi(melody: Melody, ticks_per_quarter: int = DEFAULT_TICKS_PER_QUARTER,
                   velocity: int = DEFAULT_VELOCITY, program: int = DEFAULT_PROGRAM) -> bytes:
    """Encode a melody as Standard MIDI File bytes."""
    buffer = io.BytesIO()
    build_midi_file(melody, ticks_per_quarter, velocity, program).save(file=buffer)
    return buffer.getvalue()


def save_midi(melody: Melody, output_path: str,
              ticks_per_quarter: int = DEFAULT_TICKS_PER_QUARTER,
              velocity: int = DEFAULT_VELOCITY, program: int = DEFAULT_PROGRAM) -> Path:
    """
    Write a melody to a .mid file.

    Returns:
        Path written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(melody_to_midi(melody, ticks_per_quarter, velocity, program))
    print(f"Saved MIDI to: {output_path}")
    return output_path


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Convert a melody JSON document to a MIDI file"
    )
    parser.add_argument(
        '--melody',
        type=str,
        required=True,
        help='Path to melody JSON file'
    )
    parser.add_argument(
        '--output',
        type=str,
        required=False,
        help='Output MIDI path (default: melody path with .mid extension)'
    )
    parser.add_argument(
        '--ticks-per-quarter',
        type=int,
        default=DEFAULT_TICKS_PER_QUARTER,
        help='MIDI time division (default: 480)'
    )
    parser.add_argument(
        '--velocity',
        type=int,
        default=DEFAULT_VELOCITY,
        help='Note velocity 1-127 (default: 80)'
    )
    parser.add_argument(
        '--program',
        type=int,
        default=DEFAULT_PROGRAM,
        help='General MIDI program 0-127 (default: 0, piano)'
    )

    args = parser.parse_args()

    melody_path = Path(args.melody)
    if not melody_path.exists():
        print(f"Error: Melody file not found: {args.melody}")
        return 1
    if not 1 <= args.velocity <= 127:
        print(f"Error: Velocity must be 1-127, got {args.velocity}")
        return 1
    if not 0 <= args.program <= 127:
        print(f"Error: Program must be 0-127, got {args.program}")
        return 1

    try:
        melody = Melody.load_json(str(melody_path))
        print(f"Loaded melody: {len(melody.notes)} notes at {melody.bpm:g} BPM, "
              f"{melody.total_duration:.2f}s")

        output_path = Path(args.output) if args.output else melody_path.with_suffix('.mid')
        save_midi(melody, str(output_path), args.ticks_per_quarter, args.velocity, args.program)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    import sys
    sys.exit(main() or 0)
