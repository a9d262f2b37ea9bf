#!/usr/bin/env python3
"""
Melody Transcriber

Transcribes a monophonic vocal recording (humming, singing, whistling) into a
quantized melody and exports it as a JSON melody document and a MIDI file.

The recording is cut into fixed-size blocks and fed through a RecordingSession
exactly as a live capture would be, one block per tick.

Usage:
    python melody_transcriber.py --audio take.wav --bpm 100 --quantization 8 \\
        --output data/melodies/take.json --midi data/melodies/take.mid
"""

import argparse
from pathlib import Path
from typing import Optional

import numpy as np

from audio_source import DEFAULT_BLOCK_SIZE, DEFAULT_SAMPLE_RATE, iter_audio_blocks, load_audio_file
from frequency_smoother import FrequencySmoother
from melody import Melody
from melody_player import MelodyPlayer
from midi_encoder import save_midi
from note_mapper import NoteMapper
from note_segmenter import SegmenterConfig
from pitch_estimator import PITCH_METHODS, PitchEstimator
from quantizer import VALID_QUANTIZATIONS
from recording_session import RecordingSession


def transcribe_audio(audio: np.ndarray, sample_rate: int,
                     session: Optional[RecordingSession] = None,
                     block_size: int = DEFAULT_BLOCK_SIZE) -> Melody:
    """
    Transcribe an in-memory mono signal.

    Args:
        audio: Mono samples in [-1, 1]
        sample_rate: Sample rate in Hz
        session: Configured session (default: 120 BPM, sixteenth grid)
        block_size: Samples per tick

    Returns:
        Finalized melody
    """
    session = session or RecordingSession()
    return session.transcribe_blocks(iter_audio_blocks(audio, sample_rate, block_size))


def print_melody_summary(melody: Melody):
    """Print the note list and totals."""
    print(f"\n=== Melody ({melody.bpm:g} BPM, 1/{melody.quantization} grid) ===")
    if melody.is_empty:
        print("  No notes detected")
        return
    for line in melody.summary():
        print(f"  {line}")
    num_notes = len(melody.notes)
    print(f"\nNotes: {num_notes}")
    print(f"Pauses: {len(melody.events) - num_notes}")
    print(f"Total duration: {melody.total_duration:.2f}s")


def main():
    parser = argparse.ArgumentParser(
        description="Transcribe a sung or hummed melody to JSON and MIDI"
    )
    parser.add_argument(
        '--audio',
        type=str,
        required=True,
        help='Path to input audio file (wav, mp3, flac, ...)'
    )
    parser.add_argument(
        '--bpm',
        type=float,
        default=120.0,
        help='Tempo for quantization and MIDI export (default: 120)'
    )
    parser.add_argument(
        '--quantization',
        type=int,
        default=16,
        choices=list(VALID_QUANTIZATIONS),
        help='Grid subdivision: 4 = quarter, 8 = eighth, 16 = sixteenth (default: 16)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default='data/melodies/melody.json',
        help='Output melody JSON path'
    )
    parser.add_argument(
        '--midi',
        type=str,
        help='Output MIDI file path (optional)'
    )
    parser.add_argument(
        '--preview',
        type=str,
        help='Render the transcription to this WAV file (optional)'
    )
    parser.add_argument(
        '--method',
        type=str,
        default='autocorrelation',
        choices=list(PITCH_METHODS),
        help='Pitch detection method (default: autocorrelation). '
             'spectral/hybrid add harmonic checks against octave errors'
    )
    parser.add_argument(
        '--block-size',
        type=int,
        default=DEFAULT_BLOCK_SIZE,
        help='Samples per analysis block (default: 2048)'
    )
    parser.add_argument(
        '--sample-rate',
        type=int,
        default=DEFAULT_SAMPLE_RATE,
        help='Resample input to this rate (default: 44100)'
    )
    parser.add_argument(
        '--tolerance',
        type=float,
        default=40.0,
        help='Max deviation from the nearest note in cents (default: 40)'
    )
    parser.add_argument(
        '--min-duration',
        type=float,
        default=0.1,
        help='Minimum note duration in seconds (default: 0.1)'
    )
    parser.add_argument(
        '--confirmations',
        type=int,
        default=4,
        help='Consecutive blocks needed to confirm a note change (default: 4)'
    )
    parser.add_argument(
        '--hysteresis',
        type=float,
        default=15.0,
        help='Extra cents a note is held past the half-semitone boundary (default: 15)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print notes as they are detected'
    )

    args = parser.parse_args()

    if not Path(args.audio).exists():
        print(f"Error: Audio file not found: {args.audio}")
        return 1

    print("=== Melody Transcriber ===\n")
    print(f"Audio: {args.audio}")
    print(f"Tempo: {args.bpm:g} BPM, 1/{args.quantization} grid")
    print(f"Pitch detection: {args.method}")
    print(f"Output: {args.output}\n")

    try:
        session = RecordingSession(
            bpm=args.bpm,
            quantization=args.quantization,
            estimator=PitchEstimator(method=args.method),
            smoother=FrequencySmoother(),
            mapper=NoteMapper(tolerance_cents=args.tolerance),
            segmenter_config=SegmenterConfig(
                min_duration=args.min_duration,
                confirmation_count=args.confirmations,
                hysteresis_cents=args.hysteresis
            ),
            verbose=args.verbose
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print("Loading audio...")
    audio, sample_rate = load_audio_file(args.audio, sample_rate=args.sample_rate)
    print(f"Loaded {len(audio) / sample_rate:.2f}s at {sample_rate} Hz")

    print(f"Transcribing in {args.block_size}-sample blocks...")
    melody = transcribe_audio(audio, sample_rate, session, block_size=args.block_size)

    print_melody_summary(melody)

    melody.save_json(args.output)
    print(f"\nSaved melody to: {args.output}")

    if args.midi:
        save_midi(melody, args.midi)

    if args.preview:
        player = MelodyPlayer(sample_rate=sample_rate)
        player.save_audio(player.render_melody(melody), args.preview)

    print("\n=== Transcription Complete ===")
    return 0


if __name__ == "__main__":
    import sys
    sys.exit(main() or 0)
