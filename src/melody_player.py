#!/usr/bin/env python3
"""
Melody Player

Renders a transcribed melody back to audio so a take can be checked by ear.
Each note becomes a short additive-synthesis tone with an ADSR envelope;
pauses render as silence, so the preview lines up with the melody timeline.

Usage:
    python melody_player.py --melody melody.json --output preview.wav
"""

import argparse
from pathlib import Path

import numpy as np
import soundfile as sf

from melody import Melody
from pitch_utils import midi_to_hz, note_name_to_midi


class MelodyPlayer:
    """Synthesizes melodies as audio."""

    def __init__(self, sample_rate: int = 44100):
        """
        Initialize the player.

        Args:
            sample_rate: Audio sample rate in Hz
        """
        self.sample_rate = sample_rate

    def generate_tone(self, frequency: float, duration: float,
                      attack: float = 0.01, decay: float = 0.05,
                      sustain_level: float = 0.8, release: float = 0.03) -> np.ndarray:
        """
        Generate a tone with two overtones and an ADSR envelope.

        Args:
            frequency: Frequency in Hz
            duration: Duration in seconds
            attack: Attack time (seconds)
            decay: Decay time (seconds)
            sustain_level: Sustain amplitude (0-1)
            release: Release time (seconds)

        Returns:
            Waveform peaking at 0.5
        """
        num_samples = int(round(duration * self.sample_rate))
        if num_samples <= 0:
            return np.zeros(0)

        t = np.arange(num_samples) / self.sample_rate
        waveform = np.sin(2 * np.pi * frequency * t)
        waveform += 0.5 * np.sin(4 * np.pi * frequency * t)
        waveform += 0.25 * np.sin(6 * np.pi * frequency * t)

        waveform *= self._adsr_envelope(num_samples, attack, decay, sustain_level, release)

        peak = np.max(np.abs(waveform))
        if peak > 0:
            waveform = waveform / peak * 0.5
        return waveform

    def _adsr_envelope(self, num_samples: int, attack: float, decay: float,
                       sustain_level: float, release: float) -> np.ndarray:
        envelope = np.full(num_samples, sustain_level, dtype=np.float64)

        # Short notes squeeze the envelope segments to fit
        attack_samples = min(int(attack * self.sample_rate), num_samples)
        decay_samples = min(int(decay * self.sample_rate), num_samples - attack_samples)
        release_samples = min(int(release * self.sample_rate),
                              num_samples - attack_samples - decay_samples)

        if attack_samples > 0:
            envelope[:attack_samples] = np.linspace(0, 1, attack_samples, endpoint=False)
        if decay_samples > 0:
            start = attack_samples
            envelope[start:start + decay_samples] = np.linspace(1, sustain_level, decay_samples)
        if release_samples > 0:
            envelope[num_samples - release_samples:] = np.linspace(sustain_level, 0, release_samples)

        return envelope

    def render_melody(self, melody: Melody, verbose: bool = False) -> np.ndarray:
        """
        Render every event of a melody back to back.

        Notes use their measured frequency when present, otherwise the ideal
        pitch of the note name. Unparseable note names render as silence.

        Args:
            melody: Melody to render
            verbose: Print each event as it is rendered

        Returns:
            Audio waveform
        """
        segments = []
        for i, event in enumerate(melody.events):
            frequency = None
            if not event.is_pause:
                frequency = event.frequency_hz
                if frequency is None:
                    midi = note_name_to_midi(event.note_name)
                    if midi is not None:
                        frequency = float(midi_to_hz(midi))

            if frequency is None:
                segments.append(np.zeros(int(round(event.duration_seconds * self.sample_rate))))
            else:
                segments.append(self.generate_tone(frequency, event.duration_seconds))

            if verbose:
                print(f"  Event {i+1}/{len(melody.events)}: {event.label} - "
                      f"{event.duration_seconds:.2f}s")

        if not segments:
            return np.zeros(0)
        return np.concatenate(segments)

    def save_audio(self, audio: np.ndarray, output_path: str):
        """
        Save audio to file.

        Args:
            audio: Audio waveform
            output_path: Output file path (.wav)
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        sf.write(str(output_path), audio, self.sample_rate)
        print(f"Saved audio to: {output_path}")


def main():
    parser = argparse.ArgumentParser(
        description="Render a melody JSON document to a WAV preview"
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
        required=True,
        help='Output audio file path (.wav)'
    )
    parser.add_argument(
        '--sample-rate',
        type=int,
        default=44100,
        help='Sample rate in Hz (default: 44100)'
    )

    args = parser.parse_args()

    if not Path(args.melody).exists():
        print(f"Error: Melody file not found: {args.melody}")
        return 1

    print(f"Loading melody from: {args.melody}")
    melody = Melody.load_json(args.melody)
    print(f"Loaded {len(melody.notes)} notes, {len(melody.events) - len(melody.notes)} pauses")

    player = MelodyPlayer(sample_rate=args.sample_rate)
    audio = player.render_melody(melody, verbose=True)
    print(f"\nTotal duration: {len(audio) / player.sample_rate:.2f}s")

    player.save_audio(audio, args.output)
    return 0


if __name__ == "__main__":
    import sys
    sys.exit(main() or 0)
