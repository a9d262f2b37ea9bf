#!/usr/bin/env python3
"""
Note Mapper

Maps a smoothed frequency to a note name, MIDI number and cents deviation,
limited to a playable/singable pitch range (default E2-C6).
"""

import math
from dataclasses import dataclass
from typing import Optional

from pitch_utils import (
    REFERENCE_HZ, midi_to_hz, midi_to_note_name, nearest_midi, pitch_distance_cents
)


# Half a semitone: beyond this the neighbouring note is closer
HALF_STEP_CENTS = 50.0


@dataclass(frozen=True)
class NoteObservation:
    """The note heard during one tick."""
    note_name: str
    midi_number: int
    frequency_hz: float
    cents_deviation: float


class NoteMapper:
    """Frequency to note conversion with range and tolerance checks."""

    def __init__(self, min_midi: int = 40, max_midi: int = 84,
                 tolerance_cents: float = 40.0, reference_hz: float = REFERENCE_HZ):
        """
        Initialize mapper.

        Args:
            min_midi: Lowest accepted MIDI note (40 = E2)
            max_midi: Highest accepted MIDI note (84 = C6)
            tolerance_cents: Largest accepted distance from the ideal pitch
            reference_hz: Frequency of A4
        """
        if not (0 <= min_midi <= max_midi <= 127):
            raise ValueError(f"Invalid MIDI range: {min_midi}-{max_midi}")
        if tolerance_cents <= 0:
            raise ValueError(f"tolerance_cents must be positive, got {tolerance_cents}")

        self.min_midi = min_midi
        self.max_midi = max_midi
        self.tolerance_cents = tolerance_cents
        self.reference_hz = reference_hz

    def ideal_frequency(self, midi_number: int) -> float:
        """Equal-tempered frequency of a MIDI note."""
        return midi_to_hz(midi_number, self.reference_hz)

    def cents_deviation(self, frequency_hz: float, midi_number: int) -> float:
        """Signed distance of frequency_hz from the ideal pitch of midi_number."""
        return pitch_distance_cents(self.ideal_frequency(midi_number), frequency_hz)

    def map(self, frequency_hz: Optional[float]) -> Optional[NoteObservation]:
        """
        Map one frequency to the nearest note.

        Returns:
            NoteObservation, or None for no pitch, out of range or beyond tolerance
        """
        if frequency_hz is None:
            return None

        midi_number = nearest_midi(frequency_hz, self.reference_hz)
        if midi_number is None:
            return None

        deviation = self.cents_deviation(frequency_hz, midi_number)

        # Rounding at the very edge of a note: check both neighbours
        if abs(deviation) > HALF_STEP_CENTS:
            for neighbour in (midi_number - 1, midi_number + 1):
                neighbour_deviation = self.cents_deviation(frequency_hz, neighbour)
                if abs(neighbour_deviation) < abs(deviation):
                    midi_number, deviation = neighbour, neighbour_deviation

        if midi_number < self.min_midi or midi_number > self.max_midi:
            return None
        if not math.isfinite(deviation) or abs(deviation) > self.tolerance_cents:
            return None

        return NoteObservation(
            note_name=midi_to_note_name(midi_number),
            midi_number=midi_number,
            frequency_hz=float(frequency_hz),
            cents_deviation=float(deviation)
        )
