#!/usr/bin/env python3
"""
Pitch Utilities Module

Conversion helpers shared by the transcription pipeline:
- Hz <-> MIDI note number conversions
- MIDI <-> note name conversions
- Pitch distance calculations (cents)
"""

import re
import math
import numpy as np
from typing import Union, Optional


# MIDI note names (C0 = MIDI 12, A4 = MIDI 69 = 440 Hz)
NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

REFERENCE_HZ = 440.0
REFERENCE_MIDI = 69

_NOTE_PATTERN = re.compile(r'^([A-Ga-g])([#b]?)(-?\d+)$')


def hz_to_midi(frequency_hz: Union[float, np.ndarray],
               reference_hz: float = REFERENCE_HZ) -> Union[float, np.ndarray]:
    """
    Convert frequency in Hz to a (fractional) MIDI note number.

    Uses the standard formula: MIDI = 69 + 12 * log2(f / 440)

    Args:
        frequency_hz: Frequency in Hz (scalar or array)
        reference_hz: Frequency of A4

    Returns:
        MIDI note number(s) as float, NaN for non-positive input

    Examples:
        >>> hz_to_midi(440.0)
        69.0
    """
    if isinstance(frequency_hz, np.ndarray):
        valid_mask = frequency_hz > 0
        result = np.full(frequency_hz.shape, np.nan, dtype=float)
        result[valid_mask] = REFERENCE_MIDI + 12 * np.log2(frequency_hz[valid_mask] / reference_hz)
        return result

    if frequency_hz <= 0:
        return np.nan
    return REFERENCE_MIDI + 12 * math.log2(frequency_hz / reference_hz)


def midi_to_hz(midi_note: Union[float, np.ndarray],
               reference_hz: float = REFERENCE_HZ) -> Union[float, np.ndarray]:
    """
    Convert MIDI note number to its ideal (equal-tempered) frequency.

    Args:
        midi_note: MIDI note number, may be fractional
        reference_hz: Frequency of A4

    Returns:
        Frequency in Hz

    Examples:
        >>> midi_to_hz(69)
        440.0
    """
    if isinstance(midi_note, np.ndarray):
        return reference_hz * np.power(2.0, (midi_note - REFERENCE_MIDI) / 12.0)
    return reference_hz * 2.0 ** ((midi_note - REFERENCE_MIDI) / 12.0)


def nearest_midi(frequency_hz: float, reference_hz: float = REFERENCE_HZ) -> Optional[int]:
    """
    Round a frequency to the nearest MIDI note number.

    Halves round up, so a frequency exactly between two notes maps to the upper one.

    Returns:
        Integer MIDI number, or None for non-positive / non-finite input
    """
    if not math.isfinite(frequency_hz) or frequency_hz <= 0:
        return None
    return int(math.floor(hz_to_midi(frequency_hz, reference_hz) + 0.5))


def midi_to_note_name(midi_note: int, include_octave: bool = True) -> str:
    """
    Convert MIDI note number to note name (e.g., 'C4', 'A#5').

    Args:
        midi_note: MIDI note number (0-127)
        include_octave: Include octave number in output

    Returns:
        Note name string, or "Unknown" outside the MIDI range

    Examples:
        >>> midi_to_note_name(69)
        'A4'
    """
    if not (0 <= midi_note <= 127):
        return "Unknown"

    note_name = NOTE_NAMES[midi_note % 12]
    if not include_octave:
        return note_name

    # C4 (middle C) = MIDI 60
    octave = (midi_note // 12) - 1
    return f"{note_name}{octave}"


def note_name_to_midi(note_name: str) -> Optional[int]:
    """
    Convert note name to MIDI note number.

    Accepts sharps and flats ('C#4', 'Db4'). Anything that is not a
    pitch class followed by an octave number (including "Pause") yields None.

    Examples:
        >>> note_name_to_midi('A4')
        69
        >>> note_name_to_midi('Pause') is None
        True
    """
    if not isinstance(note_name, str):
        return None

    match = _NOTE_PATTERN.match(note_name.strip())
    if match is None:
        return None

    letter, accidental, octave_str = match.groups()
    semitone = NOTE_NAMES.index(letter.upper())
    if accidental == '#':
        semitone += 1
    elif accidental == 'b':
        semitone -= 1

    midi_note = (int(octave_str) + 1) * 12 + semitone
    if 0 <= midi_note <= 127:
        return midi_note
    return None


def pitch_distance_cents(freq1_hz: float, freq2_hz: float) -> float:
    """
    Signed pitch distance from freq1 to freq2 in cents.

    100 cents = 1 semitone, 1200 cents = 1 octave.

    Examples:
        >>> round(pitch_distance_cents(440, 880))
        1200
    """
    if freq1_hz <= 0 or freq2_hz <= 0:
        return np.nan
    return 1200.0 * math.log2(freq2_hz / freq1_hz)
