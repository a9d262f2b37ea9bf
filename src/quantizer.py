#!/usr/bin/env python3
"""
Quantizer

Snaps note/pause boundaries to a musical grid derived from BPM and a
subdivision (4 = quarter notes, 8 = eighths, 16 = sixteenths), then strips the
leading/trailing pauses that mic latency leaves at either end of a recording.

Starts are floored and ends are ceiled, so a note never loses sounding time.
When two neighbours then claim the same grid cell, a pause gives the cell up
to the note next to it; two notes split at the grid line nearest to their
shared edge. Gaps left behind by dropped fragments become pauses, so the
result is always contiguous.
"""

import math
from typing import List, Optional, Sequence, Tuple

from melody import NoteEvent


VALID_QUANTIZATIONS = (4, 8, 16)

# Grid positions closer than this (in steps) to a grid line snap onto it
GRID_EPSILON = 1e-6

NOTE_VALUES = [
    ("Whole", 4.0),
    ("Half", 2.0),
    ("Quarter", 1.0),
    ("Eighth", 0.5),
    ("Sixteenth", 0.25),
]


# Largest set-tempo value a MIDI file can hold (24 bits of microseconds per quarter)
MAX_TEMPO_MICROSECONDS = 0xFFFFFF


def validate_tempo(bpm: float):
    """Raise ValueError for a BPM that is not positive or too slow to encode as MIDI tempo."""
    if bpm is None or not bpm > 0:
        raise ValueError(f"BPM must be positive, got {bpm}")
    if int(round(60000000.0 / bpm)) > MAX_TEMPO_MICROSECONDS:
        raise ValueError(f"BPM {bpm} is too slow for a MIDI tempo "
                         f"(minimum {60000000.0 / MAX_TEMPO_MICROSECONDS:.2f})")


def validate_grid(bpm: float, quantization: int):
    """Raise ValueError for an unusable tempo / subdivision."""
    validate_tempo(bpm)
    if quantization not in VALID_QUANTIZATIONS:
        raise ValueError(f"Quantization must be one of {VALID_QUANTIZATIONS}, got {quantization}")


def grid_step(bpm: float, quantization: int) -> float:
    """Grid spacing in seconds: (60 / bpm) * (4 / quantization)."""
    validate_grid(bpm, quantization)
    return (60.0 / bpm) * (4.0 / quantization)


def _floor_index(seconds: float, step: float) -> int:
    return int(math.floor(seconds / step + GRID_EPSILON))


def _ceil_index(seconds: float, step: float) -> int:
    return int(math.ceil(seconds / step - GRID_EPSILON))


def _nearest_index(seconds: float, step: float) -> int:
    return int(math.floor(seconds / step + 0.5))


def _is_pause_slot(slot) -> bool:
    return slot[0] is None or slot[0].is_pause


def quantize_events(events: Sequence[NoteEvent], bpm: float, quantization: int) -> List[NoteEvent]:
    """
    Snap events to the grid.

    Args:
        events: Provisional events in any order
        bpm: Tempo in beats per minute
        quantization: Grid subdivision (4, 8 or 16)

    Returns:
        Contiguous, non-overlapping events on grid boundaries. Notes last at
        least one grid step; zero-length pauses are dropped.
    """
    step = grid_step(bpm, quantization)
    ordered = sorted((e for e in events if e.duration_seconds > 0), key=lambda e: e.start_seconds)

    # [event or None (gap filler), start index, end index]
    slots = []
    for event in ordered:
        start = _floor_index(event.start_seconds, step)
        end = _ceil_index(event.end_seconds, step)

        # Overlap with the previous slot
        while slots and start < slots[-1][2]:
            last = slots[-1]
            if _is_pause_slot(last) and event.is_pause:
                break
            if _is_pause_slot(last):
                if last[1] >= start:
                    slots.pop()
                    continue
                last[2] = start
            elif event.is_pause:
                start = last[2]
            else:
                boundary = max(_nearest_index(event.start_seconds, step), last[1] + 1)
                last[2] = boundary
                start = boundary
            break

        # Gap after the previous slot
        if slots and start > slots[-1][2]:
            last = slots[-1]
            if _is_pause_slot(last):
                last[2] = start
            elif event.is_pause:
                start = last[2]
            else:
                slots.append([None, last[2], start])

        if slots and event.is_pause and _is_pause_slot(slots[-1]) and start <= slots[-1][2]:
            slots[-1][2] = max(slots[-1][2], end)
            continue

        if end <= start:
            if event.is_pause:
                continue
            end = start + 1

        slots.append([event, start, end])

    quantized = []
    for event, start, end in slots:
        if end <= start:
            continue
        if event is None or event.is_pause:
            quantized.append(NoteEvent.pause(start * step, (end - start) * step))
        else:
            quantized.append(NoteEvent.note(event.note_name, start * step,
                                            (end - start) * step, event.frequency_hz))
    return quantized


def trim_pauses(events: Sequence[NoteEvent]) -> List[NoteEvent]:
    """Strip pauses from the start and end of the sequence."""
    trimmed = list(events)
    while trimmed and trimmed[0].is_pause:
        trimmed.pop(0)
    while trimmed and trimmed[-1].is_pause:
        trimmed.pop()
    return trimmed


def total_duration(events: Sequence[NoteEvent]) -> float:
    return float(sum(event.duration_seconds for event in events))


def finalize_events(events: Sequence[NoteEvent], bpm: float,
                    quantization: int) -> Tuple[List[NoteEvent], float]:
    """
    Quantize, trim and measure a provisional event list.

    Returns:
        (events, total_duration)
    """
    finalized = trim_pauses(quantize_events(events, bpm, quantization))
    return finalized, total_duration(finalized)


def note_duration_label(duration: float, bpm: float) -> Optional[str]:
    """
    Closest common note value for a duration (e.g. 0.5s at 120 BPM -> "Quarter").

    Returns:
        Note value name, or None for a non-positive duration
    """
    if duration <= 0 or bpm <= 0:
        return None
    beats = duration / (60.0 / bpm)
    name, _ = min(NOTE_VALUES, key=lambda value: abs(beats - value[1]))
    return name
