#!/usr/bin/env python3
"""
Melody Store

Collects the provisional NoteEvents of one recording and turns them into a
finalized Melody (quantized, contiguous, trimmed) when recording stops.
After finalization the store is read-only.
"""

from typing import List, Optional

from melody import Melody, NoteEvent
from quantizer import finalize_events, validate_grid


class MelodyStore:
    """Ordered event list for a single recording."""

    def __init__(self, bpm: float = 120, quantization: int = 16):
        """
        Initialize store.

        Args:
            bpm: Tempo used for the quantization grid
            quantization: Grid subdivision (4, 8 or 16)
        """
        validate_grid(bpm, quantization)
        self.bpm = bpm
        self.quantization = quantization
        self._events: List[NoteEvent] = []
        self._melody: Optional[Melody] = None

    @property
    def events(self) -> List[NoteEvent]:
        """Provisional events in arrival order."""
        return list(self._events)

    @property
    def is_finalized(self) -> bool:
        return self._melody is not None

    @property
    def melody(self) -> Optional[Melody]:
        return self._melody

    def add(self, event: NoteEvent):
        """Append an event emitted during recording."""
        if self._melody is not None:
            raise RuntimeError("Melody is finalized; no further events can be added")
        self._events.append(event)

    def finalize(self, verbose: bool = False) -> Melody:
        """
        Quantize and trim the collected events.

        Calling it again returns the same Melody.
        """
        if self._melody is not None:
            return self._melody

        events, total = finalize_events(self._events, self.bpm, self.quantization)
        self._melody = Melody(
            bpm=self.bpm,
            quantization=self.quantization,
            events=tuple(events),
            total_duration=total
        )

        if verbose:
            num_notes = len(self._melody.notes)
            print(f"Finalized melody: {num_notes} notes, "
                  f"{len(events) - num_notes} pauses, {total:.2f}s "
                  f"(from {len(self._events)} raw events)")

        return self._melody
