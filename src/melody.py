#!/usr/bin/env python3
"""
Melody Data Model

NoteEvent and Melody records plus the JSON melody document:

    {
      "bpm": 120,
      "quantization": 16,
      "totalDuration": 1.5,
      "notes": [
        {"note": "A4", "duration": 0.5, "startTimestamp": 0.25, "frequency": 440.2},
        {"note": "Pause", "duration": 0.25, "startTimestamp": 0.75},
        ...
      ]
    }
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


PAUSE_NAME = "Pause"


class EventKind(Enum):
    NOTE = "note"
    PAUSE = "pause"


@dataclass(frozen=True)
class NoteEvent:
    """A sounding note or a pause, in seconds from the start of the recording."""
    kind: EventKind
    start_seconds: float
    duration_seconds: float
    note_name: Optional[str] = None
    frequency_hz: Optional[float] = None

    @classmethod
    def note(cls, note_name: str, start_seconds: float, duration_seconds: float,
             frequency_hz: Optional[float] = None) -> "NoteEvent":
        return cls(EventKind.NOTE, float(start_seconds), float(duration_seconds),
                   note_name, None if frequency_hz is None else float(frequency_hz))

    @classmethod
    def pause(cls, start_seconds: float, duration_seconds: float) -> "NoteEvent":
        return cls(EventKind.PAUSE, float(start_seconds), float(duration_seconds))

    @property
    def is_pause(self) -> bool:
        return self.kind is EventKind.PAUSE

    @property
    def end_seconds(self) -> float:
        return self.start_seconds + self.duration_seconds

    @property
    def label(self) -> str:
        """Note name, or "Pause"."""
        if self.is_pause:
            return PAUSE_NAME
        return self.note_name or ""

    def to_dict(self) -> Dict:
        entry = {
            'note': self.label,
            'duration': self.duration_seconds,
            'startTimestamp': self.start_seconds,
        }
        if not self.is_pause and self.frequency_hz is not None:
            entry['frequency'] = self.frequency_hz
        return entry

    @classmethod
    def from_dict(cls, entry: Dict) -> "NoteEvent":
        note = entry.get('note', PAUSE_NAME)
        start = float(entry.get('startTimestamp', 0.0))
        duration = float(entry.get('duration', 0.0))
        if note == PAUSE_NAME:
            return cls.pause(start, duration)
        return cls.note(note, start, duration, entry.get('frequency'))


@dataclass(frozen=True)
class Melody:
    """A finalized, quantized melody."""
    bpm: float
    quantization: int
    events: Tuple[NoteEvent, ...] = field(default_factory=tuple)
    total_duration: float = 0.0

    @property
    def notes(self) -> List[NoteEvent]:
        """Sounding events only."""
        return [event for event in self.events if not event.is_pause]

    @property
    def is_empty(self) -> bool:
        return len(self.events) == 0

    def summary(self) -> List[str]:
        """Human-readable lines, one per event."""
        from quantizer import note_duration_label

        lines = []
        for i, event in enumerate(self.events, 1):
            value = note_duration_label(event.duration_seconds, self.bpm) or "-"
            line = f"{i:3d}. {event.label:<6} {event.duration_seconds:6.3f}s  {value}"
            if event.frequency_hz is not None:
                line += f"  ({event.frequency_hz:.1f} Hz)"
            lines.append(line)
        return lines

    def to_dict(self) -> Dict:
        return {
            'bpm': self.bpm,
            'quantization': self.quantization,
            'totalDuration': self.total_duration,
            'notes': [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Melody":
        events = tuple(NoteEvent.from_dict(entry) for entry in data.get('notes', []))
        total = data.get('totalDuration')
        if total is None:
            total = sum(event.duration_seconds for event in events)
        return cls(
            bpm=float(data.get('bpm', 120)),
            quantization=int(data.get('quantization', 16)),
            events=events,
            total_duration=float(total)
        )

    def save_json(self, output_path: str):
        """
        Save the melody document.

        Args:
            output_path: Output JSON file path
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, json_path: str) -> "Melody":
        with open(json_path, 'r') as f:
            return cls.from_dict(json.load(f))
