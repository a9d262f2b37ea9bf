#!/usr/bin/env python3
"""
Note Segmenter

Turns the per-tick stream of note observations into discrete NoteEvents.

A new note has to be seen on `confirmation_count` consecutive ticks before it
replaces the current one, and observations that stay within a hysteresis band
around the current note are treated as vibrato rather than a note change.
Once confirmed, the note keeps the onset of its first observation.

The state machine is a pure function over an immutable SegmenterState:

    state, event = step(state, observation, now, config)

so it can be driven and tested without an audio clock. NoteSegmenter wraps
it for callers that prefer a stateful object.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from melody import NoteEvent
from note_mapper import NoteObservation, HALF_STEP_CENTS


# Float slack for duration comparisons on tick timestamps
TIME_EPSILON = 1e-9


@dataclass(frozen=True)
class SegmenterConfig:
    """Segmentation parameters."""
    min_duration: float = 0.1
    confirmation_count: int = 4
    hysteresis_cents: float = 15.0

    def __post_init__(self):
        if self.min_duration < 0:
            raise ValueError(f"min_duration must be non-negative, got {self.min_duration}")
        if self.confirmation_count < 1:
            raise ValueError(f"confirmation_count must be at least 1, got {self.confirmation_count}")
        if self.hysteresis_cents < 0:
            raise ValueError(f"hysteresis_cents must be non-negative, got {self.hysteresis_cents}")


class SegmenterPhase(Enum):
    IDLE = "idle"
    CANDIDATE = "candidate"
    STABLE = "stable"
    PAUSED = "paused"


@dataclass(frozen=True)
class TrackedNote:
    """A candidate or open note: first observation time plus running statistics."""
    note_name: str
    midi_number: int
    start_time: float
    count: int = 1
    frequency_sum: float = 0.0

    @classmethod
    def from_observation(cls, observation: NoteObservation, now: float) -> "TrackedNote":
        return cls(observation.note_name, observation.midi_number, now,
                   1, observation.frequency_hz)

    @property
    def mean_frequency(self) -> float:
        return self.frequency_sum / self.count

    def extend(self, observation: NoteObservation) -> "TrackedNote":
        return replace(self, count=self.count + 1,
                       frequency_sum=self.frequency_sum + observation.frequency_hz)


@dataclass(frozen=True)
class SegmenterState:
    stable: Optional[TrackedNote] = None
    candidate: Optional[TrackedNote] = None
    pause_start: Optional[float] = None

    @property
    def phase(self) -> SegmenterPhase:
        if self.stable is not None:
            return SegmenterPhase.STABLE
        if self.candidate is not None:
            return SegmenterPhase.CANDIDATE
        if self.pause_start is not None:
            return SegmenterPhase.PAUSED
        return SegmenterPhase.IDLE


def cents_from_note(note: TrackedNote, observation: NoteObservation) -> float:
    """Distance in cents from the ideal pitch of `note` to the observed frequency."""
    return 100.0 * (observation.midi_number - note.midi_number) + observation.cents_deviation


def is_same_note(note: TrackedNote, observation: NoteObservation,
                 config: SegmenterConfig) -> bool:
    """
    Same MIDI note, or close enough to count as vibrato.

    The note's catchment area extends hysteresis_cents past the usual half
    semitone, so a slightly sharp/flat voice does not flip between neighbours.
    """
    if observation.midi_number == note.midi_number:
        return True
    return abs(cents_from_note(note, observation)) <= HALF_STEP_CENTS + config.hysteresis_cents


def _close_note(note: TrackedNote, end_time: float) -> NoteEvent:
    return NoteEvent.note(note.note_name, note.start_time, end_time - note.start_time,
                          note.mean_frequency)


def _handle_silence(state: SegmenterState, now: float,
                    config: SegmenterConfig) -> Tuple[SegmenterState, Optional[NoteEvent]]:
    event = None
    if state.stable is not None:
        duration = now - state.stable.start_time
        if duration + TIME_EPSILON >= config.min_duration:
            event = _close_note(state.stable, now)

    pause_start = state.pause_start if state.pause_start is not None else now
    return SegmenterState(stable=None, candidate=None, pause_start=pause_start), event


def _promote(state: SegmenterState, candidate: TrackedNote,
             config: SegmenterConfig) -> Tuple[SegmenterState, Optional[NoteEvent]]:
    onset = candidate.start_time
    event = None

    if state.stable is not None:
        duration = onset - state.stable.start_time
        if duration + TIME_EPSILON >= config.min_duration:
            event = _close_note(state.stable, onset)
    elif state.pause_start is not None and onset > state.pause_start:
        event = NoteEvent.pause(state.pause_start, onset - state.pause_start)

    return SegmenterState(stable=candidate, candidate=None, pause_start=None), event


def step(state: SegmenterState, observation: Optional[NoteObservation], now: float,
         config: SegmenterConfig = SegmenterConfig()) -> Tuple[SegmenterState, Optional[NoteEvent]]:
    """
    Advance the segmenter by one tick.

    Args:
        state: Current state
        observation: Note heard this tick, or None (silence / out of range / out of tune)
        now: Tick time in seconds from the start of the recording
        config: Segmentation parameters

    Returns:
        (new_state, event) where event is the NoteEvent closed on this tick, if any
    """
    if observation is None:
        return _handle_silence(state, now, config)

    stable = state.stable
    if stable is not None and is_same_note(stable, observation, config):
        # A pending candidate that falls back to the open note is debounced away
        return replace(state, stable=stable.extend(observation), candidate=None), None

    candidate = state.candidate
    if candidate is not None and is_same_note(candidate, observation, config):
        candidate = candidate.extend(observation)
    else:
        candidate = TrackedNote.from_observation(observation, now)

    if candidate.count >= config.confirmation_count:
        return _promote(state, candidate, config)
    return replace(state, candidate=candidate), None


def flush(state: SegmenterState, now: float) -> Tuple[SegmenterState, Optional[NoteEvent]]:
    """
    Close whatever is open when recording stops.

    The open note (or pause) ends at `now` regardless of the minimum duration;
    an unconfirmed candidate is dropped.
    """
    event = None
    if state.stable is not None:
        if now > state.stable.start_time:
            event = _close_note(state.stable, now)
    elif state.pause_start is not None and now > state.pause_start:
        event = NoteEvent.pause(state.pause_start, now - state.pause_start)
    return SegmenterState(), event


class NoteSegmenter:
    """Stateful wrapper around step() / flush()."""

    def __init__(self, config: Optional[SegmenterConfig] = None):
        self.config = config or SegmenterConfig()
        self.state = SegmenterState()

    @property
    def phase(self) -> SegmenterPhase:
        return self.state.phase

    def process(self, observation: Optional[NoteObservation], now: float) -> Optional[NoteEvent]:
        self.state, event = step(self.state, observation, now, self.config)
        return event

    def flush(self, now: float) -> Optional[NoteEvent]:
        self.state, event = flush(self.state, now)
        return event

    def reset(self):
        self.state = SegmenterState()
