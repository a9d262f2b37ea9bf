#!/usr/bin/env python3
"""
Recording Session

Owns the per-recording pipeline state and runs it one audio block at a time:

    AudioBlock -> PitchEstimator -> FrequencySmoother -> NoteMapper
               -> NoteSegmenter -> MelodyStore

The caller (a timer, an audio callback, or transcribe_blocks() for offline
audio) supplies each block together with its timestamp. Stopping flushes the
segmenter and finalizes the melody synchronously.
"""

from typing import Iterable, Optional

from audio_source import AudioBlock
from frequency_smoother import FrequencySmoother
from melody import Melody, NoteEvent
from melody_store import MelodyStore
from note_mapper import NoteMapper, NoteObservation
from note_segmenter import NoteSegmenter, SegmenterConfig, SegmenterPhase
from pitch_estimator import FrequencyEstimate, PitchEstimator


class RecordingSession:
    """Tick-driven melody transcription for one recording."""

    def __init__(self, bpm: float = 120, quantization: int = 16,
                 estimator: Optional[PitchEstimator] = None,
                 smoother: Optional[FrequencySmoother] = None,
                 mapper: Optional[NoteMapper] = None,
                 segmenter_config: Optional[SegmenterConfig] = None,
                 verbose: bool = False):
        """
        Initialize session.

        Args:
            bpm: Tempo for quantization and MIDI export
            quantization: Grid subdivision (4, 8 or 16)
            estimator: Pitch estimator (default: autocorrelation over the vocal range)
            smoother: Frequency smoother
            mapper: Frequency to note mapper
            segmenter_config: Segmentation parameters
            verbose: Print notes as they are detected
        """
        self.store = MelodyStore(bpm, quantization)
        self.estimator = estimator or PitchEstimator()
        self.smoother = smoother or FrequencySmoother()
        self.mapper = mapper or NoteMapper()
        self.segmenter = NoteSegmenter(segmenter_config)
        self.verbose = verbose

        self.last_estimate: Optional[FrequencyEstimate] = None
        self.last_frequency: Optional[float] = None
        self.last_observation: Optional[NoteObservation] = None
        self.ticks = 0

    @property
    def bpm(self) -> float:
        return self.store.bpm

    @property
    def quantization(self) -> int:
        return self.store.quantization

    @property
    def phase(self) -> SegmenterPhase:
        return self.segmenter.phase

    @property
    def is_stopped(self) -> bool:
        return self.store.is_finalized

    def process_tick(self, block: AudioBlock, now: float) -> Optional[NoteEvent]:
        """
        Run one processing step.

        Args:
            block: Audio captured for this tick
            now: Tick time in seconds since recording started

        Returns:
            The NoteEvent closed on this tick, if any
        """
        if self.store.is_finalized:
            raise RuntimeError("Recording session already stopped")

        self.ticks += 1
        self.last_estimate = self.estimator.estimate(block)
        raw_frequency = self.last_estimate.frequency_hz if self.last_estimate else None
        self.last_frequency = self.smoother.process(raw_frequency)
        self.last_observation = self.mapper.map(self.last_frequency)

        event = self.segmenter.process(self.last_observation, now)
        if event is not None:
            self._record(event)
        return event

    def _record(self, event: NoteEvent):
        self.store.add(event)
        if self.verbose:
            print(f"  {event.start_seconds:7.3f}s  {event.label:<6} {event.duration_seconds:.3f}s")

    def stop(self, now: float) -> Melody:
        """
        Stop recording: close the open note or pause at `now`, then quantize and trim.

        Stopping twice returns the same Melody.
        """
        if self.store.is_finalized:
            return self.store.melody

        event = self.segmenter.flush(now)
        if event is not None:
            self._record(event)

        if self.verbose:
            print(f"Stopped after {self.ticks} ticks ({now:.2f}s)")
        return self.store.finalize(verbose=self.verbose)

    def transcribe_blocks(self, blocks: Iterable[AudioBlock]) -> Melody:
        """
        Drive the session from pre-recorded blocks, using each block's start time as the tick time.

        Args:
            blocks: Audio blocks in time order

        Returns:
            Finalized melody (stopped at the end of the last block)
        """
        end_time = 0.0
        for block in blocks:
            self.process_tick(block, block.start_time)
            end_time = block.start_time + block.duration
        return self.stop(end_time)
