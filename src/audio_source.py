#!/usr/bin/env python3
"""
Audio Source

Slices audio into the fixed-size blocks consumed once per processing tick.
A live host pushes blocks directly; files and in-memory signals go through
iter_audio_blocks(), which stamps each block with its start time.
"""

import numpy as np
import librosa
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple


DEFAULT_SAMPLE_RATE = 44100
DEFAULT_BLOCK_SIZE = 2048


@dataclass
class AudioBlock:
    """One block of mono PCM samples in [-1, 1]."""
    samples: np.ndarray
    sample_rate: int
    start_time: float = 0.0

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)

    @property
    def rms(self) -> float:
        if len(self.samples) == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(self.samples, dtype=np.float64))))


def load_audio_file(audio_path: str, sample_rate: int = DEFAULT_SAMPLE_RATE) -> Tuple[np.ndarray, int]:
    """
    Load an audio file as mono float32, resampled to sample_rate.

    Args:
        audio_path: Path to any format librosa can decode
        sample_rate: Target sample rate

    Returns:
        (audio, sample_rate)
    """
    audio, sr = librosa.load(str(Path(audio_path)), sr=sample_rate, mono=True)
    return audio.astype(np.float32), int(sr)


def iter_audio_blocks(audio: np.ndarray, sample_rate: int,
                      block_size: int = DEFAULT_BLOCK_SIZE,
                      hop_size: Optional[int] = None) -> Iterator[AudioBlock]:
    """
    Yield consecutive blocks from an in-memory signal.

    Blocks are hop_size samples apart (default: block_size, i.e. no overlap,
    which is what a live input delivers). The final partial block is zero-padded.

    Args:
        audio: Mono sample array
        sample_rate: Sample rate in Hz
        block_size: Samples per block
        hop_size: Samples between block starts

    Yields:
        AudioBlock with start_time in seconds from the beginning of audio
    """
    if block_size < 1:
        raise ValueError(f"block_size must be positive, got {block_size}")
    hop = hop_size or block_size
    if hop < 1:
        raise ValueError(f"hop_size must be positive, got {hop_size}")

    audio = np.asarray(audio, dtype=np.float32)
    if audio.ndim > 1:
        audio = np.mean(audio, axis=-1)

    for start in range(0, len(audio), hop):
        block = audio[start:start + block_size]
        if len(block) < block_size:
            block = np.pad(block, (0, block_size - len(block)))
        yield AudioBlock(samples=block, sample_rate=sample_rate,
                         start_time=start / float(sample_rate))
