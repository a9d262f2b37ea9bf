"""
Shared fixtures and configuration for melody-transcriber tests.
"""

import pytest
import json
import numpy as np
from pathlib import Path
import tempfile
import shutil
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SAMPLE_RATE = 44100


def make_sine(frequency, duration, sr=SAMPLE_RATE, amplitude=0.5):
    """Pure sine tone as float32."""
    t = np.arange(int(round(sr * duration))) / sr
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def make_silence(duration, sr=SAMPLE_RATE):
    return np.zeros(int(round(sr * duration)), dtype=np.float32)


# ============== Utility Fixtures ==============

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


# ============== Audio Fixtures ==============

@pytest.fixture
def sine_block():
    """2048-sample 440 Hz block at 44.1 kHz."""
    from audio_source import AudioBlock
    return AudioBlock(samples=make_sine(440.0, 2048 / SAMPLE_RATE), sample_rate=SAMPLE_RATE)


@pytest.fixture
def silent_block():
    from audio_source import AudioBlock
    return AudioBlock(samples=np.zeros(2048, dtype=np.float32), sample_rate=SAMPLE_RATE)


@pytest.fixture
def hummed_a4_audio():
    """0.3s silence, 0.6s of A4, 0.3s silence."""
    audio = np.concatenate([
        make_silence(0.3),
        make_sine(440.0, 0.6),
        make_silence(0.3),
    ])
    return audio, SAMPLE_RATE


@pytest.fixture
def two_note_audio():
    """A4 then C5, 0.6s each, framed by silence."""
    audio = np.concatenate([
        make_silence(0.2),
        make_sine(440.0, 0.6),
        make_sine(523.25, 0.6),
        make_silence(0.2),
    ])
    return audio, SAMPLE_RATE


# ============== Melody Fixtures ==============

@pytest.fixture
def sample_melody_data():
    """Melody JSON document: A4, pause, C5 at 120 BPM."""
    return {
        'bpm': 120,
        'quantization': 16,
        'totalDuration': 1.25,
        'notes': [
            {'note': 'A4', 'duration': 0.5, 'startTimestamp': 0.25, 'frequency': 440.5},
            {'note': 'Pause', 'duration': 0.25, 'startTimestamp': 0.75},
            {'note': 'C5', 'duration': 0.5, 'startTimestamp': 1.0, 'frequency': 523.0},
        ]
    }


@pytest.fixture
def sample_melody(sample_melody_data):
    from melody import Melody
    return Melody.from_dict(sample_melody_data)


@pytest.fixture
def melody_file(temp_dir, sample_melody_data):
    """Create a temporary melody JSON file."""
    path = temp_dir / "melody.json"
    path.write_text(json.dumps(sample_melody_data))
    return path
