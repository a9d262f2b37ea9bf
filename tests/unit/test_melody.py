"""
Unit tests for melody.py and melody_store.py - Melody records, JSON document and store.
"""

import pytest
import json
from pathlib import Path
from unittest.mock import patch
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from melody import Melody, NoteEvent, EventKind, PAUSE_NAME
from melody_store import MelodyStore


class TestNoteEvent:
    """Test NoteEvent."""

    def test_note(self):
        event = NoteEvent.note('A4', 0.25, 0.5, 440.0)
        assert event.kind == EventKind.NOTE
        assert not event.is_pause
        assert event.label == 'A4'
        assert event.end_seconds == pytest.approx(0.75)

    def test_pause(self):
        event = NoteEvent.pause(0.75, 0.25)
        assert event.is_pause
        assert event.label == PAUSE_NAME
        assert event.note_name is None

    def test_to_dict(self):
        entry = NoteEvent.note('A4', 0.25, 0.5, 440.0).to_dict()
        assert entry == {'note': 'A4', 'duration': 0.5, 'startTimestamp': 0.25, 'frequency': 440.0}

    def test_pause_to_dict_has_no_frequency(self):
        entry = NoteEvent.pause(0.0, 0.5).to_dict()
        assert entry == {'note': 'Pause', 'duration': 0.5, 'startTimestamp': 0.0}

    def test_from_dict(self):
        event = NoteEvent.from_dict({'note': 'C5', 'duration': 0.5, 'startTimestamp': 1.0})
        assert event.note_name == 'C5'
        assert event.frequency_hz is None
        assert NoteEvent.from_dict({'note': 'Pause', 'duration': 0.25}).is_pause

    def test_immutable(self):
        event = NoteEvent.note('A4', 0.0, 0.5)
        with pytest.raises(AttributeError):
            event.note_name = 'B4'


class TestMelody:
    """Test Melody and its JSON document."""

    def test_from_dict(self, sample_melody):
        assert sample_melody.bpm == 120
        assert sample_melody.quantization == 16
        assert len(sample_melody.events) == 3
        assert [e.note_name for e in sample_melody.notes] == ['A4', 'C5']
        assert sample_melody.total_duration == pytest.approx(1.25)

    def test_to_dict_matches_document(self, sample_melody, sample_melody_data):
        assert sample_melody.to_dict() == sample_melody_data

    def test_total_duration_defaults_to_sum(self, sample_melody_data):
        del sample_melody_data['totalDuration']
        melody = Melody.from_dict(sample_melody_data)
        assert melody.total_duration == pytest.approx(1.25)

    def test_save_and_load(self, sample_melody, temp_dir):
        path = temp_dir / "nested" / "melody.json"
        sample_melody.save_json(str(path))

        with open(path) as f:
            data = json.load(f)
        assert data['notes'][1]['note'] == 'Pause'

        assert Melody.load_json(str(path)) == sample_melody

    def test_empty(self):
        melody = Melody(bpm=120, quantization=16)
        assert melody.is_empty
        assert melody.notes == []
        assert melody.to_dict()['notes'] == []

    def test_summary(self, sample_melody):
        lines = sample_melody.summary()
        assert len(lines) == 3
        assert 'A4' in lines[0] and 'Quarter' in lines[0]
        assert 'Pause' in lines[1] and 'Eighth' in lines[1]
        assert 'Hz' not in lines[1]


class TestMelodyStore:
    """Test MelodyStore."""

    def test_invalid_grid(self):
        with pytest.raises(ValueError):
            MelodyStore(bpm=0)
        with pytest.raises(ValueError):
            MelodyStore(quantization=12)

    def test_add_and_events(self):
        store = MelodyStore()
        store.add(NoteEvent.note('A4', 0.0, 0.5))
        events = store.events
        events.append(NoteEvent.pause(0.5, 0.1))
        assert len(store.events) == 1

    def test_finalize(self):
        store = MelodyStore(bpm=120, quantization=16)
        store.add(NoteEvent.pause(0.0, 0.3))
        store.add(NoteEvent.note('A4', 0.3, 0.5, 440.0))
        store.add(NoteEvent.pause(0.8, 0.4))

        melody = store.finalize()
        assert store.is_finalized
        assert store.melody is melody
        assert melody.bpm == 120
        assert [e.label for e in melody.events] == ['A4']
        assert melody.total_duration == pytest.approx(0.625)

    def test_finalize_is_idempotent(self):
        store = MelodyStore()
        store.add(NoteEvent.note('A4', 0.0, 0.5))
        assert store.finalize() is store.finalize()

    def test_add_after_finalize_raises(self):
        store = MelodyStore()
        store.finalize()
        with pytest.raises(RuntimeError):
            store.add(NoteEvent.note('A4', 0.0, 0.5))

    def test_finalize_empty(self):
        melody = MelodyStore().finalize()
        assert melody.is_empty
        assert melody.total_duration == 0.0

    def test_finalize_verbose(self):
        store = MelodyStore()
        store.add(NoteEvent.note('A4', 0.0, 0.5))
        with patch('builtins.print') as mock_print:
            store.finalize(verbose=True)
        assert mock_print.called
