"""
Unit tests for midi_encoder.py - Standard MIDI File export.
"""

import pytest
import io
import mido
from pathlib import Path
from unittest.mock import patch
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from melody import Melody, NoteEvent
from midi_encoder import seconds_to_ticks, build_midi_file, melody_to_midi, save_midi, main


HEADER = bytes.fromhex('4D546864 00000006 0000 0001 01E0')
TEMPO_120 = bytes.fromhex('00 FF5103 07A120')
PROGRAM_PIANO = bytes.fromhex('00 C000')
END_OF_TRACK = bytes.fromhex('00 FF2F00')


def make_melody(*events, bpm=120):
    return Melody(bpm=bpm, quantization=16, events=tuple(events),
                  total_duration=sum(e.duration_seconds for e in events))


def track_data(data):
    """Event bytes of the single track chunk."""
    assert data[14:18] == b'MTrk'
    length = int.from_bytes(data[18:22], 'big')
    body = data[22:]
    assert len(body) == length
    return body


def read_back(data):
    return mido.MidiFile(file=io.BytesIO(data))


class TestSecondsToTicks:
    """Test time conversion."""

    def test_quarter_note_at_120(self):
        assert seconds_to_ticks(0.5, 120) == 480

    def test_sixteenth_at_120(self):
        assert seconds_to_ticks(0.125, 120) == 120

    def test_other_tempo(self):
        assert seconds_to_ticks(1.0, 90) == 720

    def test_rounds_half_up(self):
        assert seconds_to_ticks(0.5, 60, ticks_per_quarter=1) == 1
        assert seconds_to_ticks(1.5, 60, ticks_per_quarter=1) == 2

    def test_never_negative(self):
        assert seconds_to_ticks(-1.0, 120) == 0


class TestMelodyToMidi:
    """Test byte-level encoding."""

    def test_header_bytes(self):
        data = melody_to_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5)))
        assert data[:14] == HEADER

    def test_single_a4_exact_bytes(self):
        """One A4 of 0.5s at 120 BPM: note-off 480 ticks after note-on."""
        data = melody_to_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5, 440.0)))
        expected = (
            TEMPO_120
            + PROGRAM_PIANO
            + bytes.fromhex('00 904550')
            + bytes.fromhex('8360 804500')
            + END_OF_TRACK
        )
        assert track_data(data) == expected

    def test_empty_melody_is_minimal_file(self):
        data = melody_to_midi(make_melody())
        assert data[:14] == HEADER
        assert track_data(data) == TEMPO_120 + END_OF_TRACK

    def test_deterministic(self):
        melody = make_melody(NoteEvent.note('A4', 0.0, 0.5), NoteEvent.note('C5', 0.5, 0.25))
        assert melody_to_midi(melody) == melody_to_midi(melody)

    def test_pause_advances_cursor(self):
        data = melody_to_midi(make_melody(
            NoteEvent.pause(0.0, 0.5),
            NoteEvent.note('A4', 0.5, 0.5),
        ))
        body = track_data(data)
        assert bytes.fromhex('8360 904550') in body

    def test_invalid_note_name_skipped(self):
        data = melody_to_midi(make_melody(
            NoteEvent.note('X9', 0.0, 0.5),
            NoteEvent.note('A4', 0.5, 0.5),
        ))
        notes = [m for m in read_back(data).tracks[0] if m.type == 'note_on']
        assert len(notes) == 1
        assert notes[0].note == 69
        assert notes[0].time == 480

    def test_no_playable_notes_omits_program(self):
        data = melody_to_midi(make_melody(NoteEvent.note('Bogus', 0.0, 0.5), NoteEvent.pause(0.5, 0.5)))
        assert track_data(data) == TEMPO_120 + END_OF_TRACK

    def test_tempo(self):
        data = melody_to_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5), bpm=90))
        tempo = [m for m in read_back(data).tracks[0] if m.type == 'set_tempo'][0]
        assert tempo.tempo == 666667

    def test_tempo_too_slow_raises(self):
        with pytest.raises(ValueError):
            melody_to_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5), bpm=2))

    def test_custom_velocity_and_program(self):
        data = melody_to_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5)), velocity=100, program=73)
        messages = list(read_back(data).tracks[0])
        assert [m for m in messages if m.type == 'program_change'][0].program == 73
        assert [m for m in messages if m.type == 'note_on'][0].velocity == 100


class TestReadBack:
    """Test the file through mido's reader."""

    def test_structure(self):
        melody = make_melody(
            NoteEvent.note('A4', 0.0, 0.5),
            NoteEvent.pause(0.5, 0.25),
            NoteEvent.note('C5', 0.75, 0.25),
            NoteEvent.note('Db5', 1.0, 0.5),
        )
        midi_file = read_back(melody_to_midi(melody))
        assert midi_file.type == 0
        assert midi_file.ticks_per_beat == 480
        assert len(midi_file.tracks) == 1

        note_messages = [m for m in midi_file.tracks[0] if m.type in ('note_on', 'note_off')]
        assert [(m.type, m.note, m.time) for m in note_messages] == [
            ('note_on', 69, 0),
            ('note_off', 69, 480),
            ('note_on', 72, 240),
            ('note_off', 72, 240),
            ('note_on', 73, 0),
            ('note_off', 73, 480),
        ]

    def test_length_matches_melody(self):
        melody = make_melody(NoteEvent.note('A4', 0.0, 0.5), NoteEvent.note('B4', 0.5, 1.0))
        midi_file = read_back(melody_to_midi(melody))
        assert midi_file.length == pytest.approx(1.5)

    def test_build_midi_file(self):
        midi_file = build_midi_file(make_melody(NoteEvent.note('A4', 0.0, 0.5)))
        assert isinstance(midi_file, mido.MidiFile)
        assert midi_file.tracks[0][-1].type == 'end_of_track'


class TestSaveMidi:
    """Test file output and CLI."""

    def test_save_midi(self, temp_dir):
        path = temp_dir / "out" / "melody.mid"
        with patch('builtins.print'):
            result = save_midi(make_melody(NoteEvent.note('A4', 0.0, 0.5)), str(path))
        assert result == path
        assert path.read_bytes()[:4] == b'MThd'

    def test_main_converts_json(self, melody_file, temp_dir):
        output = temp_dir / "melody.mid"
        argv = ['midi_encoder.py', '--melody', str(melody_file), '--output', str(output)]
        with patch('sys.argv', argv):
            with patch('builtins.print'):
                assert main() == 0
        notes = [m for m in mido.MidiFile(str(output)).tracks[0] if m.type == 'note_on']
        assert [m.note for m in notes] == [69, 72]

    def test_main_default_output_path(self, melody_file):
        with patch('sys.argv', ['midi_encoder.py', '--melody', str(melody_file)]):
            with patch('builtins.print'):
                assert main() == 0
        assert melody_file.with_suffix('.mid').exists()

    def test_main_rejects_unencodable_tempo(self, temp_dir):
        melody_path = temp_dir / "slow.json"
        make_melody(NoteEvent.note('A4', 0.0, 0.5), bpm=2).save_json(str(melody_path))
        with patch('sys.argv', ['midi_encoder.py', '--melody', str(melody_path)]):
            with patch('builtins.print') as mock_print:
                assert main() == 1
        assert not melody_path.with_suffix('.mid').exists()
        assert any('Error' in str(call) for call in mock_print.call_args_list)

    def test_main_missing_file(self, temp_dir):
        with patch('sys.argv', ['midi_encoder.py', '--melody', str(temp_dir / "missing.json")]):
            with patch('builtins.print'):
                assert main() == 1
