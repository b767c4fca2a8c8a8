"""
Tests for the command-line interface.
"""

import os

import pandas as pd

from paint_squares.__main__ import main, RECORDINGS_FILE, SQUARES_FILE, TRACKS_FILE
from paint_squares.config import GenerateSquaresConfig
from paint_squares.utils.io import load_config


def write_tracks(recordings, path):
    rows = []
    for recording in recordings:
        for track in recording.tracks:
            rows.append({
                'Recording Name': recording.recording_name,
                'Track Id': track.track_id,
                'Track Duration': track.duration,
                'Track X Location': track.x,
                'Track Y Location': track.y,
            })
    pd.DataFrame(rows).to_csv(path, index=False)


class TestGenerate:

    def test_writes_tables(self, make_hotspot_recording, tmp_path):
        tracks_file = str(tmp_path / 'tracks.csv')
        write_tracks([make_hotspot_recording('r1', 1), make_hotspot_recording('r2', 2)], tracks_file)
        output = str(tmp_path / 'out')

        assert main(['generate', tracks_file, output]) == 0

        for name in (SQUARES_FILE, RECORDINGS_FILE, TRACKS_FILE):
            assert os.path.isfile(os.path.join(output, name))

        recordings = pd.read_csv(os.path.join(output, RECORDINGS_FILE))
        assert list(recordings['Recording Name']) == ['r1', 'r2']
        assert (recordings['Number Of Selected Squares'] == 4).all()

        squares = pd.read_csv(os.path.join(output, SQUARES_FILE))
        assert len(squares) == 800

    def test_with_config_file(self, make_hotspot_recording, tmp_path):
        tracks_file = str(tmp_path / 'tracks.csv')
        write_tracks([make_hotspot_recording()], tracks_file)
        config_file = str(tmp_path / 'config.yaml')
        assert main(['config', config_file]) == 0

        assert main(['generate', tracks_file, str(tmp_path / 'out'), '--config', config_file]) == 0

    def test_missing_input(self, tmp_path):
        assert main(['generate', str(tmp_path / 'none.csv'), str(tmp_path / 'out')]) == 1

    def test_no_command(self):
        assert main([]) == 1


class TestConfigCommand:

    def test_writes_defaults(self, tmp_path):
        path = str(tmp_path / 'paint.yaml')

        assert main(['config', path]) == 0

        assert GenerateSquaresConfig.from_dict(load_config(path)) == GenerateSquaresConfig()
