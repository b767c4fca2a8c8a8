"""
Tests for track loading, result export and configuration files.
"""

import math

import pandas as pd
import pytest

from paint_squares.config import GenerateSquaresConfig
from paint_squares.project.processing import process_recording
from paint_squares.utils import io


@pytest.fixture
def tracks_csv(tmp_path):
    df = pd.DataFrame({
        'Recording Name': ['r1', 'r1', 'r2'],
        'Track Id': [0, 1, 0],
        'Track Duration': [0.1, 0.25, 0.5],
        'Track X Location': [1.0, 2.0, 3.0],
        'Track Y Location': [4.0, 5.0, 6.0],
        'Diffusion Coefficient': [0.1, 0.2, 0.3],
    })
    path = tmp_path / 'tracks.csv'
    df.to_csv(path, index=False)
    return str(path)


class TestLoadTracks:

    def test_engine_column_names(self, tracks_csv):
        df = io.load_tracks(tracks_csv)

        for col in ('recording_name', 'track_id', 'duration', 'x', 'y', 'diffusion_coefficient'):
            assert col in df.columns
        assert df['max_speed'].isna().all()

    def test_snake_case_columns(self, tmp_path):
        path = tmp_path / 'tracks.csv'
        pd.DataFrame({'track_id': [0], 'duration': [0.1], 'x': [1.0], 'y': [2.0]}).to_csv(path, index=False)

        df = io.load_tracks(str(path))

        assert len(df) == 1
        assert 'recording_name' not in df.columns

    def test_missing_required_column(self, tmp_path):
        path = tmp_path / 'tracks.csv'
        pd.DataFrame({'Track Id': [0], 'Track Duration': [0.1],
                      'Track X Location': [1.0]}).to_csv(path, index=False)

        with pytest.raises(ValueError):
            io.load_tracks(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            io.load_tracks(str(tmp_path / 'none.csv'))


class TestTracksToRecordings:

    def test_grouped_by_recording(self, tracks_csv):
        recordings = io.tracks_to_recordings(io.load_tracks(tracks_csv), concentration=2.0,
                                             concentrations={'r2': 5.0})

        assert [r.recording_name for r in recordings] == ['r1', 'r2']
        assert recordings[0].number_of_tracks == 2
        assert recordings[0].concentration == 2.0
        assert recordings[1].concentration == 5.0

        track = recordings[0].tracks[1]
        assert (track.track_id, track.duration, track.x, track.y) == (1, 0.25, 2.0, 5.0)
        assert track.diffusion_coefficient == pytest.approx(0.2)
        assert math.isnan(track.max_speed)

    def test_without_recording_column(self):
        df = pd.DataFrame({'track_id': [0], 'duration': [0.1], 'x': [1.0], 'y': [2.0]})
        df = df.assign(**{col: float('nan') for col in io.OPTIONAL_TRACK_COLUMNS})

        recordings = io.tracks_to_recordings(df, recording_name='cell 1')

        assert len(recordings) == 1
        assert recordings[0].recording_name == 'cell 1'
        assert recordings[0].experiment_name == ''

    def test_experiment_name(self, tmp_path):
        path = tmp_path / 'tracks.csv'
        pd.DataFrame({
            'Experiment Name': ['240116', '240116', '240117'],
            'Recording Name': ['r1', 'r1', 'r2'],
            'Track Id': [0, 1, 0],
            'Track Duration': [0.1, 0.2, 0.3],
            'Track X Location': [1.0, 2.0, 3.0],
            'Track Y Location': [1.0, 2.0, 3.0],
        }).to_csv(path, index=False)

        recordings = io.tracks_to_recordings(io.load_tracks(str(path)))

        assert [r.experiment_name for r in recordings] == ['240116', '240117']
        assert recordings[0].to_dict()['experiment_name'] == '240116'

    def test_load_concentrations(self, tmp_path):
        path = tmp_path / 'recordings.csv'
        pd.DataFrame({'Recording Name': ['r1', 'r2'], 'Concentration': [0.5, 1.5]}).to_csv(path, index=False)

        assert io.load_concentrations(str(path)) == {'r1': 0.5, 'r2': 1.5}


class TestExport:

    @pytest.fixture
    def processed(self, hotspot_recording, config):
        return [process_recording(hotspot_recording, config)]

    def test_save_squares(self, processed, tmp_path):
        path = io.save_squares(processed, str(tmp_path / 'out' / 'All Squares.csv'))

        df = pd.read_csv(path)
        assert len(df) == 400
        for col in ('Recording Name', 'Square Number', 'Row Number', 'Col Number', 'Label Number',
                    'Tau', 'R Squared', 'Variability', 'Density', 'Density Ratio', 'Selected'):
            assert col in df.columns

        tau = df['Tau'].dropna()
        assert len(tau) >= 4
        assert (tau == tau.round(0)).all()

    def test_rounding_leaves_recordings_untouched(self, processed, tmp_path):
        io.save_squares(processed, str(tmp_path / 'squares.csv'))
        taus = [sq.tau for sq in processed[0].selected_squares()]
        assert any(t != round(t) for t in taus)

    def test_save_recordings(self, processed, tmp_path):
        df = pd.read_csv(io.save_recordings(processed, str(tmp_path / 'recordings.csv')))

        assert len(df) == 1
        assert df.loc[0, 'Number Of Selected Squares'] == 4
        assert df.loc[0, 'Tau Status'] == 'SUCCESS'

    def test_save_tracks(self, processed, tmp_path):
        df = pd.read_csv(io.save_tracks(processed, str(tmp_path / 'tracks.csv')))

        assert len(df) == processed[0].number_of_tracks
        assert (df['Label Number'] >= 0).sum() >= 400


class TestConfigFiles:

    @pytest.mark.parametrize('name', ['config.yaml', 'config.json'])
    def test_round_trip(self, tmp_path, name):
        config = GenerateSquaresConfig(number_of_squares_in_row=10, neighbour_mode='Strict')
        path = io.save_config(config, str(tmp_path / name))

        assert GenerateSquaresConfig.from_dict(io.load_config(path)) == config

    def test_section_unwrapped(self, tmp_path):
        path = io.save_config(GenerateSquaresConfig(min_tracks_for_tau=30), str(tmp_path / 'config.yaml'))

        data = io.load_config(path)

        assert 'generate_squares' not in data
        assert data['min_tracks_for_tau'] == 30
        assert GenerateSquaresConfig.from_dict(data).min_tracks_for_tau == 30

    def test_spaced_section_and_other_sections(self, tmp_path):
        path = tmp_path / 'paint.yaml'
        path.write_text("Paint:\n  Image File Extension: .nd2\n"
                        "Generate Squares:\n  Min Tracks to Calculate Tau: 25\n")

        data = io.load_config(str(path))

        assert data == {'Min Tracks to Calculate Tau': 25}
        assert GenerateSquaresConfig.from_dict(data).min_tracks_for_tau == 25

    def test_flat_dict_saved_as_given(self, tmp_path):
        path = io.save_config({'min_tracks_for_tau': 12}, str(tmp_path / 'config.json'))
        assert io.load_config(path) == {'min_tracks_for_tau': 12}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            io.load_config(str(path))

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError):
            io.save_config({}, str(tmp_path / 'config.ini'))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            io.load_config(str(tmp_path / 'config.yaml'))
