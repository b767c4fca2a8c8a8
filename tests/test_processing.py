"""
Tests for the per-recording pipeline and batch processing.
"""

import math
import os
import threading

import pytest

from paint_squares.config import GenerateSquaresConfig
from paint_squares.grid import TrackValidationError
from paint_squares.objects import Recording, TauStatus, Track
from paint_squares.project.processing import (
    ProcessingCancelled, process_recording, process_recordings
)

from conftest import HOTSPOTS


class CountingEvent:
    """Cancel flag that becomes set after a number of checks."""

    def __init__(self, limit):
        self.limit = limit
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.limit


class TestProcessRecording:

    def test_uniform_recording(self, uniform_recording, config):
        recording = process_recording(uniform_recording, config)

        assert len(recording.squares) == 400
        assert sum(sq.number_of_tracks for sq in recording.squares) == 1000
        assert recording.number_of_dropped_tracks == 0
        assert recording.background_mean > 0
        assert recording.background_square_count > 0

    def test_uniform_recording_with_low_tau_minimum(self, uniform_recording):
        config = GenerateSquaresConfig(min_tracks_for_tau=5, min_required_density_ratio=2.0,
                                       max_allowable_variability=10.0, min_required_r_squared=0.1)

        recording = process_recording(uniform_recording, config)

        assert len(recording.squares) == 400
        assert sum(sq.number_of_tracks for sq in recording.squares) == 1000
        assert recording.number_of_selected_squares > 0
        assert recording.tau_status is TauStatus.SUCCESS
        assert recording.tau > 0
        for square in recording.selected_squares():
            assert square.number_of_tracks >= 5
            assert square.density_ratio > 2.0

    def test_zero_duration_gives_undefined_density(self, hotspot_recording, config):
        hotspot_recording.duration = 0.0

        recording = process_recording(hotspot_recording, config)

        assert all(math.isnan(sq.density) for sq in recording.squares)
        assert recording.number_of_selected_squares == 4
        assert math.isnan(recording.density)

    def test_hotspots_selected(self, hotspot_recording, config):
        recording = process_recording(hotspot_recording, config)

        assert {(sq.row, sq.col) for sq in recording.selected_squares()} == set(HOTSPOTS)
        assert recording.number_of_selected_squares == 4
        assert recording.tau_status is TauStatus.SUCCESS
        assert 70.0 < recording.tau < 140.0
        assert recording.r_squared > 0.9

        for square in recording.selected_squares():
            assert square.density_ratio > config.min_required_density_ratio
            assert square.variability < config.max_allowable_variability
            assert square.tau_status is TauStatus.SUCCESS
            assert square.label_number >= 0

    def test_recording_density_uses_selected_area(self, hotspot_recording, config):
        recording = process_recording(hotspot_recording, config)

        selected = recording.selected_squares()
        n_tracks = sum(sq.number_of_tracks for sq in selected)
        expected = n_tracks / (len(selected) * config.square_area) / config.recording_duration
        assert recording.density == pytest.approx(expected)

    def test_background_diagnostics(self, hotspot_recording, config):
        recording = process_recording(hotspot_recording, config)

        assert recording.background_converged
        assert recording.background_mean < 5.0
        assert 0 < recording.background_square_count < 400
        assert recording.background_track_count > 0
        assert recording.legacy_background_mean > 0

    def test_square_attributes(self, hotspot_recording, config):
        recording = process_recording(hotspot_recording, config)

        for square in recording.squares:
            if square.number_of_tracks < config.min_tracks_for_tau:
                assert square.tau_status is TauStatus.INSUFFICIENT_POINTS
                assert math.isnan(square.tau)
                assert math.isnan(square.r_squared)
                assert not square.selected
            if square.number_of_tracks == 0:
                assert square.variability == 0.0
                assert square.density == 0.0
                assert square.density_ratio == 0.0
                assert math.isnan(square.median_track_duration)
            else:
                assert square.median_diffusion_coefficient == pytest.approx(0.1)
                assert square.max_max_speed == pytest.approx(2.0)

    def test_track_back_references(self, hotspot_recording, config):
        recording = process_recording(hotspot_recording, config)

        records = recording.track_records()
        assert len(records) == recording.number_of_tracks
        for record in records:
            square = recording.squares[record['square_number']]
            assert record['label_number'] == square.label_number

    def test_relaxed_mode_drops_isolated_hotspots(self, hotspot_recording, config):
        from paint_squares.config import GenerateSquaresConfig

        relaxed = GenerateSquaresConfig(neighbour_mode='Relaxed')
        recording = process_recording(hotspot_recording, relaxed)

        assert recording.number_of_selected_squares == 0
        assert recording.tau_status is TauStatus.INSUFFICIENT_POINTS
        assert math.isnan(recording.tau)

    def test_invalid_tracks(self, config):
        recording = Recording('bad', [Track(0, 0.1, float('nan'), 1.0)], concentration=1.0)
        with pytest.raises(TrackValidationError):
            process_recording(recording, config)

    def test_cancelled_before_start(self, hotspot_recording, config):
        event = threading.Event()
        event.set()
        with pytest.raises(ProcessingCancelled):
            process_recording(hotspot_recording, config, cancel_event=event)

    def test_plots(self, hotspot_recording, tmp_path):
        from paint_squares.config import GenerateSquaresConfig

        config = GenerateSquaresConfig(plot_curve_fitting=True)
        process_recording(hotspot_recording, config, plot_dir=str(tmp_path))

        files = os.listdir(tmp_path)
        assert 'hotspots.png' in files
        assert len([f for f in files if '-square-' in f]) >= 4


class TestProcessRecordings:

    def test_sequential(self, make_hotspot_recording, config):
        recordings = [make_hotspot_recording('r1', 1), make_hotspot_recording('r2', 2)]

        results = process_recordings(recordings, config)

        assert results['n_recordings'] == 2
        assert results['n_successful'] == 2
        assert results['n_failed'] == 0
        assert not results['cancelled']
        assert [r.recording_name for r in results['recordings']] == ['r1', 'r2']

    def test_failure_does_not_stop_batch(self, make_hotspot_recording, config):
        bad = Recording('bad', [Track(0, -1.0, 1.0, 1.0)], concentration=1.0)
        recordings = [bad, make_hotspot_recording('good')]

        results = process_recordings(recordings, config)

        assert results['n_successful'] == 1
        assert results['n_failed'] == 1
        assert results['errors'][0]['recording_name'] == 'bad'
        assert results['recordings'][0].recording_name == 'good'

    def test_cancelled_before_start(self, make_hotspot_recording, config):
        event = threading.Event()
        event.set()

        results = process_recordings([make_hotspot_recording()], config, cancel_event=event)

        assert results['cancelled']
        assert results['recordings'] == []

    def test_cancelled_mid_recording_is_discarded(self, make_hotspot_recording, config):
        recordings = [make_hotspot_recording('r1', 1), make_hotspot_recording('r2', 2)]

        # The first recording needs about 400 checks; the second is cut off mid-way
        results = process_recordings(recordings, config, cancel_event=CountingEvent(600))

        assert results['cancelled']
        assert [r.recording_name for r in results['recordings']] == ['r1']
        assert results['n_failed'] == 0

    def test_empty_batch(self, config):
        results = process_recordings([], config)
        assert results['n_recordings'] == 0
        assert results['recordings'] == []

    def test_process_pool(self, make_hotspot_recording, config):
        recordings = [make_hotspot_recording('r1', 1), make_hotspot_recording('r2', 2)]

        results = process_recordings(recordings, config, max_workers=2)

        assert results['n_successful'] == 2
        assert [r.recording_name for r in results['recordings']] == ['r1', 'r2']
        assert all(r.number_of_selected_squares == 4 for r in results['recordings'])
