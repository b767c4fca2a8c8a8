"""
Test Configuration
==================

Pytest fixtures for Paint Squares: configurations and synthetic recordings.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from paint_squares.config import GenerateSquaresConfig
from paint_squares.objects import Recording, Track

# Durations 0.05 s apart with counts close to 40 * exp(-10 * (d - 0.05))
DECAY_DURATIONS = [0.05 * k for k in range(1, 10)]
DECAY_COUNTS = [40, 24, 15, 9, 5, 3, 2, 1, 1]

# Non-adjacent (row, col) cells of the 20 x 20 grid that carry extra tracks
HOTSPOTS = [(5, 5), (5, 15), (15, 5), (15, 15)]


def decay_durations():
    """100 durations whose frequency distribution decays exponentially."""
    return [d for d, c in zip(DECAY_DURATIONS, DECAY_COUNTS) for _ in range(c)]


def make_tracks(x, y, durations, start_id=0):
    return [Track(track_id=start_id + i, duration=float(d), x=float(xi), y=float(yi),
                  displacement=0.5, max_speed=2.0, median_speed=1.0,
                  diffusion_coefficient=0.1, diffusion_coefficient_ext=0.12)
            for i, (xi, yi, d) in enumerate(zip(x, y, durations))]


def uniform_tracks(rng, n, config, start_id=0):
    x = rng.uniform(0, config.field_width, n)
    y = rng.uniform(0, config.field_height, n)
    p = np.array(DECAY_COUNTS, dtype=float) / sum(DECAY_COUNTS)
    durations = rng.choice(DECAY_DURATIONS, size=n, p=p)
    return make_tracks(x, y, durations, start_id)


def hotspot_tracks(rng, config, start_id=0):
    tracks = []
    for row, col in HOTSPOTS:
        durations = decay_durations()
        x0 = col * config.square_width
        y0 = row * config.square_height
        x = rng.uniform(x0, x0 + config.square_width, len(durations))
        y = rng.uniform(y0, y0 + config.square_height, len(durations))
        tracks.extend(make_tracks(x, y, durations, start_id + len(tracks)))
    return tracks


@pytest.fixture
def config():
    """Default configuration."""
    return GenerateSquaresConfig()


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def uniform_recording(config, rng):
    """1000 tracks uniformly scattered over the field."""
    return Recording(recording_name='uniform', tracks=uniform_tracks(rng, 1000, config),
                     concentration=1.0)


@pytest.fixture
def make_hotspot_recording(config):
    """Factory for recordings with 600 background tracks and four dense squares."""
    def make(name='hotspots', seed=42):
        rng = np.random.default_rng(seed)
        tracks = uniform_tracks(rng, 600, config)
        tracks.extend(hotspot_tracks(rng, config, start_id=len(tracks)))
        return Recording(recording_name=name, tracks=tracks, concentration=1.0)
    return make


@pytest.fixture
def hotspot_recording(make_hotspot_recording):
    return make_hotspot_recording()
