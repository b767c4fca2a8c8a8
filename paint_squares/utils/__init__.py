"""
Utility modules for Paint Squares.
"""

from .io import (
    load_tracks, load_concentrations, tracks_to_recordings,
    save_squares, save_recordings, save_tracks,
    load_config, save_config
)
