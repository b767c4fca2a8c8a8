"""
Paint Squares: square-grid analytics for single-molecule track data.

This package partitions the field of a microscopy recording into a uniform
grid of squares, assigns tracks to squares and computes per-square and
per-recording statistics:
- Tau from a mono-exponential fit to the track-duration distribution
- Spatial variability within each square
- Track density and density ratio against an estimated background
- Selection of squares that pass density-ratio, variability and R² thresholds
"""

__version__ = '0.1.0'

import logging

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Import key modules for convenience
from . import analysis
from . import project
from . import utils
from .config import GenerateSquaresConfig
from .objects import Recording, Square, TauResult, TauStatus, Track
from .project.processing import process_recording, process_recordings
