"""
Analysis module for Paint Squares.

This module provides the per-square and per-recording calculations:
Tau fitting, variability, background estimation, density, selection and
recording aggregation.
"""

from .tau import TauFitter, calculate_tau
from .variability import calculate_variability
from .background import BackgroundEstimate, estimate_background, legacy_background_mean
from .density import calculate_density, calculate_density_ratio
from .selection import apply_selection_filter, assign_label_numbers, get_neighbour_mode
from .attributes import calculate_square_attributes, calculate_recording_attributes
