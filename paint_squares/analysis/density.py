"""
Density analysis module for Paint Squares.
"""

import numpy as np
import logging

logger = logging.getLogger(__name__)


def calculate_density(number_of_tracks, area, duration, concentration):
    """
    Track density normalized by area, time and probe concentration.

    Parameters
    ----------
    number_of_tracks : int
        Number of tracks
    area : float
        Area the tracks were counted in (µm²)
    duration : float
        Time span of the recording (s)
    concentration : float
        Probe concentration

    Returns
    -------
    float
        number_of_tracks / (area * duration * concentration), or NaN when any
        of area, duration or concentration is not positive
    """
    if not (area > 0 and duration > 0 and concentration > 0):
        logger.debug(f"Density undefined for area={area}, duration={duration}, "
                     f"concentration={concentration}")
        return float('nan')

    return number_of_tracks / area / duration / concentration


def calculate_density_ratio(number_of_tracks, background_mean):
    """
    Ratio of a square's track count to the background track count.

    Returns 0.0 when the background mean is 0 or undefined.
    """
    if background_mean == 0 or not np.isfinite(background_mean):
        return 0.0
    return number_of_tracks / background_mean
