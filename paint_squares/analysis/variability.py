"""
Variability analysis module for Paint Squares.

Variability measures how evenly the tracks of a square are spread over it:
the square is divided into a G x G sub-grid, tracks are counted per cell,
and the coefficient of variation of the cell counts is reported.
"""

import numpy as np
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

logger = logging.getLogger(__name__)


def sub_grid_counts(x, y, square_number, number_of_squares_in_row,
                    square_width, square_height, granularity=10):
    """
    Count positions per cell of a square's sub-grid.

    Cell indices are computed relative to the square's own origin, which
    follows from its number and the grid side. Indices are clamped into the
    sub-grid, so positions on the square's upper edges land in the last cell.

    Parameters
    ----------
    x, y : array-like
        Positions of the tracks in the square
    square_number : int
        Row-major number of the square
    number_of_squares_in_row : int
        Grid side N
    square_width, square_height : float
        Size of one square
    granularity : int, optional
        Sub-grid side G, by default 10

    Returns
    -------
    numpy.ndarray
        G x G matrix of counts, indexed [row, col]
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    x0 = (square_number % number_of_squares_in_row) * square_width
    y0 = (square_number // number_of_squares_in_row) * square_height

    xi = np.floor((x - x0) / square_width * granularity).astype(int)
    yi = np.floor((y - y0) / square_height * granularity).astype(int)
    xi = np.clip(xi, 0, granularity - 1)
    yi = np.clip(yi, 0, granularity - 1)

    counts = np.bincount(yi * granularity + xi, minlength=granularity * granularity)
    return counts.reshape(granularity, granularity)


def coefficient_of_variation(values):
    """Population standard deviation over mean; 0.0 when the mean is 0."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    mean = np.mean(values)
    if mean == 0:
        return 0.0
    return float(np.std(values) / mean)


def calculate_variability(x, y, square_number, number_of_squares_in_row,
                          square_width, square_height, granularity=10):
    """
    Calculate the variability of a square.

    Parameters
    ----------
    x, y : array-like
        Positions of the tracks assigned to the square
    square_number : int
        Row-major number of the square
    number_of_squares_in_row : int
        Grid side N
    square_width, square_height : float
        Size of one square
    granularity : int, optional
        Sub-grid side G, by default 10

    Returns
    -------
    float
        Coefficient of variation of the G * G cell counts; 0.0 for a square
        without tracks
    """
    try:
        counts = sub_grid_counts(x, y, square_number, number_of_squares_in_row,
                                 square_width, square_height, granularity)
        return coefficient_of_variation(counts.ravel())

    except Exception as e:
        logger.error(f"Error calculating variability of square {square_number}: {str(e)}")
        raise
