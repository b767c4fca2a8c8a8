"""
Square grid module for Paint Squares.

This module builds the N x N grid of squares over a recording field and
assigns tracks to squares by their representative position.
"""

import numpy as np
from typing import Dict, List, Tuple, Optional, Any
import logging

from .objects import Recording, Square, Track, is_finite

logger = logging.getLogger(__name__)


class TrackValidationError(ValueError):
    """Track input of a recording is missing or malformed."""


def generate_squares(number_of_squares_in_row, field_width, field_height):
    """
    Generate the squares of an N x N grid.

    Squares are numbered row-major: square k sits in row k // N and
    column k % N.

    Parameters
    ----------
    number_of_squares_in_row : int
        Grid side N
    field_width : float
        Width of the recording field
    field_height : float
        Height of the recording field

    Returns
    -------
    list of Square
        The N * N squares, ordered by square number
    """
    if number_of_squares_in_row <= 0:
        raise ValueError(f"Grid side must be positive, got {number_of_squares_in_row}")

    n = number_of_squares_in_row
    square_width = field_width / n
    square_height = field_height / n

    squares = []
    for square_number in range(n * n):
        row = square_number // n
        col = square_number % n
        squares.append(Square(
            square_number=square_number,
            row=row,
            col=col,
            x0=col * square_width,
            y0=row * square_height,
            x1=(col + 1) * square_width,
            y1=(row + 1) * square_height,
        ))

    return squares


def validate_tracks(tracks, recording_name=""):
    """
    Check that the track input of a recording can be analysed.

    Parameters
    ----------
    tracks : list of Track
        Tracks of the recording
    recording_name : str, optional
        Used in error messages

    Raises
    ------
    TrackValidationError
        If the track list is missing, or a track has a non-finite position
        or a missing or negative duration
    """
    if tracks is None:
        raise TrackValidationError(f"Recording '{recording_name}' has no track list")

    for i, track in enumerate(tracks):
        if not isinstance(track, Track):
            raise TrackValidationError(
                f"Recording '{recording_name}': item {i} is not a Track ({type(track).__name__})")
        if not (is_finite(track.x) and is_finite(track.y)):
            raise TrackValidationError(
                f"Recording '{recording_name}': track {track.track_id} has no valid position")
        if not is_finite(track.duration) or track.duration < 0:
            raise TrackValidationError(
                f"Recording '{recording_name}': track {track.track_id} has invalid duration {track.duration}")


def locate_tracks(x, y, number_of_squares_in_row, field_width, field_height):
    """
    Compute the grid row and column of positions.

    Positions on the upper edge of the field are clamped into the last
    row or column. Positions outside the field are flagged invalid.

    Parameters
    ----------
    x, y : array-like
        Positions
    number_of_squares_in_row : int
        Grid side N
    field_width, field_height : float
        Size of the recording field

    Returns
    -------
    tuple of numpy.ndarray
        (rows, cols, inside); rows and cols are only meaningful where inside is True
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = number_of_squares_in_row

    inside = (x >= 0) & (x <= field_width) & (y >= 0) & (y <= field_height)

    with np.errstate(invalid='ignore'):
        cols = np.floor(x / (field_width / n))
        rows = np.floor(y / (field_height / n))

    cols = np.clip(np.nan_to_num(cols, nan=-1), 0, n - 1).astype(int)
    rows = np.clip(np.nan_to_num(rows, nan=-1), 0, n - 1).astype(int)

    return rows, cols, inside


def assign_tracks_to_squares(recording, number_of_squares_in_row, field_width, field_height):
    """
    Assign the tracks of a recording to its squares.

    Fills ``track_indices`` of every square and the recording's
    ``track_square_numbers`` (-1 for tracks outside the field).

    Parameters
    ----------
    recording : Recording
        Recording with squares already generated
    number_of_squares_in_row : int
        Grid side N
    field_width, field_height : float
        Size of the recording field

    Returns
    -------
    dict
        Number of assigned and dropped tracks
    """
    try:
        tracks = recording.tracks
        n = number_of_squares_in_row

        if len(recording.squares) != n * n:
            raise ValueError(
                f"Recording '{recording.recording_name}' has {len(recording.squares)} squares, expected {n * n}")

        for square in recording.squares:
            square.track_indices = []

        x = np.array([t.x for t in tracks], dtype=float)
        y = np.array([t.y for t in tracks], dtype=float)
        rows, cols, inside = locate_tracks(x, y, n, field_width, field_height)

        square_numbers = np.where(inside, rows * n + cols, -1)
        for track_index, square_number in enumerate(square_numbers):
            if square_number >= 0:
                recording.squares[square_number].track_indices.append(track_index)

        recording.track_square_numbers = square_numbers.tolist()
        n_dropped = int(np.count_nonzero(~inside))
        recording.number_of_dropped_tracks = n_dropped

        if n_dropped:
            logger.warning(f"Recording '{recording.recording_name}': {n_dropped} of {len(tracks)} tracks "
                           f"lie outside the field and were not assigned")
        logger.debug(f"Assigned {len(tracks) - n_dropped} tracks to {n * n} squares "
                     f"in recording '{recording.recording_name}'")

        return {
            'n_assigned': len(tracks) - n_dropped,
            'n_dropped': n_dropped,
        }

    except Exception as e:
        logger.error(f"Error assigning tracks to squares: {str(e)}")
        raise
