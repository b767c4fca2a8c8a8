"""
Square and recording attribute module for Paint Squares.

This module runs the analysis stages that follow track assignment:
per-square Tau, variability, density and track statistics, background
estimation and density ratios, selection and labelling, and finally the
recording-level aggregates computed from the selected squares.
"""

import os
import numpy as np
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

from ..objects import TauStatus
from .tau import TauFitter
from .variability import calculate_variability
from .background import estimate_background, legacy_background_mean, legacy_background_square_count
from .density import calculate_density, calculate_density_ratio
from .selection import apply_selection_filter, assign_label_numbers

logger = logging.getLogger(__name__)

NAN = float('nan')

# Square attribute -> (track attribute, reduction)
_TRACK_STATISTICS = {
    'median_diffusion_coefficient': ('diffusion_coefficient', 'median'),
    'median_diffusion_coefficient_ext': ('diffusion_coefficient_ext', 'median'),
    'median_displacement': ('displacement', 'median'),
    'max_displacement': ('displacement', 'max'),
    'total_displacement': ('displacement', 'sum'),
    'median_max_speed': ('max_speed', 'median'),
    'max_max_speed': ('max_speed', 'max'),
    'median_median_speed': ('median_speed', 'median'),
    'max_median_speed': ('median_speed', 'max'),
    'max_track_duration': ('duration', 'max'),
    'total_track_duration': ('duration', 'sum'),
    'median_track_duration': ('duration', 'median'),
}

_REDUCTIONS = {
    'median': np.median,
    'max': np.max,
    'sum': np.sum,
}


def calculate_track_statistics(tracks):
    """
    Summary statistics of the tracks in one square.

    Non-finite values are ignored; a statistic without any finite value is NaN.

    Parameters
    ----------
    tracks : list of Track
        Tracks of the square

    Returns
    -------
    dict
        Square attribute name -> value
    """
    statistics = {}
    columns = {}
    for attribute, (column, reduction) in _TRACK_STATISTICS.items():
        if column not in columns:
            values = np.array([getattr(t, column) for t in tracks], dtype=float)
            columns[column] = values[np.isfinite(values)]
        values = columns[column]
        statistics[attribute] = float(_REDUCTIONS[reduction](values)) if values.size else NAN
    return statistics


def calculate_square_attributes(recording, config, plot_dir=None, cancel_check=None):
    """
    Calculate the attributes of every square of a recording and select squares.

    Parameters
    ----------
    recording : Recording
        Recording with tracks assigned to its squares
    config : GenerateSquaresConfig
        Pipeline parameters
    plot_dir : str, optional
        Directory for Tau fit plots when ``config.plot_curve_fitting`` is set
    cancel_check : callable, optional
        Called before each square; raises to abort the recording

    Returns
    -------
    BackgroundEstimate
        The background estimate the density ratios were computed against
    """
    try:
        squares = recording.squares
        counts = [sq.number_of_tracks for sq in squares]

        background = estimate_background(
            counts,
            max_iterations=config.background_max_iterations,
            epsilon=config.background_epsilon,
            square_numbers=[sq.square_number for sq in squares],
        )
        legacy_mean = legacy_background_mean(
            counts,
            legacy_background_square_count(len(squares), config.legacy_background_fraction),
        )
        recording.legacy_background_mean = legacy_mean

        logger.debug(f"Recording '{recording.recording_name}': background = {background.mean:.2f} "
                     f"over {background.square_count} squares (legacy {legacy_mean:.2f})")

        fitter = TauFitter.from_config(config)
        duration = config.recording_duration if recording.duration is None else recording.duration
        square_area = config.square_area

        for square in squares:
            if cancel_check is not None:
                cancel_check()

            tracks = recording.tracks_of_square(square)

            result = fitter.fit_tracks(tracks)
            square.tau_status = result.status
            if result.status is TauStatus.SUCCESS:
                square.tau = result.tau
                square.r_squared = result.r_squared
            else:
                square.tau = NAN
                square.r_squared = NAN

            if plot_dir and config.plot_curve_fitting and result.params is not None:
                _save_plot(tracks, result, plot_dir,
                           f"{recording.recording_name}-square-{square.square_number}")

            square.variability = calculate_variability(
                [t.x for t in tracks],
                [t.y for t in tracks],
                square.square_number,
                config.number_of_squares_in_row,
                config.square_width,
                config.square_height,
                config.variability_granularity,
            )
            square.density = calculate_density(square.number_of_tracks, square_area,
                                               duration, recording.concentration)
            square.density_ratio = calculate_density_ratio(square.number_of_tracks, background.mean)
            square.density_ratio_legacy = calculate_density_ratio(square.number_of_tracks, legacy_mean)

            for attribute, value in calculate_track_statistics(tracks).items():
                setattr(square, attribute, value)

        n_selected = apply_selection_filter(
            squares,
            config.min_required_density_ratio,
            config.max_allowable_variability,
            config.min_required_r_squared,
            config.neighbour_mode,
        )
        assign_label_numbers(squares)
        recording.number_of_selected_squares = n_selected

        logger.debug(f"Recording '{recording.recording_name}': {n_selected} of {len(squares)} squares selected")

        return background

    except Exception as e:
        logger.error(f"Error calculating square attributes: {str(e)}")
        raise


def calculate_recording_attributes(recording, config, background, plot_dir=None):
    """
    Calculate recording-level Tau, density and background diagnostics.

    Tau is fitted to the pooled durations of the tracks in the selected
    squares. Density counts those tracks over the total area of the
    selected squares.

    Parameters
    ----------
    recording : Recording
        Recording after square selection
    config : GenerateSquaresConfig
        Pipeline parameters
    background : BackgroundEstimate
        Result of the background estimation for this recording
    plot_dir : str, optional
        Directory for the Tau fit plot when ``config.plot_curve_fitting`` is set

    Returns
    -------
    TauResult
        The recording-level Tau fit
    """
    try:
        squares = recording.squares
        background_numbers = set(background.square_numbers)

        recording.background_mean = background.mean
        recording.background_square_count = background.square_count
        recording.background_converged = background.converged
        recording.background_track_count = sum(
            sq.number_of_tracks for sq in squares if sq.square_number in background_numbers)

        selected = recording.selected_squares()
        recording.number_of_selected_squares = len(selected)
        pooled = [track for sq in selected for track in recording.tracks_of_square(sq)]

        result = TauFitter.from_config(config).fit_tracks(pooled)
        recording.tau_status = result.status
        if result.status is TauStatus.SUCCESS:
            recording.tau = result.tau
            recording.r_squared = result.r_squared
        else:
            recording.tau = NAN
            recording.r_squared = NAN

        if plot_dir and config.plot_curve_fitting and result.params is not None:
            _save_plot(pooled, result, plot_dir, recording.recording_name)

        duration = config.recording_duration if recording.duration is None else recording.duration
        recording.density = calculate_density(
            len(pooled),
            len(selected) * config.square_area,
            duration,
            recording.concentration,
        )

        logger.info(f"Recording '{recording.recording_name}': tau = {recording.tau:.0f} "
                    f"({result.status.value}), {len(selected)} squares selected, "
                    f"density = {recording.density:.3f}")

        return result

    except Exception as e:
        logger.error(f"Error calculating recording attributes: {str(e)}")
        raise


def _save_plot(tracks, result, plot_dir, name):
    from ..visualization.tau import save_tau_fit_plot

    path = os.path.join(plot_dir, f"{name}.png")
    try:
        save_tau_fit_plot([t.duration for t in tracks], result, path, title=name)
    except OSError as e:
        logger.warning(f"Could not save Tau plot {path}: {str(e)}")
