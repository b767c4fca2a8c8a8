"""
Generate-squares processing module for Paint Squares.

This module drives the full pipeline for one recording (grid generation,
track assignment, square attributes, selection, recording aggregation) and
runs it over a batch of recordings, sequentially or in a process pool.

Recordings are independent; a recording is either processed completely or
dropped. Cancellation is cooperative: the cancel flag is checked between
recordings and, in sequential mode, between the squares of a recording.
"""

import os
import datetime
import concurrent.futures
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, List, Optional, Union, Any, Tuple
import logging

from ..grid import generate_squares, assign_tracks_to_squares, validate_tracks
from ..analysis.attributes import calculate_square_attributes, calculate_recording_attributes

logger = logging.getLogger(__name__)


class ProcessingCancelled(RuntimeError):
    """Processing of a recording was cancelled before it completed."""


def _cancel_checker(cancel_event, recording_name):
    if cancel_event is None:
        return None

    def check():
        if cancel_event.is_set():
            raise ProcessingCancelled(f"Cancelled while processing recording '{recording_name}'")

    return check


def process_recording(recording, config, plot_dir=None, cancel_event=None):
    """
    Run the generate-squares pipeline on one recording.

    The recording is filled in place: squares, track assignment, square
    attributes, selection, labels and recording aggregates.

    Parameters
    ----------
    recording : Recording
        Recording with its tracks and concentration
    config : GenerateSquaresConfig
        Pipeline parameters
    plot_dir : str, optional
        Directory for Tau fit plots when ``config.plot_curve_fitting`` is set
    cancel_event : threading.Event, optional
        Checked between stages and between squares

    Returns
    -------
    Recording
        The processed recording

    Raises
    ------
    TrackValidationError
        If the track input of the recording is malformed
    ProcessingCancelled
        If ``cancel_event`` was set before the recording completed
    """
    check = _cancel_checker(cancel_event, recording.recording_name)

    try:
        logger.info(f"Processing recording '{recording.recording_name}' "
                    f"({recording.number_of_tracks} tracks)")

        validate_tracks(recording.tracks, recording.recording_name)

        recording.squares = generate_squares(config.number_of_squares_in_row,
                                             config.field_width, config.field_height)
        assign_tracks_to_squares(recording, config.number_of_squares_in_row,
                                 config.field_width, config.field_height)

        if check is not None:
            check()

        background = calculate_square_attributes(recording, config, plot_dir=plot_dir,
                                                 cancel_check=check)

        if check is not None:
            check()

        calculate_recording_attributes(recording, config, background, plot_dir=plot_dir)

        return recording

    except ProcessingCancelled:
        logger.info(f"Cancelled recording '{recording.recording_name}'")
        raise
    except Exception as e:
        logger.error(f"Error processing recording '{recording.recording_name}': {str(e)}")
        raise


def process_recordings(recordings, config, max_workers=1, plot_dir=None, cancel_event=None):
    """
    Run the generate-squares pipeline over a batch of recordings.

    A recording that fails is reported in ``errors`` and does not stop the
    batch. When ``cancel_event`` is set, no further recordings are started
    and recordings that had not completed are left out of the results.

    Parameters
    ----------
    recordings : list of Recording
        Recordings to process
    config : GenerateSquaresConfig
        Pipeline parameters
    max_workers : int, optional
        Number of worker processes; 1 processes in this process, None uses
        one worker per CPU, by default 1
    plot_dir : str, optional
        Directory for Tau fit plots
    cancel_event : threading.Event, optional
        Cooperative cancellation flag

    Returns
    -------
    dict
        Processed recordings, errors, and whether the batch was cancelled
    """
    try:
        recordings = list(recordings)
        results = []
        errors = []
        cancelled = False

        if not recordings:
            logger.warning("No recordings to process")

        elif max_workers == 1:
            for recording in recordings:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                try:
                    results.append(process_recording(recording, config, plot_dir, cancel_event))
                except ProcessingCancelled:
                    cancelled = True
                    break
                except Exception as exc:
                    errors.append({
                        'recording_name': recording.recording_name,
                        'error': str(exc)
                    })

        else:
            max_workers = max_workers or min(os.cpu_count() or 1, len(recordings))

            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                future_to_name = {executor.submit(process_recording, recording, config, plot_dir):
                                  recording.recording_name
                                  for recording in recordings}

                for future in concurrent.futures.as_completed(future_to_name):
                    name = future_to_name[future]

                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        for pending in future_to_name:
                            pending.cancel()
                        break

                    try:
                        results.append(future.result())
                    except Exception as exc:
                        errors.append({
                            'recording_name': name,
                            'error': str(exc)
                        })
                        logger.error(f"Recording {name} generated an exception: {exc}")

            # Keep input order regardless of completion order
            order = {recording.recording_name: i for i, recording in enumerate(recordings)}
            results.sort(key=lambda r: order.get(r.recording_name, len(order)))

        if cancelled:
            logger.info(f"Processing cancelled after {len(results)} of {len(recordings)} recordings")

        return {
            'timestamp': datetime.datetime.now(),
            'n_recordings': len(recordings),
            'n_successful': len(results),
            'n_failed': len(errors),
            'cancelled': cancelled,
            'recordings': results,
            'errors': errors
        }

    except Exception as e:
        logger.error(f"Error in batch processing: {str(e)}")
        raise
