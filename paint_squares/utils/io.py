"""
Input/output module for Paint Squares.

This module provides functions for loading track tables and configuration
files, grouping tracks into recordings, and exporting the squares,
recordings and tracks tables produced by the generate-squares pipeline.
"""

import numpy as np
import pandas as pd
import os
import json
import yaml
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

from ..config import CONFIG_SECTION, GenerateSquaresConfig
from ..objects import Recording, Track

logger = logging.getLogger(__name__)


# Column names of track tables written by the trajectory engine
TRACK_COLUMNS = {
    'Recording Name': 'recording_name',
    'Experiment Name': 'experiment_name',
    'Track Id': 'track_id',
    'Track Duration': 'duration',
    'Track X Location': 'x',
    'Track Y Location': 'y',
    'Track Displacement': 'displacement',
    'Track Max Speed': 'max_speed',
    'Track Median Speed': 'median_speed',
    'Diffusion Coefficient': 'diffusion_coefficient',
    'Diffusion Coefficient Ext': 'diffusion_coefficient_ext',
}

REQUIRED_TRACK_COLUMNS = ['track_id', 'duration', 'x', 'y']

OPTIONAL_TRACK_COLUMNS = ['displacement', 'max_speed', 'median_speed',
                          'diffusion_coefficient', 'diffusion_coefficient_ext']

# Decimals used when writing result tables; values in memory are not rounded
EXPORT_PRECISION = {
    'tau': 0,
    'r_squared': 3,
    'variability': 2,
    'density': 3,
    'density_ratio': 2,
    'density_ratio_legacy': 2,
    'background_mean': 2,
    'legacy_background_mean': 2,
    'median_diffusion_coefficient': 2,
    'median_diffusion_coefficient_ext': 2,
    'median_displacement': 2,
    'max_displacement': 2,
    'total_displacement': 1,
    'median_max_speed': 2,
    'max_max_speed': 2,
    'median_median_speed': 2,
    'max_median_speed': 2,
    'max_track_duration': 1,
    'total_track_duration': 1,
    'median_track_duration': 1,
}


def load_tracks(file_path):
    """
    Load a track table from a CSV file.

    Column names are accepted as written by the trajectory engine
    ("Track X Location", ...) or in snake_case (``x``, ...). Optional
    statistic columns that are absent are filled with NaN.

    Parameters
    ----------
    file_path : str
        Path to track CSV file

    Returns
    -------
    pandas.DataFrame
        DataFrame with snake_case track columns

    Raises
    ------
    ValueError
        If a required column (track id, duration, x, y) is missing
    """
    try:
        logger.info(f"Loading tracks from {file_path}")

        # Check file exists
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Track file not found: {file_path}")

        tracks_df = pd.read_csv(file_path)
        tracks_df = tracks_df.rename(columns=TRACK_COLUMNS)

        missing = [col for col in REQUIRED_TRACK_COLUMNS if col not in tracks_df.columns]
        if missing:
            raise ValueError(f"Track file {file_path} is missing required columns: {missing}")

        for col in OPTIONAL_TRACK_COLUMNS:
            if col not in tracks_df.columns:
                tracks_df[col] = np.nan

        logger.info(f"Loaded {len(tracks_df)} tracks")

        return tracks_df

    except Exception as e:
        logger.error(f"Error loading tracks: {str(e)}")
        raise


def load_concentrations(file_path):
    """
    Load per-recording concentrations from a recordings CSV file.

    Parameters
    ----------
    file_path : str
        CSV file with "Recording Name" and "Concentration" columns
        (or ``recording_name`` and ``concentration``)

    Returns
    -------
    dict
        Recording name -> concentration
    """
    try:
        recordings_df = pd.read_csv(file_path)
        recordings_df = recordings_df.rename(columns={'Recording Name': 'recording_name',
                                                      'Concentration': 'concentration'})

        missing = [col for col in ('recording_name', 'concentration')
                   if col not in recordings_df.columns]
        if missing:
            raise ValueError(f"Recordings file {file_path} is missing required columns: {missing}")

        return dict(zip(recordings_df['recording_name'].astype(str),
                        recordings_df['concentration'].astype(float)))

    except Exception as e:
        logger.error(f"Error loading concentrations: {str(e)}")
        raise


def tracks_to_recordings(tracks_df, concentration=1.0, concentrations=None,
                         recording_name=None, duration=None):
    """
    Group a track table into recordings.

    Parameters
    ----------
    tracks_df : pandas.DataFrame
        Track table as returned by ``load_tracks``
    concentration : float, optional
        Concentration of recordings not listed in ``concentrations``, by default 1.0
    concentrations : dict, optional
        Recording name -> concentration, by default None
    recording_name : str, optional
        Name used when the table has no recording name column, by default None
    duration : float, optional
        Recording duration in seconds, by default None (configured default)

    Returns
    -------
    list of Recording
        One recording per distinct recording name, in order of first appearance
    """
    try:
        concentrations = concentrations or {}

        if 'recording_name' in tracks_df.columns:
            groups = tracks_df.groupby(tracks_df['recording_name'].astype(str), sort=False)
        else:
            groups = [(recording_name or 'recording', tracks_df)]

        recordings = []
        for name, group in groups:
            tracks = [
                Track(
                    track_id=int(row.track_id) if pd.notna(row.track_id) else -1,
                    duration=float(row.duration),
                    x=float(row.x),
                    y=float(row.y),
                    displacement=float(row.displacement),
                    max_speed=float(row.max_speed),
                    median_speed=float(row.median_speed),
                    diffusion_coefficient=float(row.diffusion_coefficient),
                    diffusion_coefficient_ext=float(row.diffusion_coefficient_ext),
                )
                for row in group.itertuples(index=False)
            ]
            recordings.append(Recording(
                recording_name=name,
                tracks=tracks,
                concentration=concentrations.get(name, concentration),
                duration=duration,
                experiment_name=(str(group['experiment_name'].iloc[0])
                                 if 'experiment_name' in group.columns else ''),
            ))

        logger.info(f"Grouped {len(tracks_df)} tracks into {len(recordings)} recordings")

        return recordings

    except Exception as e:
        logger.error(f"Error grouping tracks into recordings: {str(e)}")
        raise


def _export_frame(records, columns=None):
    df = pd.DataFrame(records, columns=columns)
    for col, decimals in EXPORT_PRECISION.items():
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce').round(decimals)
    df.columns = [col.replace('_', ' ').title() for col in df.columns]
    return df


def squares_to_dataframe(recordings):
    """
    Squares table of a set of processed recordings.

    Parameters
    ----------
    recordings : list of Recording
        Processed recordings

    Returns
    -------
    pandas.DataFrame
        One row per square, values rounded for export
    """
    records = []
    for recording in recordings:
        for square in recording.squares:
            record = {'recording_name': recording.recording_name}
            record.update(square.to_dict())
            records.append(record)
    return _export_frame(records)


def recordings_to_dataframe(recordings):
    """Recordings table, one row per recording."""
    return _export_frame([recording.to_dict() for recording in recordings])


def tracks_to_dataframe(recordings):
    """Tracks table with the square and label number of every track."""
    records = [record for recording in recordings for record in recording.track_records()]
    return _export_frame(records)


def _save_table(df, file_path, what):
    try:
        logger.info(f"Saving {what} to {file_path}")

        # Create directory if it doesn't exist
        os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)

        df.to_csv(file_path, index=False)

        logger.info(f"Saved {len(df)} {what}")

        return file_path

    except Exception as e:
        logger.error(f"Error saving {what}: {str(e)}")
        raise


def save_squares(recordings, file_path):
    """
    Save the squares table of processed recordings to CSV.

    Returns
    -------
    str
        Path to saved file
    """
    return _save_table(squares_to_dataframe(recordings), file_path, 'squares')


def save_recordings(recordings, file_path):
    """Save the recordings table to CSV and return the path."""
    return _save_table(recordings_to_dataframe(recordings), file_path, 'recordings')


def save_tracks(recordings, file_path):
    """Save the tracks table, with square assignment and labels, to CSV."""
    return _save_table(tracks_to_dataframe(recordings), file_path, 'tracks')


# Headings the generate-squares parameters may be filed under
CONFIG_SECTIONS = (CONFIG_SECTION, 'Generate Squares')


def _config_format(file_path):
    ext = os.path.splitext(file_path)[1].lower()
    if ext in ('.yaml', '.yml'):
        return 'yaml'
    if ext == '.json':
        return 'json'
    raise ValueError(f"Unsupported configuration format: {ext}")


def load_config(file_path):
    """
    Load the generate-squares parameters from a YAML or JSON file.

    The parameters may sit at top level or under a ``generate_squares``
    (or "Generate Squares") heading; in the latter case the other headings
    of the file are ignored.

    Parameters
    ----------
    file_path : str
        Path to configuration file

    Returns
    -------
    dict
        Parameter dictionary, ready for ``GenerateSquaresConfig.from_dict``

    Raises
    ------
    ValueError
        If the format is not YAML or JSON, or the file does not hold a mapping
    """
    try:
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        fmt = _config_format(file_path)
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f) if fmt == 'yaml' else json.load(f)

        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {file_path} does not hold a mapping")

        for section in CONFIG_SECTIONS:
            if isinstance(data.get(section), dict):
                logger.debug(f"Using section '{section}' of {file_path}")
                data = data[section]
                break

        logger.info(f"Loaded {len(data)} generate-squares parameters from {file_path}")

        return dict(data)

    except Exception as e:
        logger.error(f"Error loading configuration: {str(e)}")
        raise


def save_config(config, file_path):
    """
    Save generate-squares parameters to a YAML or JSON file.

    Parameters
    ----------
    config : GenerateSquaresConfig or dict
        Parameters to save; a configuration object is written under the
        ``generate_squares`` heading, a dict is written as given
    file_path : str
        Output file path

    Returns
    -------
    str
        Path to saved file
    """
    try:
        fmt = _config_format(file_path)

        if isinstance(config, GenerateSquaresConfig):
            config = {CONFIG_SECTION: config.to_dict()}

        os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)

        with open(file_path, 'w') as f:
            if fmt == 'yaml':
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

        logger.info(f"Saved configuration to {file_path}")

        return file_path

    except Exception as e:
        logger.error(f"Error saving configuration: {str(e)}")
        raise
