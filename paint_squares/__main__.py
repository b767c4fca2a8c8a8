"""
Command-line interface for Paint Squares.

This module provides a command-line interface for running the
generate-squares pipeline on a track table and writing the squares,
recordings and tracks tables.
"""

import argparse
import os
import sys
import logging

from paint_squares import __version__
from paint_squares.config import GenerateSquaresConfig
from paint_squares.project.processing import process_recordings
from paint_squares.utils import io

# Set up logging
logger = logging.getLogger(__name__)

SQUARES_FILE = 'All Squares.csv'
RECORDINGS_FILE = 'All Recordings.csv'
TRACKS_FILE = 'All Tracks.csv'


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Paint Squares: square-grid analytics for single-molecule track data'
    )

    parser.add_argument('--version', action='version', version=f'Paint Squares {__version__}')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Generate command
    generate_parser = subparsers.add_parser('generate', help='Generate squares for a track table')
    generate_parser.add_argument('input', help='Input tracks file (CSV)')
    generate_parser.add_argument('output', help='Output directory')
    generate_parser.add_argument('--config', help='Configuration file (YAML, JSON)')
    generate_parser.add_argument('--recordings', help='Recordings file (CSV) with per-recording concentration')
    generate_parser.add_argument('--concentration', type=float, default=1.0,
                                 help='Concentration of recordings not in the recordings file')
    generate_parser.add_argument('--workers', type=int, default=1,
                                 help='Number of worker processes')
    generate_parser.add_argument('--plot', action='store_true',
                                 help='Save Tau fit plots')

    # Config command
    config_parser = subparsers.add_parser('config', help='Write the default configuration')
    config_parser.add_argument('output', help='Output configuration file (YAML, JSON)')

    return parser.parse_args(argv)


def get_configuration(config_file, plot=False):
    """
    Build the pipeline configuration.

    Parameters
    ----------
    config_file : str or None
        Path to configuration file
    plot : bool, optional
        Force Tau fit plotting on, by default False

    Returns
    -------
    GenerateSquaresConfig
        Validated configuration
    """
    data = io.load_config(config_file) if config_file else {}
    config = GenerateSquaresConfig.from_dict(data)

    if plot and not config.plot_curve_fitting:
        values = config.to_dict()
        values['plot_curve_fitting'] = True
        config = GenerateSquaresConfig(**values)

    return config


def run_generate(args):
    """
    Run the generate-squares pipeline.

    Parameters
    ----------
    args : argparse.Namespace
        Command-line arguments

    Returns
    -------
    int
        Exit status
    """
    logger.info("Starting square generation")

    try:
        config = get_configuration(args.config, args.plot)
    except Exception as e:
        logger.error(f"Error loading configuration: {str(e)}")
        return 1

    try:
        tracks_df = io.load_tracks(args.input)
        concentrations = io.load_concentrations(args.recordings) if args.recordings else None
        recordings = io.tracks_to_recordings(
            tracks_df,
            concentration=args.concentration,
            concentrations=concentrations,
            recording_name=os.path.splitext(os.path.basename(args.input))[0],
        )
    except Exception as e:
        logger.error(f"Error loading tracks: {str(e)}")
        return 1

    plot_dir = None
    if config.plot_curve_fitting:
        import matplotlib
        matplotlib.use('Agg')
        plot_dir = os.path.join(args.output, 'Tau Plots')

    results = process_recordings(recordings, config, max_workers=args.workers, plot_dir=plot_dir)

    for error in results['errors']:
        logger.error(f"Recording {error['recording_name']} failed: {error['error']}")

    processed = results['recordings']
    try:
        io.save_squares(processed, os.path.join(args.output, SQUARES_FILE))
        io.save_recordings(processed, os.path.join(args.output, RECORDINGS_FILE))
        io.save_tracks(processed, os.path.join(args.output, TRACKS_FILE))
    except Exception as e:
        logger.error(f"Error saving results: {str(e)}")
        return 1

    logger.info(f"Processed {results['n_successful']} of {results['n_recordings']} recordings")

    return 0 if results['n_failed'] == 0 else 2


def run_config(args):
    """Write the default configuration to a file."""
    try:
        io.save_config(GenerateSquaresConfig(), args.output)
    except Exception as e:
        logger.error(f"Error writing configuration: {str(e)}")
        return 1
    return 0


def main(argv=None):
    """Main function to handle command-line interface."""
    args = parse_arguments(argv)

    logging.getLogger().setLevel(getattr(logging, args.log_level))

    if args.command == 'generate':
        return run_generate(args)
    elif args.command == 'config':
        return run_config(args)
    else:
        print("Please specify a command. Use -h or --help for help.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
