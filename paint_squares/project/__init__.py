"""
Project processing module for Paint Squares.

This module runs the generate-squares pipeline over one recording or a
batch of recordings.
"""

from .processing import ProcessingCancelled, process_recording, process_recordings
