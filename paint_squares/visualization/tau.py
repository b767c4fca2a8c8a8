"""
Tau visualization module for Paint Squares.

This module plots the track-duration frequency distribution of a square or
recording together with the fitted exponential decay.
"""

import os
import numpy as np
import matplotlib.pyplot as plt
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

from ..analysis.tau import exp_decay, frequency_distribution

logger = logging.getLogger(__name__)


def plot_tau_fit(durations, result, ax=None, figsize=(6, 4), title=None, time_unit='ms'):
    """
    Plot a duration-frequency distribution and its exponential fit.

    Parameters
    ----------
    durations : array-like
        Track durations the fit was made on
    result : TauResult
        Outcome of the fit
    ax : matplotlib.axes.Axes, optional
        Axes to plot on, by default None
    figsize : tuple, optional
        Figure size, by default (6, 4)
    title : str, optional
        Plot title, by default None
    time_unit : str, optional
        Unit of tau shown in the legend, by default 'ms'

    Returns
    -------
    matplotlib.axes.Axes
        Plot axes
    """
    try:
        if ax is None:
            fig, ax = plt.subplots(figsize=figsize)

        x, y = frequency_distribution(durations)
        ax.plot(x, y, 'o', markersize=4, label='Track count')

        if result.params is not None and len(x) > 0:
            x_fit = np.linspace(np.min(x), np.max(x), 200)
            label = f"Fit: tau = {result.tau:.0f} {time_unit}, R² = {result.r_squared:.3f}"
            ax.plot(x_fit, exp_decay(x_fit, *result.params), '-', linewidth=1.5, label=label)

        ax.set_xlabel('Track duration (s)')
        ax.set_ylabel('Number of tracks')
        ax.set_title(title or f"Tau fit ({result.status.value})")
        ax.legend(loc='upper right', fontsize='small')

        return ax

    except Exception as e:
        logger.error(f"Error plotting Tau fit: {str(e)}")
        raise


def save_tau_fit_plot(durations, result, file_path, title=None, dpi=100):
    """
    Save a Tau fit plot to an image file.

    Parameters
    ----------
    durations : array-like
        Track durations the fit was made on
    result : TauResult
        Outcome of the fit
    file_path : str
        Output file path (PNG, PDF, ...)
    title : str, optional
        Plot title, by default None
    dpi : int, optional
        Resolution, by default 100

    Returns
    -------
    str
        Path to saved file
    """
    os.makedirs(os.path.dirname(os.path.abspath(file_path)), exist_ok=True)

    fig, ax = plt.subplots(figsize=(6, 4))
    try:
        plot_tau_fit(durations, result, ax=ax, title=title)
        fig.tight_layout()
        fig.savefig(file_path, dpi=dpi)
        logger.debug(f"Saved Tau fit plot to {file_path}")
    finally:
        plt.close(fig)

    return file_path
