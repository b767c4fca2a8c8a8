"""
Visualization module for Paint Squares.

Plots are only produced when curve-fit plotting is enabled in the configuration.
"""

from .tau import plot_tau_fit, save_tau_fit_plot
