"""
Tau analysis module for Paint Squares.

Tau is the time constant of a mono-exponential decay fitted to the
frequency distribution of track durations:

    count(duration) = m * exp(-t * duration) + b,    tau = time_scale / t

The fit is a nonlinear least-squares problem solved with scipy's
Levenberg-Marquardt implementation, using the analytic Jacobian.
"""

import warnings
import numpy as np
from scipy.optimize import curve_fit, OptimizeWarning
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

from ..objects import TauResult, TauStatus

logger = logging.getLogger(__name__)

NAN = float('nan')

# Errors the solver can raise on degenerate input; all of them mean "no fit"
_SOLVER_ERRORS = (RuntimeError, ValueError, TypeError, FloatingPointError,
                  OverflowError, np.linalg.LinAlgError)


def exp_decay(x, m, t, b):
    """Model y = m * exp(-t * x) + b."""
    return m * np.exp(-t * x) + b


def exp_decay_jacobian(x, m, t, b):
    """Partial derivatives of ``exp_decay`` with respect to (m, t, b)."""
    e = np.exp(-t * x)
    return np.column_stack([e, -m * x * e, np.ones_like(x)])


def frequency_distribution(durations):
    """
    Count occurrences of each distinct duration.

    Parameters
    ----------
    durations : array-like
        Track durations

    Returns
    -------
    tuple of numpy.ndarray
        (x, y): distinct durations in ascending order and their counts
    """
    values, counts = np.unique(np.asarray(durations, dtype=float), return_counts=True)
    return values, counts.astype(float)


def initial_guess(x, y):
    """
    Starting point [m, t, b] for the exponential fit.

    The baseline is the smallest count, the amplitude the range of the
    counts, and the rate comes from a straight-line fit of ln(y - b)
    against x over the points clearly above baseline.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    max_x = np.max(x)
    min_y = np.min(y)
    max_y = np.max(y)

    b = max(0.0, min_y)
    m = max(1e-6, max_y - b)

    eps = max(1e-6, 0.01 * m)
    above = (y - b) > eps
    if np.count_nonzero(above) >= 2:
        lx = x[above]
        ly = np.log(y[above] - b)
        n = len(lx)
        denominator = n * np.sum(lx * lx) - np.sum(lx) ** 2
        if denominator == 0.0:
            slope = -1.0
        else:
            slope = (n * np.sum(lx * ly) - np.sum(lx) * np.sum(ly)) / denominator
        t = max(1e-9, -slope)
    else:
        t = 1.0 / max(1e-3, max_x)

    m = float(np.clip(m, 1e-9, 1e9))
    t = float(np.clip(t, 1e-9, 1e3))
    b = float(np.clip(b, 0.0, max(1.0, max_y)))

    return [m, t, b]


def r_squared(x, y, params):
    """
    Coefficient of determination of ``exp_decay`` on (x, y).

    Returns NaN when y has no variance.
    """
    y = np.asarray(y, dtype=float)
    with np.errstate(over='ignore', invalid='ignore'):
        residuals = y - exp_decay(np.asarray(x, dtype=float), *params)
        ss_res = np.sum(residuals ** 2)
    ss_tot = np.sum((y - np.mean(y)) ** 2)
    if ss_tot == 0.0:
        return NAN
    return float(1.0 - ss_res / ss_tot)


def fit_exponential_decay(x, y, max_evaluations=10000):
    """
    Fit y = m * exp(-t * x) + b.

    Parameters
    ----------
    x, y : array-like
        Data points, at least two
    max_evaluations : int, optional
        Maximum number of function evaluations, by default 10000

    Returns
    -------
    tuple
        (params, r_squared); params is the fitted (m, t, b) or None if the
        solver failed, r_squared is NaN in that case
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) < 2 or len(x) != len(y):
        return None, NAN

    p0 = initial_guess(x, y)

    # Levenberg-Marquardt needs at least as many points as parameters
    method = 'lm' if len(x) >= len(p0) else 'trf'

    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', OptimizeWarning)
            with np.errstate(over='ignore', invalid='ignore', divide='ignore'):
                popt, _ = curve_fit(exp_decay, x, y, p0=p0, jac=exp_decay_jacobian,
                                    method=method, maxfev=max_evaluations)
    except _SOLVER_ERRORS as e:
        logger.debug(f"Exponential fit failed: {str(e)}")
        return None, NAN

    if not np.all(np.isfinite(popt)):
        return None, NAN

    params = tuple(float(p) for p in popt)
    return params, r_squared(x, y, params)


def calculate_tau(durations, min_tracks_for_tau, min_required_r_squared, time_scale=1000.0):
    """
    Calculate Tau from a collection of track durations.

    Parameters
    ----------
    durations : array-like
        Track durations
    min_tracks_for_tau : int
        Minimum number of durations needed to attempt a fit
    min_required_r_squared : float
        Minimum R² for the fit to count as a success
    time_scale : float, optional
        Converts 1 / decay rate to the reported unit, by default 1000.0
        (durations in seconds, tau in milliseconds)

    Returns
    -------
    TauResult
        Tau, R² and terminal status. INSUFFICIENT_POINTS carries NaN/NaN,
        NO_FIT carries tau 0.0 and R² NaN, RSQUARED_TOO_LOW and SUCCESS
        carry the fitted values.
    """
    durations = np.asarray(durations if durations is not None else [], dtype=float)
    n_tracks = len(durations)

    if n_tracks < min_tracks_for_tau:
        return TauResult(NAN, NAN, TauStatus.INSUFFICIENT_POINTS, n_tracks)

    x, y = frequency_distribution(durations)
    if len(x) < 2:
        return TauResult(0.0, NAN, TauStatus.NO_FIT, n_tracks)

    params, r2 = fit_exponential_decay(x, y)
    if params is None:
        return TauResult(0.0, NAN, TauStatus.NO_FIT, n_tracks)

    t = params[1]
    tau = time_scale / t if t > 0 else NAN
    if not (np.isfinite(tau) and np.isfinite(r2)):
        return TauResult(0.0, NAN, TauStatus.NO_FIT, n_tracks, params)

    if r2 < min_required_r_squared:
        return TauResult(tau, r2, TauStatus.RSQUARED_TOO_LOW, n_tracks, params)

    return TauResult(tau, r2, TauStatus.SUCCESS, n_tracks, params)


class TauFitter:
    """
    Tau calculator bound to a set of thresholds.

    Parameters
    ----------
    min_tracks_for_tau : int, optional
        Minimum number of tracks to attempt a fit, by default 20
    min_required_r_squared : float, optional
        Minimum R² for a successful fit, by default 0.1
    time_scale : float, optional
        Unit conversion for tau, by default 1000.0 (ms)
    """

    def __init__(self, min_tracks_for_tau=20, min_required_r_squared=0.1, time_scale=1000.0):
        self.min_tracks_for_tau = min_tracks_for_tau
        self.min_required_r_squared = min_required_r_squared
        self.time_scale = time_scale

    @classmethod
    def from_config(cls, config):
        return cls(config.min_tracks_for_tau, config.min_required_r_squared, config.tau_time_scale)

    def fit(self, durations):
        """Fit tau to durations; see ``calculate_tau``."""
        return calculate_tau(durations, self.min_tracks_for_tau,
                             self.min_required_r_squared, self.time_scale)

    def fit_tracks(self, tracks):
        """Fit tau to the durations of a list of tracks."""
        return self.fit([track.duration for track in tracks])
