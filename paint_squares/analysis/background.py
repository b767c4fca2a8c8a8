"""
Background estimation module for Paint Squares.

The background track count of a recording is the mean count of the squares
that carry no particular signal. Two estimators are provided:

- ``estimate_background``: iterative trimming of squares above mean + 2 SD
  until the mean settles. This is the estimate the pipeline uses.
- ``legacy_background_mean``: mean of the smallest non-zero counts over a
  fixed fraction of the squares, kept for comparison with older results.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Optional, Union, Any
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackgroundEstimate:
    """
    Result of the iterative background estimation.

    Attributes:
        mean: Mean track count of the background squares
        square_numbers: Numbers of the squares classified as background
        iterations: Number of trimming rounds performed
        converged: False if the iteration cap was reached first
    """

    mean: float
    square_numbers: Tuple[int, ...] = field(default_factory=tuple)
    iterations: int = 0
    converged: bool = True

    @property
    def square_count(self) -> int:
        return len(self.square_numbers)


def estimate_background(counts, max_iterations=10, epsilon=0.01, square_numbers=None):
    """
    Estimate the background track count by iterative 2-sigma trimming.

    Each round computes the mean and population standard deviation of the
    remaining squares and removes squares whose count exceeds mean + 2 SD.
    Iteration stops when the mean changes by less than ``epsilon`` relative
    to its previous value, or after ``max_iterations`` rounds.

    Parameters
    ----------
    counts : array-like
        Track count per square
    max_iterations : int, optional
        Iteration cap, by default 10
    epsilon : float, optional
        Relative change of the mean that ends the iteration, by default 0.01
    square_numbers : array-like, optional
        Identifiers for the counts, by default their positions

    Returns
    -------
    BackgroundEstimate
        Background mean and the squares it was computed from
    """
    counts = np.asarray(counts, dtype=float)
    if square_numbers is None:
        square_numbers = np.arange(len(counts))
    else:
        square_numbers = np.asarray(square_numbers)

    if counts.size == 0:
        return BackgroundEstimate(float('nan'), (), 0, True)

    current = np.ones(len(counts), dtype=bool)
    mean = float(np.mean(counts))

    if mean == 0:
        return BackgroundEstimate(0.0, tuple(int(s) for s in square_numbers), 0, True)

    converged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        previous_mean = mean
        std = float(np.sqrt(np.mean((counts[current] - mean) ** 2)))
        threshold = mean + 2 * std

        kept = current & (counts <= threshold)
        if not np.any(kept):
            converged = True
            break

        current = kept
        mean = float(np.mean(counts[current]))

        if previous_mean == 0 or abs(mean - previous_mean) / previous_mean < epsilon:
            converged = True
            break

    if not converged:
        logger.warning(f"Background estimation did not converge in {max_iterations} iterations; "
                       f"using last mean {mean:.3f}")

    logger.debug(f"Estimated background track count = {mean:.2f}, n = {int(np.count_nonzero(current))}")

    return BackgroundEstimate(
        mean=mean,
        square_numbers=tuple(int(s) for s in square_numbers[current]),
        iterations=iterations,
        converged=converged,
    )


def legacy_background_mean(counts, number_of_squares):
    """
    Mean of the smallest non-zero counts.

    Parameters
    ----------
    counts : array-like
        Track count per square
    number_of_squares : int
        How many of the smallest non-zero counts to average

    Returns
    -------
    float
        The mean, or 0.0 if there are no non-zero counts
    """
    counts = np.asarray(counts, dtype=float)
    non_zero = np.sort(counts[counts > 0])[:max(0, int(number_of_squares))]
    if non_zero.size == 0:
        return 0.0
    return float(np.mean(non_zero))


def legacy_background_square_count(total_squares, fraction):
    """Number of squares the legacy estimate averages over."""
    return max(1, int(math.floor(fraction * total_squares)))
