"""
Square selection module for Paint Squares.

A square is selected when its density ratio, variability and R² all pass
their thresholds. A neighbour mode may then refine the selection:

- "Free": no adjacency constraint.
- "Relaxed": a selected square is kept only if another selected square
  touches it at an edge or a corner.
- "Strict": as Relaxed, but only edge contact counts.

Selected squares are then labelled 0, 1, 2, ... in square order.
"""

from typing import Dict, List, Tuple, Optional, Union, Any
import logging

logger = logging.getLogger(__name__)


class NeighbourMode:
    """
    Strategy for the adjacency pass of the selection filter.

    Subclasses define ``offsets``: the (row, col) displacements at which a
    selected neighbour keeps a square selected. ``None`` disables the pass.
    """

    name = None
    offsets = None

    def refine(self, squares):
        """
        Deselect squares without a selected neighbour.

        Parameters
        ----------
        squares : list of Square
            Squares after the numeric filter

        Returns
        -------
        int
            Number of squares still selected
        """
        if self.offsets is None:
            return sum(1 for sq in squares if sq.selected)

        selected_cells = {(sq.row, sq.col) for sq in squares if sq.selected}
        keep = set()
        for cell in selected_cells:
            row, col = cell
            if any((row + dr, col + dc) in selected_cells for dr, dc in self.offsets):
                keep.add(cell)

        for sq in squares:
            if sq.selected and (sq.row, sq.col) not in keep:
                sq.selected = False

        logger.debug(f"Neighbour mode [{self.name}]: {len(keep)} / {len(selected_cells)} retained")
        return len(keep)


class FreeNeighbourMode(NeighbourMode):
    name = "Free"


class RelaxedNeighbourMode(NeighbourMode):
    name = "Relaxed"
    offsets = [(dr, dc) for dr in (-1, 0, 1) for dc in (-1, 0, 1) if (dr, dc) != (0, 0)]


class StrictNeighbourMode(NeighbourMode):
    name = "Strict"
    offsets = [(-1, 0), (1, 0), (0, -1), (0, 1)]


NEIGHBOUR_MODES = {
    mode.name.lower(): mode
    for mode in (FreeNeighbourMode, RelaxedNeighbourMode, StrictNeighbourMode)
}


def get_neighbour_mode(name):
    """
    Look up a neighbour mode by name (case-insensitive).

    Raises
    ------
    NotImplementedError
        If no strategy exists for the name
    """
    mode = NEIGHBOUR_MODES.get(str(name).strip().lower())
    if mode is None:
        raise NotImplementedError(
            f"Neighbour mode '{name}' is not implemented; "
            f"choose from {[m.name for m in NEIGHBOUR_MODES.values()]}")
    return mode()


def passes_thresholds(square, min_density_ratio, max_variability, min_r_squared):
    """
    Numeric selection criteria of one square.

    All comparisons are strict; a NaN attribute fails its comparison.
    """
    return (square.density_ratio > min_density_ratio
            and square.variability < max_variability
            and square.r_squared > min_r_squared)


def apply_selection_filter(squares, min_density_ratio, max_variability, min_r_squared,
                           neighbour_mode="Free"):
    """
    Mark the squares of a recording as selected or not.

    Parameters
    ----------
    squares : list of Square
        All squares of one recording
    min_density_ratio : float
        Density ratio a square must exceed
    max_variability : float
        Variability a square must stay below
    min_r_squared : float
        R² a square must exceed
    neighbour_mode : str or NeighbourMode, optional
        Adjacency refinement, by default "Free"

    Returns
    -------
    int
        Number of selected squares
    """
    try:
        if isinstance(neighbour_mode, NeighbourMode):
            mode = neighbour_mode
        else:
            mode = get_neighbour_mode(neighbour_mode)

        for square in squares:
            square.selected = passes_thresholds(square, min_density_ratio,
                                                max_variability, min_r_squared)

        return mode.refine(squares)

    except Exception as e:
        logger.error(f"Error applying selection filter: {str(e)}")
        raise


def assign_label_numbers(squares):
    """
    Number the selected squares sequentially from 0, in list order.

    Unselected squares get label -1.

    Returns
    -------
    int
        Number of labels assigned
    """
    label_number = 0
    for square in squares:
        if square.selected:
            square.label_number = label_number
            label_number += 1
        else:
            square.label_number = -1
    return label_number
