"""
Configuration for Paint Squares.

The generate-squares parameters are held in an immutable
``GenerateSquaresConfig`` that is handed to every pipeline stage. It can be
built from a plain dictionary, as loaded from a YAML or JSON file by
``paint_squares.utils.io.load_config``.

Example:
    config = GenerateSquaresConfig.from_dict(load_config('paint.yaml'))
    print(config.number_of_squares_in_row, config.square_area)
"""

import logging
import math
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Geometry and timing of a recording
# =============================================================================

PIXEL_WIDTH = 0.1603251                                 # µm
PIXEL_HEIGHT = 0.1603251                                # µm
NUMBER_PIXELS_WIDTH = 512
NUMBER_PIXELS_HEIGHT = 512
IMAGE_WIDTH = PIXEL_WIDTH * NUMBER_PIXELS_WIDTH         # 82.0864512 µm
IMAGE_HEIGHT = PIXEL_HEIGHT * NUMBER_PIXELS_HEIGHT      # 82.0864512 µm

TIME_INTERVAL = 0.05                                    # s between frames
FRAMES = 2000
RECORDING_DURATION = FRAMES * TIME_INTERVAL             # 100 s

CONFIG_SECTION = 'generate_squares'

# Fields that must hold whole numbers; integral floats (e.g. 20.0 from JSON) are accepted
_INTEGER_FIELDS = (
    'number_of_squares_in_row',
    'min_tracks_for_tau',
    'variability_granularity',
    'background_max_iterations',
)

# Names used in older configuration files
_KEY_ALIASES = {
    'min_tracks_to_calculate_tau': 'min_tracks_for_tau',
    'nr_of_squares_in_row': 'number_of_squares_in_row',
    'granularity': 'variability_granularity',
}


@dataclass(frozen=True)
class GenerateSquaresConfig:
    """
    Parameters of the generate-squares pipeline.

    Attributes:
        number_of_squares_in_row: Grid side N; the grid has N * N squares
        min_tracks_for_tau: Minimum number of tracks to attempt a Tau fit
        min_required_r_squared: Minimum R² for a fit, and for selection
        min_required_density_ratio: Density ratio a square must exceed
        max_allowable_variability: Variability a square must stay below
        neighbour_mode: "Free", "Relaxed" or "Strict"
        variability_granularity: Sub-grid side G used for variability
        background_max_iterations: Iteration cap of the background estimator
        background_epsilon: Relative change of the background mean that stops iteration
        legacy_background_fraction: Fraction of squares used by the legacy background estimate
        tau_time_scale: Multiplier converting 1 / decay rate into the reported tau unit
        field_width: Width of the recording field (µm)
        field_height: Height of the recording field (µm)
        recording_duration: Default time span of a recording (s)
        plot_curve_fitting: Save Tau fit plots
    """

    number_of_squares_in_row: int = 20
    min_tracks_for_tau: int = 20
    min_required_r_squared: float = 0.1
    min_required_density_ratio: float = 2.0
    max_allowable_variability: float = 10.0
    neighbour_mode: str = "Free"
    variability_granularity: int = 10
    background_max_iterations: int = 10
    background_epsilon: float = 0.01
    legacy_background_fraction: float = 0.1
    tau_time_scale: float = 1000.0
    field_width: float = IMAGE_WIDTH
    field_height: float = IMAGE_HEIGHT
    recording_duration: float = RECORDING_DURATION
    plot_curve_fitting: bool = False

    def __post_init__(self) -> None:
        """Validate invariants."""
        for name in _INTEGER_FIELDS:
            object.__setattr__(self, name, _as_integer(name, getattr(self, name)))

        if self.number_of_squares_in_row <= 0:
            raise ValueError("number_of_squares_in_row must be positive")
        if self.min_tracks_for_tau < 1:
            raise ValueError("min_tracks_for_tau must be at least 1")
        if self.variability_granularity <= 0:
            raise ValueError("variability_granularity must be positive")
        if self.background_max_iterations < 1:
            raise ValueError("background_max_iterations must be at least 1")
        if self.background_epsilon <= 0:
            raise ValueError("background_epsilon must be positive")
        if not 0 < self.legacy_background_fraction <= 1:
            raise ValueError("legacy_background_fraction must be in (0, 1]")
        if self.tau_time_scale <= 0:
            raise ValueError("tau_time_scale must be positive")
        if self.field_width <= 0 or self.field_height <= 0:
            raise ValueError("field_width and field_height must be positive")
        if self.recording_duration <= 0:
            raise ValueError("recording_duration must be positive")

        from .analysis.selection import get_neighbour_mode
        try:
            get_neighbour_mode(self.neighbour_mode)
        except NotImplementedError as e:
            raise ValueError(str(e)) from e

    @property
    def number_of_squares(self) -> int:
        return self.number_of_squares_in_row ** 2

    @property
    def square_width(self) -> float:
        return self.field_width / self.number_of_squares_in_row

    @property
    def square_height(self) -> float:
        return self.field_height / self.number_of_squares_in_row

    @property
    def square_area(self) -> float:
        return self.square_width * self.square_height

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'GenerateSquaresConfig':
        """
        Build a configuration from a dictionary.

        Keys may be given in snake_case or in the spaced, capitalized form of
        older configuration files ("Min Required R Squared"). Unknown keys
        are ignored with a warning. The legacy ``number_of_squares_in_recording``
        must be a perfect square and must agree with ``number_of_squares_in_row``
        when both are given.

        Parameters
        ----------
        data : dict
            Configuration dictionary

        Returns
        -------
        GenerateSquaresConfig
            Validated configuration

        Raises
        ------
        ValueError
            If a value is invalid, the legacy square count is not a perfect square,
            or it contradicts number_of_squares_in_row
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        side_from_total = None
        for key, value in (data or {}).items():
            name = _normalize_key(key)
            name = _KEY_ALIASES.get(name, name)

            if name == 'number_of_squares_in_recording':
                side_from_total = squares_in_row(_as_integer(name, value))
            elif name in known:
                kwargs[name] = value
            else:
                logger.warning(f"Ignoring unknown configuration key: {key}")

        if side_from_total is not None:
            side = kwargs.setdefault('number_of_squares_in_row', side_from_total)
            if _as_integer('number_of_squares_in_row', side) != side_from_total:
                raise ValueError(
                    f"number_of_squares_in_row = {side} contradicts number_of_squares_in_recording = "
                    f"{side_from_total * side_from_total}")

        return cls(**kwargs)


def squares_in_row(number_of_squares: int) -> int:
    """
    Grid side for a total number of squares.

    Raises
    ------
    ValueError
        If the number is not a positive perfect square
    """
    if number_of_squares <= 0:
        raise ValueError(f"Number of squares must be positive, got {number_of_squares}")
    side = math.isqrt(number_of_squares)
    if side * side != number_of_squares:
        raise ValueError(f"Number of squares must be a perfect square, got {number_of_squares}")
    return side


def _as_integer(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if not number.is_integer():
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return int(number)


def _normalize_key(key: str) -> str:
    return str(key).strip().lower().replace('-', '_').replace(' ', '_')
