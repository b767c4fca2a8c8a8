"""
Data records for Paint Squares.

Tracks are read-only records supplied by the trajectory engine. A Recording
owns its tracks in a flat list; squares refer to tracks by their index in
that list, and the recording keeps the reverse mapping (track index to square
number) as a plain list of integers. Nothing refers back to its owner, so the
records pickle cleanly for process-pool workers.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

NAN = float('nan')


class TauStatus(str, Enum):
    """Terminal states of a Tau fit."""

    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    NO_FIT = "NO_FIT"
    RSQUARED_TOO_LOW = "RSQUARED_TOO_LOW"
    SUCCESS = "SUCCESS"


@dataclass(frozen=True)
class TauResult:
    """
    Outcome of a Tau fit.

    Attributes:
        tau: Decay time constant in the configured time unit
        r_squared: Goodness of fit on the duration-frequency data
        status: Terminal state of the fit; only SUCCESS authorizes use of tau
        n_tracks: Number of durations that went into the fit
        params: Fitted (m, t, b) of y = m * exp(-t * x) + b, if a fit was made
    """

    tau: float
    r_squared: float
    status: TauStatus
    n_tracks: int = 0
    params: Optional[tuple] = None

    @property
    def succeeded(self) -> bool:
        return self.status is TauStatus.SUCCESS


@dataclass(frozen=True)
class Track:
    """
    One track as delivered by the trajectory engine.

    Positions are in the recording coordinate system (µm), durations in
    seconds, speeds in µm/s.
    """

    track_id: int
    duration: float
    x: float
    y: float
    displacement: float = NAN
    max_speed: float = NAN
    median_speed: float = NAN
    diffusion_coefficient: float = NAN
    diffusion_coefficient_ext: float = NAN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track_id': self.track_id,
            'duration': self.duration,
            'x': self.x,
            'y': self.y,
            'displacement': self.displacement,
            'max_speed': self.max_speed,
            'median_speed': self.median_speed,
            'diffusion_coefficient': self.diffusion_coefficient,
            'diffusion_coefficient_ext': self.diffusion_coefficient_ext,
        }


@dataclass
class Square:
    """
    One cell of the N x N grid laid over a recording.

    Geometry is fixed at creation. The remaining attributes are filled in by
    the pipeline stages, in order: track assignment, per-square metrics,
    density ratios, selection and labelling. Attributes that a stage could
    not compute stay NaN.
    """

    square_number: int
    row: int
    col: int
    x0: float
    y0: float
    x1: float
    y1: float
    track_indices: List[int] = field(default_factory=list)

    tau: float = NAN
    r_squared: float = NAN
    tau_status: Optional[TauStatus] = None
    variability: float = NAN
    density: float = NAN
    density_ratio: float = NAN
    density_ratio_legacy: float = NAN
    selected: bool = False
    label_number: int = -1

    median_diffusion_coefficient: float = NAN
    median_diffusion_coefficient_ext: float = NAN
    median_displacement: float = NAN
    max_displacement: float = NAN
    total_displacement: float = NAN
    median_max_speed: float = NAN
    max_max_speed: float = NAN
    median_median_speed: float = NAN
    max_median_speed: float = NAN
    max_track_duration: float = NAN
    total_track_duration: float = NAN
    median_track_duration: float = NAN

    @property
    def number_of_tracks(self) -> int:
        return len(self.track_indices)

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> Dict[str, Any]:
        """Square output record, as consumed by persistence and viewers."""
        return {
            'square_number': self.square_number,
            'row_number': self.row,
            'col_number': self.col,
            'label_number': self.label_number,
            'selected': self.selected,
            'x0': self.x0,
            'y0': self.y0,
            'x1': self.x1,
            'y1': self.y1,
            'number_of_tracks': self.number_of_tracks,
            'tau': self.tau,
            'r_squared': self.r_squared,
            'tau_status': self.tau_status.value if self.tau_status else None,
            'variability': self.variability,
            'density': self.density,
            'density_ratio': self.density_ratio,
            'density_ratio_legacy': self.density_ratio_legacy,
            'median_diffusion_coefficient': self.median_diffusion_coefficient,
            'median_diffusion_coefficient_ext': self.median_diffusion_coefficient_ext,
            'median_displacement': self.median_displacement,
            'max_displacement': self.max_displacement,
            'total_displacement': self.total_displacement,
            'median_max_speed': self.median_max_speed,
            'max_max_speed': self.max_max_speed,
            'median_median_speed': self.median_median_speed,
            'max_median_speed': self.max_median_speed,
            'max_track_duration': self.max_track_duration,
            'total_track_duration': self.total_track_duration,
            'median_track_duration': self.median_track_duration,
        }


@dataclass
class Recording:
    """
    Unit of analysis: the tracks of one recording and the squares built on it.

    Parameters
    ----------
    recording_name : str
        Name of the recording
    tracks : list of Track
        All tracks of the recording
    concentration : float
        Probe concentration used to normalize densities
    duration : float, optional
        Recording time span in seconds; the configured default is used when None
    experiment_name : str, optional
        Name of the experiment the recording belongs to
    """

    recording_name: str
    tracks: List[Track]
    concentration: float
    duration: Optional[float] = None
    experiment_name: str = ""

    squares: List[Square] = field(default_factory=list)
    track_square_numbers: List[int] = field(default_factory=list)
    number_of_dropped_tracks: int = 0

    tau: float = NAN
    r_squared: float = NAN
    tau_status: Optional[TauStatus] = None
    density: float = NAN
    background_square_count: int = 0
    background_track_count: int = 0
    background_mean: float = NAN
    background_converged: bool = False
    legacy_background_mean: float = NAN
    number_of_selected_squares: int = 0

    @property
    def number_of_tracks(self) -> int:
        return len(self.tracks) if self.tracks is not None else 0

    def tracks_of_square(self, square: Square) -> List[Track]:
        return [self.tracks[i] for i in square.track_indices]

    def selected_squares(self) -> List[Square]:
        return [sq for sq in self.squares if sq.selected]

    def to_dict(self) -> Dict[str, Any]:
        """Recording output record."""
        return {
            'experiment_name': self.experiment_name,
            'recording_name': self.recording_name,
            'concentration': self.concentration,
            'number_of_tracks': self.number_of_tracks,
            'number_of_dropped_tracks': self.number_of_dropped_tracks,
            'number_of_squares': len(self.squares),
            'number_of_selected_squares': self.number_of_selected_squares,
            'tau': self.tau,
            'r_squared': self.r_squared,
            'tau_status': self.tau_status.value if self.tau_status else None,
            'density': self.density,
            'background_square_count': self.background_square_count,
            'background_track_count': self.background_track_count,
            'background_mean': self.background_mean,
            'background_converged': self.background_converged,
            'legacy_background_mean': self.legacy_background_mean,
        }

    def track_records(self) -> List[Dict[str, Any]]:
        """Tracks with the square and label number they ended up in."""
        records = []
        for i, track in enumerate(self.tracks):
            record = {'recording_name': self.recording_name}
            record.update(track.to_dict())
            square_number = (self.track_square_numbers[i]
                             if i < len(self.track_square_numbers) else -1)
            record['square_number'] = square_number
            record['label_number'] = (self.squares[square_number].label_number
                                      if square_number >= 0 else -1)
            records.append(record)
        return records


def is_finite(value) -> bool:
    """True for real, finite numbers; False for None and NaN/inf."""
    try:
        return math.isfinite(value)
    except TypeError:
        return False
