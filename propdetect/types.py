"""Event and statistics records shared by the detector."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

StatsGrid = List[List[List[List["BlockStats"]]]]


@dataclass(frozen=True, slots=True)
class Event:
    """A change-detection event: pixel coordinates, polarity and timestamp in µs."""

    x: int = 0
    y: int = 0
    p: int = 0
    t: int = 0


@dataclass(slots=True)
class GlobalStats:
    """Running ellipse moments and pitch/roll estimates for one scale."""

    pitch: float = 0.0
    roll: float = 0.0
    ema_x: float = 0.0
    ema_y: float = 0.0
    ema_x2: float = 0.0
    ema_y2: float = 0.0
    ema_xy: float = 0.0
    abs_pitch_error_sum: float = 0.0
    abs_pitch_error_num: float = 0.0
    abs_roll_error_sum: float = 0.0
    pitch_sum: float = 0.0


@dataclass(slots=True)
class BlockStats:
    """Exponential moving burst statistics kept for one block at one scale."""

    last_timestamp: float = -1.0
    ewma_interarrival_time: float = 0.0
    ewma_interarrival_time_window: float = 0.0
    e_x_of_std: float = -1.0
    e_x2_of_std: float = 0.0
    local_burst_detected_sum: float = 0.0
    local_burst_detected_num: int = 0
    t_high: int = 0
    in_burst: bool = False
    burst_timestep_t: float = 0.0
    last_timestep_of_burst_t: float = 0.0
    burst_timestep_t_minus_1: float = 0.0
    burst_std_estimated_ratio: float = 0.0
    events_propeller_present_num: int = 0
    events_total_num: int = 0
    burst_ts: List[int] = field(default_factory=list)
    burst_distances_us: List[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PropellerDetection:
    """A block flagged as containing a propeller."""

    scale: int
    block_m: int
    block_n: int


@dataclass(slots=True)
class DetectionResult:
    """A snapshot handed to detection callbacks."""

    stats: Optional[StatsGrid] = None
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    ts: int = 0
    correlation: int = 0
    peak_distance: int = 0
    queue_length: int = 0
    missed_results: int = 0
    polarity_sum: int = 0
    is_peak: bool = False