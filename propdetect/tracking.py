"""Per-block burst tracking and global pitch/roll estimation."""

from __future__ import annotations

import math

from propdetect.config import Config, get_camera_angle
from propdetect.types import BlockStats, GlobalStats

_PI = 3.141592


def _reciprocal(value: float) -> float:
    """``1 / value`` with IEEE semantics for a zero denominator."""
    if value == 0.0:
        return math.copysign(math.inf, value)
    return 1.0 / value


def _sqrt(value: float) -> float:
    """Square root that yields NaN for negative input instead of raising."""
    if value >= 0.0:
        return math.sqrt(value)
    return math.nan


class StatsUpdater:
    """Updates block burst statistics and global ellipse moments from events.

    The ground-truth pitch is taken from the ``camera-angle-<n>`` marker in
    the recording path (0.0 when absent).
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.alpha_of_burst_std = config.alpha_of_burst_std
        self.alpha_interarrival_time = config.alpha_interarrival_time
        self.alpha_interarrival_time_window = 2.0 / (
            config.alpha_interarrival_time_window_size + 1
        )
        self.min_interarrival_time = config.min_interarrival_time
        self.max_rate = config.max_rate
        self.t_min = config.t_min
        self.max_burst_std_per_cent = config.max_burst_std_per_cent
        self.pitch_gt = get_camera_angle(config.recording_filepath)

    def is_propeller_present(self, stats: BlockStats, timestamp: float) -> bool:
        """Whether the block shows a regular, recent burst period within limits."""
        cfg = self.config
        return (
            100 * stats.burst_std_estimated_ratio < cfg.max_burst_std_per_cent
            and stats.e_x_of_std < cfg.max_e_x_of_std
            and cfg.min_e_x_of_std < stats.e_x_of_std
            and stats.burst_timestep_t
            + stats.e_x_of_std * (1.0 + cfg.max_burst_std_per_cent / 100.0)
            > timestamp
        )

    def update_block_stats(self, stats: BlockStats, timestamp: float) -> None:
        """Feed one event timestamp into a block's burst detector."""
        if stats.last_timestamp < 0:
            stats.last_timestamp = timestamp
            return

        interarrival = timestamp - stats.last_timestamp
        stats.last_timestamp = timestamp

        alpha = self.alpha_interarrival_time
        stats.ewma_interarrival_time = (
            alpha * interarrival + (1 - alpha) * stats.ewma_interarrival_time
        )
        lambda_threshold = _reciprocal(stats.ewma_interarrival_time)

        alpha_w = self.alpha_interarrival_time_window
        stats.ewma_interarrival_time_window = (
            alpha_w * interarrival + (1 - alpha_w) * stats.ewma_interarrival_time_window
        )
        lambda_est = _reciprocal(
            max(stats.ewma_interarrival_time_window, self.min_interarrival_time)
        )
        lambda_est = min(lambda_est, self.max_rate)

        if lambda_est > lambda_threshold:
            stats.t_high += 1
            if stats.t_high >= self.t_min and not stats.in_burst:
                stats.in_burst = True
            if stats.in_burst:
                stats.local_burst_detected_sum += timestamp
                stats.local_burst_detected_num += 1
                stats.last_timestep_of_burst_t = timestamp
            return

        stats.t_high = 0
        stats.in_burst = False
        if stats.local_burst_detected_num <= 0:
            return

        burst_mean = stats.local_burst_detected_sum / stats.local_burst_detected_num
        stats.local_burst_detected_sum = 0.0
        stats.local_burst_detected_num = 0

        stats.burst_timestep_t_minus_1 = stats.burst_timestep_t
        stats.burst_timestep_t = burst_mean

        if stats.burst_timestep_t_minus_1 > 0.0:
            distance = stats.burst_timestep_t - stats.burst_timestep_t_minus_1
            if stats.e_x_of_std < 0:
                stats.e_x_of_std = distance
                stats.e_x2_of_std = distance * distance
            else:
                beta = self.alpha_of_burst_std
                stats.e_x_of_std = (1.0 - beta) * stats.e_x_of_std + beta * distance
                stats.e_x2_of_std = (
                    (1.0 - beta) * stats.e_x2_of_std + beta * distance * distance
                )
                variance = stats.e_x2_of_std - stats.e_x_of_std * stats.e_x_of_std
                stats.burst_std_estimated_ratio = _sqrt(variance) / stats.e_x_of_std

        if self.config.is_analysis:
            if self.is_propeller_present(stats, timestamp):
                stats.burst_ts.append(int(burst_mean))
                stats.burst_distances_us.append(
                    int(stats.burst_timestep_t - stats.burst_timestep_t_minus_1)
                )
            else:
                stats.burst_timestep_t_minus_1 = -1.0

    def update_global_stats(self, stats: GlobalStats, x: int, y: int) -> None:
        """Fold one event position into the ellipse moments and re-estimate pitch and roll."""
        alpha = self.config.pitch_roll_estimation_alpha
        keep = 1.0 - alpha
        stats.ema_x = alpha * x + keep * stats.ema_x
        stats.ema_y = alpha * y + keep * stats.ema_y
        stats.ema_x2 = alpha * (x * x) + keep * stats.ema_x2
        stats.ema_y2 = alpha * (y * y) + keep * stats.ema_y2
        stats.ema_xy = alpha * (x * y) + keep * stats.ema_xy

        mean_x = stats.ema_x
        mean_y = stats.ema_y
        mxx = stats.ema_x2 - mean_x * mean_x
        myy = stats.ema_y2 - mean_y * mean_y
        mxy = stats.ema_xy - mean_x * mean_y

        half_trace = 0.5 * (mxx + myy)
        half_diff = 0.5 * _sqrt((mxx - myy) * (mxx - myy) + 4.0 * mxy * mxy)
        lambda1 = half_trace + half_diff
        lambda2 = half_trace - half_diff

        if lambda1 <= 1e-12 or lambda2 <= 1e-12:
            stats.pitch = 1.0
            stats.roll = 0.0
        else:
            stats.pitch = math.sqrt(lambda2 / lambda1)
            stats.roll = abs(0.5 * math.atan2(2.0 * mxy, mxx - myy))

        stats.pitch_sum += stats.pitch
        stats.abs_pitch_error_sum += abs(stats.pitch * self.config.pitch_scaler - self.pitch_gt)
        stats.abs_roll_error_sum += abs(stats.roll * 180.0 / _PI - self.config.rotation_angle)
        stats.abs_pitch_error_num += 1