"""Multi-scale propeller detector fed by a queue of event batches."""

from __future__ import annotations

import json
import math
import os
import threading
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields
from typing import Any, Deque, Dict, List, Optional

from propdetect.config import Config
from propdetect.tracking import StatsUpdater
from propdetect.types import BlockStats, DetectionResult, Event, GlobalStats, StatsGrid

MAX_CHUNK_SIZE = 50000

ResultCallback = Callable[[List[DetectionResult]], None]

# Configuration keys stored as attributes at the root of an analysis file.
_CONFIG_ATTRIBUTE_KEYS = (
    "is_analysis",
    "is_quiet",
    "compute_pitch_roll",
    "width",
    "height",
    "temporal_stride",
    "k_min",
    "k_max",
    "T_min",
    "alpha_interarrival_time_window_size",
    "max_rate",
    "start_us",
    "end_us",
    "fps",
    "alpha_of_burst_std",
    "alpha_interarrival_time",
    "min_interarrival_time",
    "max_burst_std_per_cent",
    "scale_down_factor",
    "rotation_angle",
    "pitch_roll_estimation_alpha",
    "min_E_x_of_std",
    "max_E_x_of_std",
    "mode",
    "analysis_filepath",
    "tensorboard_log_file",
    "recording_filepath",
    "acc",
    "polarity",
)


@dataclass
class _Node:
    """A group in the analysis file: attributes, child groups and 1-D datasets."""

    attributes: Dict[str, Any] = field(default_factory=dict)
    groups: Dict[str, "_Node"] = field(default_factory=dict)
    datasets: Dict[str, List[Any]] = field(default_factory=dict)

    def group(self, name: str) -> "_Node":
        return self.groups.setdefault(name, _Node())

    def append(self, name: str, values: Sequence[Any]) -> None:
        self.datasets.setdefault(name, []).extend(values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attributes": dict(self.attributes),
            "groups": {name: node.to_dict() for name, node in self.groups.items()},
            "datasets": {name: list(values) for name, values in self.datasets.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "_Node":
        return cls(
            attributes=dict(data.get("attributes", {})),
            groups={name: cls.from_dict(node) for name, node in data.get("groups", {}).items()},
            datasets={name: list(values) for name, values in data.get("datasets", {}).items()},
        )


def _load_node(path: str) -> _Node:
    with open(path, encoding="utf-8") as handle:
        return _Node.from_dict(json.load(handle))


def _save_node(node: _Node, path: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(node.to_dict(), handle)


def _config_attributes(config: Config) -> Dict[str, Any]:
    by_key = {f.metadata["key"]: getattr(config, f.name) for f in fields(Config)}
    return {key: by_key[key] for key in _CONFIG_ATTRIBUTE_KEYS}


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else math.nan


class Detector:
    """Tracks burst periodicity in square blocks at several scales.

    Event batches are queued with :meth:`add_events_async` and processed by
    worker threads started with :meth:`start`; after each batch, callbacks
    registered with :meth:`add_callback` receive the pending detection results.
    With ``is_analysis`` set, per-block statistics are written as JSON to
    ``analysis_filepath`` when the detector stops.
    """

    def __init__(self, config: Config, logger: Any = None) -> None:
        if config.temporal_stride < 1:
            raise ValueError("temporal_stride must be at least 1")
        if config.k_min < 0 or config.k_max < config.k_min:
            raise ValueError("scales must satisfy 0 <= k_min <= k_max")

        self.config = config
        self.logger = logger
        self._updater = StatsUpdater(config)
        self.max_burst_std_per_cent = config.max_burst_std_per_cent
        self.pitch_gt = self._updater.pitch_gt
        self.k_min = config.k_min
        self.k_max = config.k_max
        self.polarity = config.polarity
        self.num_polarities = 2 if config.polarity == "s" else 1
        self.timestamps: List[int] = []
        self.first_ts_us = -1
        self.last_ts_us = -1

        self.stats: StatsGrid = []
        for p in range(self.num_polarities):
            levels = []
            for k in range(self.k_min, self.k_max + 1):
                blocks_x = math.ceil(config.width / (1 << k))
                blocks_y = math.ceil(config.height / (1 << k))
                levels.append([[BlockStats() for _ in range(blocks_x)] for _ in range(blocks_y)])
                print(f"p: {p} k: {k} num_blocks_x: {blocks_x} num_blocks_y: {blocks_y}")
            self.stats.append(levels)
        self.global_stats: List[List[GlobalStats]] = [
            [GlobalStats() for _ in range(self.k_min, self.k_max + 1)]
            for _ in range(self.num_polarities)
        ]

        self._jobs: Deque[List[Event]] = deque()
        self._jobs_cv = threading.Condition()
        self._in_progress = 0
        self._results: List[DetectionResult] = []
        self._results_cv = threading.Condition()
        self._callbacks: List[ResultCallback] = []
        self._workers: List[threading.Thread] = []
        self._callback_thread: Optional[threading.Thread] = None
        self._running = False
        self._stopping = False

        self._analysis: Optional[_Node] = None
        self._channels: List[_Node] = []
        if config.is_analysis:
            self._initialize_analysis()

    # -- analysis output --

    def _initialize_analysis(self) -> None:
        directory = os.path.dirname(self.config.analysis_filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        root = _Node(attributes=_config_attributes(self.config))
        self._channels = [root.group(f"ch{n}") for n in range(self.num_polarities)]
        self._analysis = root
        _save_node(root, self.config.analysis_filepath)

    def _flush_block(self, p: int, x: int, y: int, block: BlockStats) -> None:
        node = self._channels[p].group(str(y)).group(str(x))
        node.append("burst_ts", block.burst_ts)
        node.append("burst_distances_us", block.burst_distances_us)
        block.burst_ts.clear()
        block.burst_distances_us.clear()

    def _finalize_analysis(self) -> None:
        root = self._analysis
        root.attributes["first_ts_us"] = self.first_ts_us
        root.attributes["last_ts_us"] = self.last_ts_us
        for p, channel in enumerate(self._channels):
            origin = channel.group("0").group("0")
            for level in reversed(range(len(self.stats[p]))):
                gstats = self.global_stats[p][level]
                count = gstats.abs_pitch_error_num
                origin.attributes["avg_pitch"] = _ratio(gstats.pitch_sum, count)
                origin.attributes["abs_pitch_error_avg"] = _ratio(gstats.abs_pitch_error_sum, count)
                origin.attributes["abs_roll_error_avg"] = _ratio(gstats.abs_roll_error_sum, count)
                for y, row in enumerate(self.stats[p][level]):
                    for x, block in enumerate(row):
                        node = channel.group(str(y)).group(str(x))
                        node.attributes["events_propeller_present_num"] = (
                            block.events_propeller_present_num
                        )
                        node.attributes["events_total_num"] = block.events_total_num
                        self._flush_block(p, x, y, block)
        _save_node(root, self.config.analysis_filepath)

    # -- processing --

    def add_callback(self, callback: ResultCallback) -> None:
        """Register a function called with the list of pending detection results."""
        self._callbacks.append(callback)

    def is_propeller_present(self, stats: BlockStats, timestamp: float) -> bool:
        """Whether ``stats`` shows a regular, recent burst period."""
        return self._updater.is_propeller_present(stats, timestamp)

    def add_events(self, events: Sequence[Event]) -> None:
        """Process one batch of events synchronously and queue a detection result."""
        if not events:
            return
        cfg = self.config
        for ev in events[:: cfg.temporal_stride]:
            if self.polarity == "p" and ev.p != 1:
                continue
            if self.polarity == "n" and ev.p != 0:
                continue
            p = ev.p if self.polarity == "s" else 0
            t = float(ev.t)

            for level, k in enumerate(range(self.k_min, self.k_max + 1)):
                m = ev.x >> k
                n = ev.y >> k
                block = self.stats[p][level][n][m]
                self._updater.update_block_stats(block, t)

                if cfg.compute_pitch_roll and self.is_propeller_present(
                    self.stats[0][level][n][m], t
                ):
                    self._updater.update_global_stats(self.global_stats[p][level], ev.x, ev.y)

                if cfg.is_analysis:
                    if any(
                        self.is_propeller_present(self.stats[q][level][n][m], t)
                        for q in range(self.num_polarities)
                    ):
                        block.events_propeller_present_num += 1
                    block.events_total_num += 1
                    if len(block.burst_ts) == MAX_CHUNK_SIZE:
                        self._flush_block(p, m, n, block)

                if cfg.is_analysis or cfg.is_runtime_analysis:
                    if self.first_ts_us < 0:
                        self.first_ts_us = ev.t
                    if self.last_ts_us < ev.t:
                        self.last_ts_us = ev.t

        with self._results_cv:
            self._results.append(DetectionResult(stats=self.stats))
            self._results_cv.notify()

    def add_events_async(self, events: Sequence[Event]) -> None:
        """Queue a copy of ``events`` for the worker threads."""
        batch = list(events)
        with self._jobs_cv:
            self._jobs.append(batch)
            self._jobs_cv.notify()

    def jobs_count(self) -> int:
        """Number of queued batches not yet taken by a worker."""
        return len(self._jobs)

    def _process_jobs(self) -> None:
        while True:
            with self._jobs_cv:
                self._jobs_cv.wait_for(lambda: self._jobs or self._stopping)
                if self._stopping:
                    return
                batch = self._jobs.popleft()
                self._in_progress += 1
            try:
                self.add_events(batch)
            finally:
                with self._jobs_cv:
                    self._in_progress -= 1
                    self._jobs_cv.notify_all()

    def _dispatch_results(self) -> None:
        while True:
            with self._results_cv:
                self._results_cv.wait_for(lambda: self._results or self._stopping)
                for callback in list(self._callbacks):
                    callback(self._results)
                self._results.clear()
            if self._stopping:
                break

    def start(self, num_threads: int = 1) -> None:
        """Start ``num_threads`` workers and the callback thread; no-op if running."""
        if self._running:
            return
        self._running = True
        for _ in range(num_threads):
            worker = threading.Thread(target=self._process_jobs, daemon=True)
            worker.start()
            self._workers.append(worker)
        self._callback_thread = threading.Thread(target=self._dispatch_results, daemon=True)
        self._callback_thread.start()

    def join(self) -> None:
        """Wait until every queued batch has been processed by a running worker."""
        with self._jobs_cv:
            self._jobs_cv.wait_for(
                lambda: (not self._jobs and self._in_progress == 0)
                or not self._running
                or self._stopping
            )

    def stop(self) -> None:
        """Stop all threads, discarding unprocessed batches, and write analysis output."""
        with self._jobs_cv:
            self._stopping = True
            self._jobs_cv.notify_all()
        for worker in self._workers:
            worker.join()
        with self._results_cv:
            self._results_cv.notify_all()
        if self._callback_thread is not None:
            self._callback_thread.join()
        if self._analysis is not None:
            self._finalize_analysis()

    def store_run_time(self, start_time_ns: int, end_time_ns: int) -> None:
        """Append the elapsed wall time in µs to ``runtime_us/runtime`` of the analysis file."""
        elapsed = end_time_ns - start_time_ns
        runtime_us = abs(elapsed) // 1000 * (1 if elapsed >= 0 else -1)
        path = self.config.analysis_filepath
        if self._analysis is not None:
            root = self._analysis
        elif os.path.exists(path):
            root = _load_node(path)
        else:
            root = _Node(attributes=_config_attributes(self.config))
            root.attributes["first_ts_us"] = self.first_ts_us
            root.attributes["last_ts_us"] = self.last_ts_us
        root.group("runtime_us").append("runtime", [runtime_us])
        _save_node(root, path)