# propdetect

A library that detects spinning propellers in streams of event-camera events.

The sensor area is split into square blocks at several scales (block side
`2**k` pixels for every `k` from `k_min` to `k_max`). For each block the
detector follows the arrival rate of events with exponential moving averages
and notes short bursts of high activity. A propeller blade passing over a
block makes these bursts come back at a steady interval. A block counts as
holding a propeller when three things hold at once: the interval between
bursts is steady enough, it lies inside a set range, and the most recent burst
is recent enough. The detector can also estimate the pitch and roll of the
propeller disc from the shape of the area where it sees activity.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `propdetect.config`: `Config` (built with `Config.from_mapping`),
  `load_config`, which reads a YAML file, `get_value` with `ValueKind`, and
  the error `ConfigError`. It also has the helpers `compute_std_dev`,
  `get_forgetting_factor`, `write_vector_to_csv`, `rotate_pixel` and
  `get_camera_angle`.
- `propdetect.types`: `Event`, `BlockStats`, `GlobalStats`,
  `PropellerDetection` and `DetectionResult`.
- `propdetect.tracking`: `StatsUpdater`, the per-block burst tracker
  (`update_block_stats`, `is_propeller_present`) and the pitch and roll
  estimator (`update_global_stats`).
- `propdetect.detector`: `Detector`. It processes batches of `Event`s
  straight away through `add_events`, or it queues them with
  `add_events_async` for worker threads that `start` launches. After each
  batch it hands the pending list of `DetectionResult`s to the callbacks
  registered with `add_callback`. `join` waits until the queue is empty.
  `stop` ends the threads and throws away any batches still queued.
- `propdetect.crc`: CRC-32C (`crc32_buf`, `crc32_file`, `update_crc32`) and
  the masked variant `masked_crc32c` that TFRecord framing uses.

```python
from propdetect.config import load_config
from propdetect.detector import Detector
from propdetect.types import Event

config = load_config("config.yaml")
detector = Detector(config)
detector.add_callback(lambda results: print(len(results), "batches processed"))
detector.start(1)
detector.add_events_async([Event(x=10, y=20, p=1, t=1000), Event(x=11, y=20, p=0, t=1010)])
detector.join()
detector.stop()
```

Events outside the `width` × `height` sensor area are not accepted.

## Configuration

`load_config` and `Config.from_mapping` require every key below. A key that
is missing, or that cannot be converted to its type, raises `ConfigError`,
and the message names the key.

```yaml
mode: textual
is_quiet: false
is_analysis: false            # write per-block statistics to analysis_filepath
is_runtime_analysis: false    # track first/last timestamps for Detector.store_run_time
simulate_real_time: false
analysis_filepath: out/analysis.json
tensorboard_log_file: out/events.out.tfevents.run
recording_filepath: data/recording.raw

width: 640
height: 480
fps: 25.0
acc: 20000
start_us: 0
end_us: 0
scale_down_factor: 1.0
rotation_angle: 0.0           # degrees; the reference for the roll error
temporal_stride: 1            # process every n-th event of a batch
polarity: s                   # "p" positive only, "n" negative only, "s" both, kept apart

k_min: 3
k_max: 6

alpha_interarrival_time: 0.001
alpha_interarrival_time_window_size: 5
min_interarrival_time: 1.0
max_rate: 1.0
T_min: 3
alpha_of_burst_std: 0.1

max_burst_std_per_cent: 10.0
min_E_x_of_std: 500.0
max_E_x_of_std: 20000.0

compute_pitch_roll: false
pitch_roll_estimation_alpha: 0.001
pitch_gt: 0.0
pitch_scaler: 1.0
```

Some keys, such as `mode`, `fps`, `acc`, `start_us`, `end_us`,
`scale_down_factor`, `simulate_real_time` and `tensorboard_log_file`, are
read and checked but not otherwise used by the library. They are stored in
the analysis file together with the other settings.

The true pitch comes from the recording path: if it contains a part named
`camera-angle-<value>`, that number is used. Otherwise it is `0.0`. The pitch
errors kept in `GlobalStats` are measured against it.

## Analysis output

When `is_analysis` is set, `Detector` writes a JSON file to
`analysis_filepath`. The file is a tree of nodes, and each node has
`attributes`, `groups` and `datasets`. The root holds the configuration and
`first_ts_us`/`last_ts_us`. Under `ch0` (and `ch1` when `polarity` is `s`)
come groups per block row and column. Each of these holds the datasets
`burst_ts` and `burst_distances_us` and the attributes
`events_propeller_present_num` and `events_total_num`. `stop` writes the
final contents. `Detector.store_run_time(start_ns, end_ns)` appends the
elapsed time in microseconds to `runtime_us/runtime` in the same file.

## What this package does not do

It has no command-line program. It does not open cameras or read recording
files, and it draws no windows or overlays. It does not write TensorBoard
event files either: `Detector` accepts a `logger` argument but only stores
it. You have to supply the events yourself as `Event` objects.