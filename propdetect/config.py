"""Detector configuration loaded from YAML, plus small numeric helpers."""

from __future__ import annotations

import enum
import math
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

import yaml

from propdetect.types import Event

_CAMERA_ANGLE_MARKER = "camera-angle-"

_TRUE_WORDS = ("y", "yes", "true", "on")
_FALSE_WORDS = ("n", "no", "false", "off")

_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_PREFIX_RE = re.compile(
    r"\s*[+-]?(?:"
    r"\d+\.?\d*(?:[eE][+-]?\d+)?"
    r"|\.\d+(?:[eE][+-]?\d+)?"
    r"|inf(?:inity)?"
    r"|nan"
    r")",
    re.IGNORECASE,
)


class ConfigError(ValueError):
    """A configuration key is missing or holds a value of the wrong kind."""


class ValueKind(enum.Enum):
    """The kind of value a configuration key must hold."""

    BOOL = "bool"
    INT = "int"
    UINT16 = "uint16"
    UINT32 = "uint32"
    INT64 = "int64"
    FLOAT = "float"
    STR = "str"
    CHAR = "char"


_INT_RANGES = {
    ValueKind.INT: (-(2**31), 2**31 - 1),
    ValueKind.UINT16: (0, 2**16 - 1),
    ValueKind.UINT32: (0, 2**32 - 1),
    ValueKind.INT64: (-(2**63), 2**63 - 1),
}


def _word_variants(word: str) -> set[str]:
    return {word, word.upper(), word.capitalize()}


_TRUE_SPELLINGS = set().union(*(_word_variants(w) for w in _TRUE_WORDS))
_FALSE_SPELLINGS = set().union(*(_word_variants(w) for w in _FALSE_WORDS))


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_SPELLINGS:
            return True
        if value in _FALSE_SPELLINGS:
            return False
    raise TypeError(f"cannot convert {value!r} to a boolean")


def _to_int(value: Any, kind: ValueKind) -> int:
    if isinstance(value, bool):
        raise TypeError(f"cannot convert {value!r} to an integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _INT_RE.fullmatch(value):
        number = int(value)
    else:
        raise TypeError(f"cannot convert {value!r} to an integer")
    low, high = _INT_RANGES[kind]
    if not low <= number <= high:
        raise TypeError(f"{number} is outside the range {low}..{high}")
    return number


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError(f"cannot convert {value!r} to a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise TypeError(f"cannot convert {value!r} to a number")


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"cannot convert {value!r} to a string")


def _to_char(value: Any) -> str:
    text = _to_str(value).strip()
    if len(text) != 1:
        raise TypeError(f"cannot convert {value!r} to a single character")
    return text


def get_value(key: str, node: Mapping[str, Any], kind: ValueKind) -> Any:
    """Fetch ``key`` from ``node`` converted to ``kind``.

    Raises ``ConfigError`` when the key is missing or cannot be converted.
    """
    if not isinstance(node, Mapping):
        raise ConfigError("Configuration must be a mapping of keys to values")
    if key not in node:
        raise ConfigError(f"Missing key: {key}")
    value = node[key]
    try:
        if kind is ValueKind.BOOL:
            return _to_bool(value)
        if kind in _INT_RANGES:
            return _to_int(value, kind)
        if kind is ValueKind.FLOAT:
            return _to_float(value)
        if kind is ValueKind.STR:
            return _to_str(value)
        return _to_char(value)
    except TypeError as exc:
        raise ConfigError(f"Error converting key '{key}': {exc}") from exc


def _setting(key: str, kind: ValueKind) -> Any:
    return field(metadata={"key": key, "kind": kind})


@dataclass
class Config:
    """All settings the detector and the command line tool read."""

    is_analysis: bool = _setting("is_analysis", ValueKind.BOOL)
    is_runtime_analysis: bool = _setting("is_runtime_analysis", ValueKind.BOOL)
    is_quiet: bool = _setting("is_quiet", ValueKind.BOOL)
    simulate_real_time: bool = _setting("simulate_real_time", ValueKind.BOOL)
    width: int = _setting("width", ValueKind.UINT16)
    height: int = _setting("height", ValueKind.UINT16)
    mode: str = _setting("mode", ValueKind.STR)
    fps: float = _setting("fps", ValueKind.FLOAT)
    acc: int = _setting("acc", ValueKind.UINT32)
    temporal_stride: int = _setting("temporal_stride", ValueKind.INT)
    max_rate: float = _setting("max_rate", ValueKind.FLOAT)
    analysis_filepath: str = _setting("analysis_filepath", ValueKind.STR)
    tensorboard_log_file: str = _setting("tensorboard_log_file", ValueKind.STR)
    recording_filepath: str = _setting("recording_filepath", ValueKind.STR)
    alpha_of_burst_std: float = _setting("alpha_of_burst_std", ValueKind.FLOAT)
    alpha_interarrival_time: float = _setting("alpha_interarrival_time", ValueKind.FLOAT)
    alpha_interarrival_time_window_size: int = _setting(
        "alpha_interarrival_time_window_size", ValueKind.INT
    )
    min_interarrival_time: float = _setting("min_interarrival_time", ValueKind.FLOAT)
    max_burst_std_per_cent: float = _setting("max_burst_std_per_cent", ValueKind.FLOAT)
    start_us: int = _setting("start_us", ValueKind.INT64)
    end_us: int = _setting("end_us", ValueKind.INT64)
    k_min: int = _setting("k_min", ValueKind.INT)
    k_max: int = _setting("k_max", ValueKind.INT)
    scale_down_factor: float = _setting("scale_down_factor", ValueKind.FLOAT)
    rotation_angle: float = _setting("rotation_angle", ValueKind.FLOAT)
    min_e_x_of_std: float = _setting("min_E_x_of_std", ValueKind.FLOAT)
    max_e_x_of_std: float = _setting("max_E_x_of_std", ValueKind.FLOAT)
    polarity: str = _setting("polarity", ValueKind.CHAR)
    t_min: int = _setting("T_min", ValueKind.INT)
    compute_pitch_roll: bool = _setting("compute_pitch_roll", ValueKind.BOOL)
    pitch_roll_estimation_alpha: float = _setting(
        "pitch_roll_estimation_alpha", ValueKind.FLOAT
    )
    pitch_gt: float = _setting("pitch_gt", ValueKind.FLOAT)
    pitch_scaler: float = _setting("pitch_scaler", ValueKind.FLOAT)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Config":
        """Build a configuration from a parsed YAML mapping; every key is required."""
        values = {
            f.name: get_value(f.metadata["key"], data, f.metadata["kind"])
            for f in fields(cls)
        }
        return cls(**values)


def load_config(path: str | os.PathLike[str]) -> Config:
    """Read and validate a YAML configuration file.

    Raises ``OSError`` if the file cannot be read, ``yaml.YAMLError`` if it
    does not parse and ``ConfigError`` if a setting is missing or invalid.
    """
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    return Config.from_mapping(data)


def compute_std_dev(e_x2: float, e_x: float) -> float:
    """Standard deviation from the first two moments, clamping negative variance to zero."""
    return math.sqrt(max(e_x2 - e_x * e_x, 0.0))


def get_forgetting_factor(k: int, k_max: int, alpha0: float) -> float:
    """Forgetting factor for scale ``k``; every scale uses the base factor."""
    return alpha0


def write_vector_to_csv(values: Iterable[int], filename: str | os.PathLike[str]) -> None:
    """Write ``values`` as one comma separated line without a trailing newline."""
    with open(filename, "w", encoding="utf-8") as handle:
        handle.write(",".join(str(v) for v in values))
    print(f"Vector written to {os.fspath(filename)} successfully.")


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def rotate_pixel(event: Event, width: int, height: int, angle_deg: float) -> Event:
    """Rotate an event's pixel counter-clockwise about the sensor centre.

    The result is rounded to the nearest pixel and clamped to the sensor.
    """
    theta = math.radians(angle_deg)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    cx = width / 2.0
    cy = height / 2.0
    dx = event.x - cx
    dy = event.y - cy
    rx = dx * cos_t - dy * sin_t + cx
    ry = dx * sin_t + dy * cos_t + cy
    ix = max(0, min(width - 1, _round_half_away(rx)))
    iy = max(0, min(height - 1, _round_half_away(ry)))
    return replace(event, x=ix, y=iy)


def get_camera_angle(path: str) -> float:
    """Angle encoded as ``camera-angle-<number>`` in a recording path, or 0.0.

    Raises ``ValueError`` when the marker is present but no number follows it.
    """
    start = path.find(_CAMERA_ANGLE_MARKER)
    if start < 0:
        return 0.0
    start += len(_CAMERA_ANGLE_MARKER)
    slash = path.find("/", start)
    if slash < 0:
        slash = len(path)
    text = path[start:slash]
    match = _FLOAT_PREFIX_RE.match(text)
    if match is None:
        raise ValueError(f"no camera angle in {text!r}")
    return float(match.group(0))