import math

import pytest
import yaml

from propdetect.config import (
    Config,
    ConfigError,
    ValueKind,
    compute_std_dev,
    get_camera_angle,
    get_forgetting_factor,
    get_value,
    load_config,
    rotate_pixel,
    write_vector_to_csv,
)
from propdetect.types import Event


def _sample() -> dict:
    return {
        "is_analysis": False,
        "is_runtime_analysis": True,
        "is_quiet": True,
        "simulate_real_time": False,
        "width": 1280,
        "height": 720,
        "mode": "textual",
        "fps": 25.0,
        "acc": 10000,
        "temporal_stride": 1,
        "max_rate": 10,
        "analysis_filepath": "out/analysis.h5",
        "tensorboard_log_file": "logs/run.tfevents.x",
        "recording_filepath": "data/camera-angle-30/rec.raw",
        "alpha_of_burst_std": 0.1,
        "alpha_interarrival_time": 0.01,
        "alpha_interarrival_time_window_size": 7,
        "min_interarrival_time": 0.5,
        "max_burst_std_per_cent": 5.0,
        "start_us": 0,
        "end_us": 5000000000,
        "k_min": 3,
        "k_max": 6,
        "scale_down_factor": 1.0,
        "rotation_angle": 0.0,
        "min_E_x_of_std": 100.0,
        "max_E_x_of_std": 5000.0,
        "polarity": "s",
        "T_min": 2,
        "compute_pitch_roll": True,
        "pitch_roll_estimation_alpha": 0.001,
        "pitch_gt": 30.0,
        "pitch_scaler": 1.0,
    }


def test_from_mapping_reads_every_key():
    config = Config.from_mapping(_sample())
    assert config.width == 1280
    assert config.height == 720
    assert config.mode == "textual"
    assert config.polarity == "s"
    assert config.t_min == 2
    assert config.min_e_x_of_std == 100.0
    assert config.end_us == 5000000000
    assert config.is_runtime_analysis is True


def test_int_value_accepted_for_float_setting():
    config = Config.from_mapping(_sample())
    assert config.max_rate == 10.0
    assert isinstance(config.max_rate, float)


def test_config_is_mutable():
    config = Config.from_mapping(_sample())
    config.start_us = 1234
    assert config.start_us == 1234


@pytest.mark.parametrize("key", ["T_min", "min_E_x_of_std", "pitch_scaler", "mode"])
def test_missing_key_raises(key):
    data = _sample()
    del data[key]
    with pytest.raises(ConfigError, match=f"Missing key: {key}"):
        Config.from_mapping(data)


def test_negative_width_rejected():
    data = _sample()
    data["width"] = -1
    with pytest.raises(ConfigError):
        Config.from_mapping(data)


def test_width_too_large_rejected():
    data = _sample()
    data["width"] = 70000
    with pytest.raises(ConfigError):
        Config.from_mapping(data)


def test_float_for_int_rejected():
    data = _sample()
    data["k_min"] = 2.5
    with pytest.raises(ConfigError):
        Config.from_mapping(data)


def test_polarity_must_be_one_character():
    data = _sample()
    data["polarity"] = "sp"
    with pytest.raises(ConfigError):
        Config.from_mapping(data)


def test_get_value_bool_words():
    assert get_value("a", {"a": "yes"}, ValueKind.BOOL) is True
    assert get_value("a", {"a": "OFF"}, ValueKind.BOOL) is False
    with pytest.raises(ConfigError):
        get_value("a", {"a": "maybe"}, ValueKind.BOOL)


def test_get_value_int_from_string():
    assert get_value("n", {"n": "42"}, ValueKind.INT) == 42
    with pytest.raises(ConfigError):
        get_value("n", {"n": True}, ValueKind.INT)


def test_get_value_non_mapping():
    with pytest.raises(ConfigError):
        get_value("n", ["n"], ValueKind.INT)


def test_load_config_round_trip(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(_sample()), encoding="utf-8")
    assert load_config(path) == Config.from_mapping(_sample())


def test_load_config_missing_file(tmp_path):
    with pytest.raises(OSError):
        load_config(tmp_path / "absent.yaml")


def test_load_config_bad_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("width: [1, 2\n", encoding="utf-8")
    with pytest.raises(yaml.YAMLError):
        load_config(path)


def test_compute_std_dev_matches_variance():
    for e_x, e_x2 in [(2.0, 13.0), (0.5, 1.25), (10.0, 200.0)]:
        std = compute_std_dev(e_x2, e_x)
        assert std * std == pytest.approx(e_x2 - e_x * e_x)


def test_compute_std_dev_clamps_negative_variance():
    assert compute_std_dev(1.0, 2.0) == 0.0


def test_forgetting_factor_is_base_value():
    assert get_forgetting_factor(0, 6, 0.25) == 0.25
    assert get_forgetting_factor(6, 6, 0.25) == 0.25


def test_write_vector_to_csv(tmp_path):
    path = tmp_path / "v.csv"
    write_vector_to_csv([1, 2, 3], path)
    assert path.read_text(encoding="utf-8") == "1,2,3"


def test_write_empty_vector(tmp_path):
    path = tmp_path / "v.csv"
    write_vector_to_csv([], path)
    assert path.read_text(encoding="utf-8") == ""


def test_write_vector_bad_path(tmp_path):
    with pytest.raises(OSError):
        write_vector_to_csv([1], tmp_path / "missing" / "v.csv")


def test_rotate_zero_is_identity():
    event = Event(x=7, y=3, p=1, t=99)
    assert rotate_pixel(event, 20, 10, 0.0) == event


def test_rotate_four_quarter_turns_returns_origin():
    event = Event(x=4, y=6, p=0, t=5)
    rotated = event
    for _ in range(4):
        rotated = rotate_pixel(rotated, 20, 20, 90.0)
    assert rotated == event


def test_rotate_keeps_polarity_and_time_and_stays_on_sensor():
    for x in range(0, 16, 3):
        for y in range(0, 8, 3):
            rotated = rotate_pixel(Event(x=x, y=y, p=1, t=42), 16, 8, 45.0)
            assert 0 <= rotated.x < 16
            assert 0 <= rotated.y < 8
            assert (rotated.p, rotated.t) == (1, 42)


def test_camera_angle_from_path():
    assert get_camera_angle("data/camera-angle-30/rec.raw") == 30.0
    assert get_camera_angle("camera-angle-12.5") == 12.5


def test_camera_angle_numeric_prefix():
    assert get_camera_angle("x/camera-angle-45deg/y") == 45.0


def test_camera_angle_missing_marker():
    assert get_camera_angle("data/rec.raw") == 0.0


def test_camera_angle_not_a_number():
    with pytest.raises(ValueError):
        get_camera_angle("data/camera-angle-abc/rec.raw")


def test_camera_angle_negative():
    assert math.isclose(get_camera_angle("camera-angle--15/r"), -15.0)