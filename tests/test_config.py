import math

import pytest

from repguard.config import Config, ConfigError, load_config


def test_defaults_are_valid():
    cfg = Config().validate()
    assert cfg.elbow_angle_down == 90.0
    assert cfg.elbow_angle_up == 160.0
    assert cfg.min_confidence == 0.3
    assert cfg.wrist_symmetry_cm == 15.0
    assert cfg.assumed_shoulder_width_cm == 40.0
    assert cfg.hold_time_ms == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"min_confidence": 1.5},
        {"min_confidence": -0.1},
        {"elbow_angle_down": 0.0},
        {"elbow_angle_down": 160.0},
        {"elbow_angle_up": 181.0},
        {"plank_shoulder_width_multiplier": 0.0},
        {"standing_shoulder_width_multiplier": -1.0},
        {"assumed_shoulder_width_cm": 0.0},
        {"wrist_symmetry_cm": -1.0},
        {"hold_time_ms": -5.0},
        {"feedback_debounce_ms": -1.0},
        {"hold_time_ms": math.nan},
        {"elbow_angle_up": math.inf},
    ],
)
def test_out_of_range_values_rejected(overrides):
    with pytest.raises(ConfigError):
        Config(**overrides).validate()


def test_non_numeric_rejected():
    with pytest.raises(ConfigError):
        Config(hold_time_ms="fast").validate()
    with pytest.raises(ConfigError):
        Config(hold_time_ms=True).validate()


def test_config_error_is_a_value_error():
    assert issubclass(ConfigError, ValueError)


def test_from_mapping_overlays_defaults():
    cfg = Config.from_mapping({"hold_time_ms": "250", "elbow_angle_down": 85})
    assert cfg.hold_time_ms == 250.0
    assert cfg.elbow_angle_down == 85.0
    assert cfg.elbow_angle_up == 160.0


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ConfigError, match="unknown config keys: hold_ms"):
        Config.from_mapping({"hold_ms": 100})


def test_from_mapping_rejects_unparseable_values():
    with pytest.raises(ConfigError):
        Config.from_mapping({"hold_time_ms": "soon"})


def test_config_is_frozen():
    cfg = Config()
    with pytest.raises(Exception):
        cfg.hold_time_ms = 10.0


def test_load_config_reads_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REPGUARD_HOLD_TIME_MS", "400")
    monkeypatch.setenv("REPGUARD_WRIST_SYMMETRY_CM", "")
    cfg = load_config()
    assert cfg.hold_time_ms == 400.0
    assert cfg.wrist_symmetry_cm == 15.0


def test_load_config_overrides_win(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REPGUARD_HOLD_TIME_MS", "400")
    cfg = load_config(hold_time_ms=100, elbow_angle_up=None)
    assert cfg.hold_time_ms == 100.0
    assert cfg.elbow_angle_up == 160.0


def test_load_config_reads_env_file(monkeypatch, tmp_path):
    # recorded so teardown restores whatever the test process had
    monkeypatch.setenv("REPGUARD_ELBOW_ANGLE_DOWN", "90")
    monkeypatch.delenv("REPGUARD_ELBOW_ANGLE_DOWN")
    env = tmp_path / "repguard.env"
    env.write_text("REPGUARD_ELBOW_ANGLE_DOWN=80\n")
    cfg = load_config(str(env))
    assert cfg.elbow_angle_down == 80.0


def test_load_config_invalid_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REPGUARD_ELBOW_ANGLE_UP", "80")
    with pytest.raises(ConfigError):
        load_config()
