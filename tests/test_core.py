"""Core functionality tests for Void Focus."""

import random

import numpy as np
import pytest
import yaml

from void_focus.core import (
    AppConfig,
    FadeOut,
    LevelRingBuffer,
    SmoothingFilter,
    calculate_dbfs,
    detect_driver_type,
    draw_level_bars,
    normalize_level,
)
from void_focus.core.config import NUM_BARS, SILENCE_DB


def test_calculate_dbfs_silence():
    """Silent audio sits at the floor."""
    audio_data = np.zeros(800, dtype=np.int16).tobytes()
    assert calculate_dbfs(audio_data) == SILENCE_DB


def test_calculate_dbfs_full_scale():
    """A full-scale square wave is close to 0 dBFS."""
    audio_array = np.array([32767, -32768] * 400, dtype=np.int16)
    assert calculate_dbfs(audio_array.tobytes()) == pytest.approx(0.0, abs=0.01)


def test_calculate_dbfs_empty_buffer():
    assert calculate_dbfs(b"") == SILENCE_DB


def test_normalize_level_clamps_outside_window():
    """Readings outside the dB window saturate to exactly 0 or 1."""
    for db in (-200.0, -60.0001, -61.0, SILENCE_DB):
        assert normalize_level(db, -60.0, 0.0) == 0.0
    for db in (0.0001, 3.0, 120.0):
        assert normalize_level(db, -60.0, 0.0) == 1.0


def test_normalize_level_linear_inside_window():
    assert normalize_level(-30.0, -60.0, 0.0) == pytest.approx(0.5)
    assert normalize_level(-45.0, -60.0, 0.0) == pytest.approx(0.25)


def test_normalize_level_is_monotonic():
    readings = [-60.0 + i * 0.5 for i in range(121)]
    for boost in (1.0, 0.5):
        levels = [normalize_level(db, -60.0, 0.0, boost=boost) for db in readings]
        assert levels == sorted(levels)
        assert all(0.0 <= level <= 1.0 for level in levels)


def test_normalize_level_boost_lifts_quiet_sounds():
    linear = normalize_level(-50.0, -60.0, 0.0)
    boosted = normalize_level(-50.0, -60.0, 0.0, boost=0.5)
    assert boosted > linear
    assert boosted == pytest.approx(linear ** 0.5)


def test_normalize_level_gain_reclamps():
    assert normalize_level(-10.0, -60.0, 0.0, gain=2.0) == 1.0
    assert normalize_level(-45.0, -60.0, 0.0, gain=2.0) == pytest.approx(0.5)


def test_normalize_level_nan_is_silence():
    assert normalize_level(float("nan")) == 0.0


def test_normalize_level_rejects_bad_tunables():
    with pytest.raises(ValueError):
        normalize_level(-10.0, min_db=0.0, max_db=-60.0)
    with pytest.raises(ValueError):
        normalize_level(-10.0, boost=0.0)


def test_smoothing_filter_converges():
    """Repeated constant input converges from any starting state."""
    for start in (0.0, 1.0, 0.3):
        smoother = SmoothingFilter(alpha=0.3, jitter=0.0)
        smoother.update(start)
        for _ in range(200):
            value = smoother.update(0.7)
        assert abs(value - 0.7) < 1e-3
        assert abs(smoother.smoothed - 0.7) < 1e-3


def test_smoothing_filter_update_rule():
    smoother = SmoothingFilter(alpha=0.5, jitter=0.0)
    assert smoother.update(1.0) == pytest.approx(0.5)
    assert smoother.update(1.0) == pytest.approx(0.75)
    smoother.reset()
    assert smoother.smoothed == 0.0


def test_smoothing_filter_jitter_is_bounded():
    smoother = SmoothingFilter(alpha=1.0, jitter=0.03, rng=random.Random(7))
    values = [smoother.update(0.5) for _ in range(500)]
    assert all(0.47 - 1e-9 <= v <= 0.53 + 1e-9 for v in values)
    assert len(set(values)) > 1
    # Jitter never leaks into the smoothed state
    assert smoother.smoothed == pytest.approx(0.5)


def test_smoothing_filter_jitter_clamped_at_silence():
    smoother = SmoothingFilter(alpha=1.0, jitter=0.03, rng=random.Random(1))
    assert all(0.0 <= smoother.update(0.0) <= 0.03 for _ in range(200))


def test_smoothing_filter_quantize():
    smoother = SmoothingFilter(alpha=1.0, jitter=0.0, quantize=8)
    assert smoother.update(0.3) == pytest.approx(0.25)
    assert smoother.update(0.44) == pytest.approx(0.5)


def test_smoothing_filter_rejects_bad_alpha():
    with pytest.raises(ValueError):
        SmoothingFilter(alpha=0.0)
    with pytest.raises(ValueError):
        SmoothingFilter(alpha=1.5)
    with pytest.raises(ValueError):
        SmoothingFilter(jitter=-0.1)


@pytest.mark.parametrize("capacity", [1, 5, 32])
@pytest.mark.parametrize("pushes", [0, 3, 5, 32, 100])
def test_ring_buffer_snapshot_length(capacity, pushes):
    """snapshot() always has exactly N elements."""
    buffer = LevelRingBuffer(capacity)
    for i in range(pushes):
        buffer.push(i / 100)
    assert len(buffer.snapshot()) == capacity


def test_ring_buffer_evicts_oldest():
    buffer = LevelRingBuffer(3)
    for level in (0.1, 0.2, 0.3, 0.4):
        buffer.push(level)
    assert buffer.snapshot() == [0.2, 0.3, 0.4]


def test_ring_buffer_starts_silent():
    assert LevelRingBuffer(4).snapshot() == [0.0, 0.0, 0.0, 0.0]


def test_ring_buffer_snapshot_other_lengths():
    """Shorter requests take the newest levels, longer ones are zero padded."""
    buffer = LevelRingBuffer(4)
    for level in (0.1, 0.2, 0.3, 0.4):
        buffer.push(level)
    assert buffer.snapshot(2) == [0.3, 0.4]
    assert buffer.snapshot(6) == [0.0, 0.0, 0.1, 0.2, 0.3, 0.4]


def test_ring_buffer_scale_and_clear():
    buffer = LevelRingBuffer(2)
    buffer.push(0.5)
    buffer.push(1.0)
    buffer.scale(0.5)
    assert buffer.snapshot() == [0.25, 0.5]
    assert buffer.peak() == 0.5
    buffer.clear()
    assert buffer.snapshot() == [0.0, 0.0]


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        LevelRingBuffer(0)


def test_fade_out_decays_then_zeroes():
    buffer = LevelRingBuffer(3)
    for level in (0.2, 0.5, 1.0):
        buffer.push(level)

    fade = FadeOut(decay=0.9, epsilon=0.01)
    assert fade.step(buffer) is True
    assert buffer.snapshot() == pytest.approx([0.18, 0.45, 0.9])

    steps = 1
    while fade.step(buffer):
        steps += 1
        # Still fading: never snapped to zero early
        assert buffer.peak() >= 0.01
    assert buffer.snapshot() == [0.0, 0.0, 0.0]
    assert steps > 10


@pytest.mark.parametrize("epsilon", [0.0, -0.01])
def test_fade_out_rejects_non_positive_epsilon(epsilon):
    with pytest.raises(ValueError):
        FadeOut(decay=0.9, epsilon=epsilon)


def test_draw_level_bars():
    assert draw_level_bars([0.0, 1.0]) == " █"
    assert len(draw_level_bars([0.5] * NUM_BARS)) == NUM_BARS


def test_detect_driver_type():
    """Test audio driver type detection."""
    assert detect_driver_type("PulseAudio") == "pulse"
    assert detect_driver_type("ALSA") == "alsa"
    assert detect_driver_type("JACK") == "jack"
    assert detect_driver_type("USB Device") == "usb"
    assert detect_driver_type("Unknown") == "default"


def test_app_config(tmp_path, monkeypatch):
    """Test application configuration."""
    monkeypatch.chdir(tmp_path)
    config = AppConfig()

    assert config.get("num_bars") == NUM_BARS

    config.set("num_bars", 48)
    assert config.get("num_bars") == 48

    config.set("data_dir", str(tmp_path / "void"))
    assert config.get_data_dir().exists()
    assert config.get_store_path() == tmp_path / "void" / "sessions.json"


def test_app_config_loads_yaml(tmp_path, monkeypatch):
    """Test YAML config loading from the working directory."""
    config_file = tmp_path / ".void-focus.yml"
    config_file.write_text(
        yaml.safe_dump(
            {
                "audio": {
                    "num_bars": 48,
                    "min_db": -50,
                    "boost": 0.6,
                    "device_id": 3,
                },
                "storage": {
                    "data_dir": str(tmp_path / "custom"),
                    "file": "history.json",
                },
            }
        ),
        encoding="utf-8",
    )

    monkeypatch.chdir(tmp_path)
    config = AppConfig()

    assert config.get("num_bars") == 48
    assert config.get_store_path() == tmp_path / "custom" / "history.json"
    assert config.get_metering_config()["device_id"] == 3

    kwargs = config.get_sampler_kwargs()
    assert kwargs["num_bars"] == 48
    assert kwargs["min_db"] == -50.0
    assert kwargs["boost"] == 0.6


def test_app_config_rejects_non_mapping(tmp_path, monkeypatch):
    (tmp_path / ".void-focus.yml").write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValueError):
        AppConfig()


def test_app_config_chunk_follows_tick_interval(tmp_path, monkeypatch):
    """One blocking read should last about one tick."""
    (tmp_path / ".void-focus.yml").write_text(
        yaml.safe_dump({"audio": {"tick_interval": 0.02, "rate": 48000}}),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    config = AppConfig()

    assert config.get_metering_config()["chunk"] == 960

    config.set("chunk", 1024)
    assert config.get_metering_config()["chunk"] == 1024


def test_app_config_default_chunk(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert AppConfig().get_metering_config()["chunk"] == 800
