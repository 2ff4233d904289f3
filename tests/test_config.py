"""Tests for configuration loading."""

from pathlib import Path

import pytest

from reel_engine.config import Config, ConfigError, get_config, init_config
from reel_engine.timing import TransitionPolicy

ENV_VARS = [
    "MEDIA_DIR", "REELS_SUBDIR", "TMP_SUBDIR", "PUBLIC_BASE_URL", "API_KEY",
    "REQUIRE_API_KEY", "FFMPEG_PATH", "IMAGEIO_FFMPEG_EXE", "FFMPEG_TIMEOUT",
    "FETCH_TIMEOUT", "LOGO_PATH", "TRANSITION_POLICY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env, tmp_path):
    config = Config(base_dir=tmp_path)

    assert config.media_dir == tmp_path / "media"
    assert config.reels_dir == tmp_path / "media" / "reels"
    assert config.tmp_dir == tmp_path / "media" / "tmp"
    assert config.storage_dir == tmp_path / "media" / "storage"
    assert config.public_base_url == "http://localhost:8080"
    assert config.api_key == "change-me"
    assert config.require_api_key is True
    assert config.ffmpeg_path == "ffmpeg"
    assert config.ffmpeg_timeout == 600
    assert config.fetch_timeout == 30
    assert config.logo_path == tmp_path / "Logo.svg"
    assert config.transition_policy == "reject"
    config.validate()


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("MEDIA_DIR", str(tmp_path / "m"))
    clean_env.setenv("REELS_SUBDIR", "out")
    clean_env.setenv("PUBLIC_BASE_URL", "https://cdn.example.com/")
    clean_env.setenv("REQUIRE_API_KEY", "false")
    clean_env.setenv("IMAGEIO_FFMPEG_EXE", "/usr/local/bin/ffmpeg")
    clean_env.setenv("FFMPEG_TIMEOUT", "90")
    clean_env.setenv("TRANSITION_POLICY", "CLAMP")

    config = Config(base_dir=tmp_path)

    assert config.media_dir == Path(tmp_path / "m")
    assert config.reels_dir == tmp_path / "m" / "out"
    assert config.public_base_url == "https://cdn.example.com"
    assert config.require_api_key is False
    assert config.ffmpeg_path == "/usr/local/bin/ffmpeg"
    assert config.ffmpeg_timeout == 90
    assert config.transition_policy == "clamp"
    assert config.public_url("out", "a.mp4") == "https://cdn.example.com/media/out/a.mp4"


def test_ffmpeg_path_wins_over_imageio(clean_env, tmp_path):
    clean_env.setenv("FFMPEG_PATH", "/a/ffmpeg")
    clean_env.setenv("IMAGEIO_FFMPEG_EXE", "/b/ffmpeg")

    assert Config(base_dir=tmp_path).ffmpeg_path == "/a/ffmpeg"


def test_validate_rejects_bad_settings(clean_env, tmp_path):
    config = Config(base_dir=tmp_path, transition_policy="skip", ffmpeg_timeout=0)

    with pytest.raises(ConfigError) as excinfo:
        config.validate()

    assert "skip" in str(excinfo.value)
    assert "FFMPEG_TIMEOUT" in str(excinfo.value)


def test_ensure_dirs(clean_env, tmp_path):
    config = Config(base_dir=tmp_path)
    config.ensure_dirs()

    for directory in config.media_dirs():
        assert directory.is_dir()


def test_init_config_replaces_global(clean_env, tmp_path):
    config = init_config(base_dir=tmp_path, api_key="k")

    assert get_config() is config
    assert get_config().api_key == "k"


def test_policy_property(clean_env, tmp_path):
    assert Config(base_dir=tmp_path).policy is TransitionPolicy.REJECT
    assert Config(base_dir=tmp_path, transition_policy="Clamp").policy is TransitionPolicy.CLAMP


def test_unknown_policy_raises_config_error(clean_env, tmp_path):
    config = Config(base_dir=tmp_path, transition_policy="strict")

    with pytest.raises(ConfigError) as excinfo:
        config.policy

    assert "strict" in str(excinfo.value)
    assert "reject, clamp" in str(excinfo.value)
