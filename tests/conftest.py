"""Shared fixtures."""

import pytest

from reel_engine.config import Config
from reel_engine.storage import LocalStorageBackend


@pytest.fixture
def config(tmp_path):
    config = Config(
        base_dir=tmp_path,
        media_dir=tmp_path / "media",
        public_base_url="http://test.local/",
        api_key="secret",
        require_api_key=True,
        ffmpeg_path="ffmpeg",
        ffmpeg_timeout=60,
        fetch_timeout=5,
        logo_path=tmp_path / "missing-logo.svg",
        transition_policy="reject",
    )
    config.ensure_dirs()
    return config


@pytest.fixture
def storage(config):
    return LocalStorageBackend(config)
