"""Shared test fixtures."""

from pathlib import Path

import pytest

from clipwizard.models import MediaInfo

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def video_info() -> MediaInfo:
    return MediaInfo(
        duration_seconds=120.0,
        width=1920,
        height=1080,
        fps=30.0,
        bitrate_kbps=5000,
        has_video=True,
    )


@pytest.fixture
def audio_info() -> MediaInfo:
    return MediaInfo(duration_seconds=200.0, bitrate_kbps=320, has_video=False)
