"""Tests for configuration."""

import pytest

from file_crawler.config import REQUIRED_FOR_INGEST, REQUIRED_FOR_SEARCH, Settings, get_settings
from file_crawler.core.exceptions import ConfigError


def test_settings_defaults():
    """Test that settings have correct default values."""
    settings = Settings(_env_file=None)
    assert settings.app_name == "File Crawler API"
    assert settings.app_version == "0.1.0"
    assert settings.api_v1_prefix == "/api/v1"
    assert settings.chunk_size == 1000
    assert settings.chunk_overlap == 100
    assert settings.rrf_k == 60.0
    assert settings.dense_dim == 384
    assert ".pdf" in settings.supported_extensions


def test_get_settings_returns_singleton():
    """Test that get_settings returns the same instance."""
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_require_names_every_missing_value():
    settings = Settings(
        _env_file=None,
        openai_api_key=None,
        openai_url=None,
        openai_model="gpt",
        qdrant_url="",
    )
    with pytest.raises(ConfigError) as exc_info:
        settings.require(*REQUIRED_FOR_SEARCH)

    message = exc_info.value.message
    assert "OPENAI_API_KEY" in message
    assert "OPENAI_URL" in message
    assert "QDRANT_URL" in message
    assert "OPENAI_MODEL" not in message


def test_require_passes_when_configured():
    settings = Settings(_env_file=None, qdrant_url="http://localhost:6333")
    settings.require(*REQUIRED_FOR_INGEST)


def test_index_signature_tracks_models_and_chunking():
    base = Settings(_env_file=None)
    rechunked = Settings(_env_file=None, chunk_size=500)
    assert base.index_signature != rechunked.index_signature
    assert base.dense_model_name in base.index_signature
