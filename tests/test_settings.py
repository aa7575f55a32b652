"""Tests for environment-driven configuration."""

import os

import pytest

from settings import Settings, load_settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in (
        "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "LLM_PROVIDER", "CHROMA_HOST",
        "MAX_CHUNK_SIZE", "CHUNK_OVERLAP", "DATA_DIR", "ALLOW_MOCK_EMBEDDINGS",
        "CORS_ORIGINS", "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return tmp_path / "missing.env"


def test_defaults_need_no_credentials(clean_env):
    settings = load_settings(env_file=clean_env)

    assert settings.openai_api_key is None
    assert settings.remote_configured is False
    assert settings.max_chunk_size == 1000
    assert settings.chunk_overlap == 100
    assert settings.min_content_length == 50
    assert settings.allow_mock_embeddings is True


def test_environment_overrides(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv("CHROMA_HOST", "chroma.internal")
    monkeypatch.setenv("MAX_CHUNK_SIZE", "800")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("ALLOW_MOCK_EMBEDDINGS", "false")
    monkeypatch.setenv("CORS_ORIGINS", "chrome-extension://abc, http://localhost:3000")

    settings = load_settings(env_file=clean_env)

    assert settings.remote_configured is True
    assert settings.max_chunk_size == 800
    assert settings.data_dir == tmp_path / "store"
    assert settings.allow_mock_embeddings is False
    assert settings.cors_origin_list == ["chrome-extension://abc", "http://localhost:3000"]


def test_env_file_values_loaded(clean_env, monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LLM_PROVIDER=anthropic\nANTHROPIC_API_KEY=sk-test\n")

    try:
        settings = load_settings(env_file=env_file)
    finally:
        # load_dotenv writes into os.environ
        os.environ.pop("LLM_PROVIDER", None)
        os.environ.pop("ANTHROPIC_API_KEY", None)

    assert settings.llm_provider == "anthropic"
    assert settings.llm_api_key == "sk-test"


def test_overlap_must_be_smaller_than_chunk(clean_env, monkeypatch):
    monkeypatch.setenv("CHUNK_OVERLAP", "1000")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        load_settings(env_file=clean_env)


def test_unknown_provider_rejected(clean_env, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "cohere")
    with pytest.raises(RuntimeError):
        load_settings(env_file=clean_env)


def test_settings_model_direct():
    assert Settings().llm_api_key is None
