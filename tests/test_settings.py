import importlib

import pytest

import docqa.settings
from docqa.chunker import ChunkingConfigError
from docqa.main import create_app
from docqa.settings import _env_bool, _env_list


@pytest.fixture
def reload_settings(monkeypatch):
    """Reload docqa.settings after env changes; restore the module afterwards."""
    yield lambda: importlib.reload(docqa.settings)
    monkeypatch.undo()
    importlib.reload(docqa.settings)


def test_chunking_options_from_settings(test_settings):
    opts = test_settings.chunking_options()

    assert (opts.chunk_size, opts.chunk_overlap, opts.min_chunk_size) == (1000, 200, 100)


def test_defaults_read_from_environment(monkeypatch, reload_settings):
    monkeypatch.setenv("CHUNK_SIZE", "500")
    monkeypatch.setenv("CHUNK_OVERLAP", "50")
    monkeypatch.setenv("MIN_CHUNK_SIZE", "40")
    monkeypatch.setenv("MERGE_SMALL_CHUNKS", "off")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "2048")
    monkeypatch.setenv("UPLOAD_DIR", "/tmp/docqa-uploads")
    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example ,")

    s = reload_settings().Settings()

    assert (s.chunk_size, s.chunk_overlap, s.min_chunk_size) == (500, 50, 40)
    assert s.merge_small_chunks is False
    assert s.max_upload_bytes == 2048
    assert s.upload_dir == "/tmp/docqa-uploads"
    assert s.log_level == "WARNING"
    assert s.cors_origins == ["http://a.example", "http://b.example"]
    assert s.chunking_options().chunk_size == 500


def test_defaults_without_environment(monkeypatch, reload_settings):
    for name in ["CHUNK_SIZE", "CHUNK_OVERLAP", "MIN_CHUNK_SIZE", "MERGE_SMALL_CHUNKS",
                 "MAX_UPLOAD_BYTES", "CORS_ORIGINS"]:
        monkeypatch.delenv(name, raising=False)

    s = reload_settings().settings

    assert (s.chunk_size, s.chunk_overlap, s.min_chunk_size) == (1000, 200, 100)
    assert s.merge_small_chunks is True
    assert s.max_upload_bytes == 10 * 1024 * 1024
    assert s.cors_origins == ["http://localhost:3000"]


@pytest.mark.parametrize("raw,expected", [
    ("1", True), ("true", True), ("YES", True), (" on ", True),
    ("0", False), ("false", False), ("no", False), ("", False),
])
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("DOCQA_FLAG", raw)

    assert _env_bool("DOCQA_FLAG", "true") is expected


def test_env_bool_default(monkeypatch):
    monkeypatch.delenv("DOCQA_FLAG", raising=False)

    assert _env_bool("DOCQA_FLAG", "true") is True
    assert _env_bool("DOCQA_FLAG", "false") is False


def test_env_list(monkeypatch):
    monkeypatch.setenv("DOCQA_LIST", " a , ,b,")
    assert _env_list("DOCQA_LIST", "x") == ["a", "b"]

    monkeypatch.delenv("DOCQA_LIST")
    assert _env_list("DOCQA_LIST", "x,y") == ["x", "y"]


def test_invalid_settings_fail_at_app_start(test_settings):
    test_settings.chunk_overlap = test_settings.chunk_size

    with pytest.raises(ChunkingConfigError):
        create_app(settings=test_settings)
