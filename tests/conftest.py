"""
Shared fixtures: sample documents, settings pointed at a temp upload dir,
and a TestClient over a freshly built app.
"""

import pytest
from fastapi.testclient import TestClient

from docqa.index import InMemoryIndex
from docqa.main import create_app
from docqa.settings import Settings


SAMPLE_TEXT = """
    This is the first paragraph. It contains multiple sentences to test the chunking functionality.
    This helps ensure that our text splitting works correctly.

    This is the second paragraph. It should be in a different chunk if the size limits are reached.
    We want to test the overlap functionality as well.

    This is the third paragraph. It will help us verify that the chunking preserves context.
    The overlap should maintain continuity between chunks.
"""


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        chunk_size=1000,
        chunk_overlap=200,
        min_chunk_size=100,
        merge_small_chunks=True,
        max_upload_bytes=4096,
        upload_dir=str(tmp_path / "uploads"),
        log_level="DEBUG",
        cors_origins=["http://localhost:3000"],
    )


@pytest.fixture
def index() -> InMemoryIndex:
    return InMemoryIndex()


@pytest.fixture
def client(test_settings, index) -> TestClient:
    return TestClient(create_app(settings=test_settings, index=index))
