import io

import pytest

from docqa.upload import (UploadError, decode_text, read_limited, safe_filename, save_upload,
                          validate_upload)


def test_safe_filename():
    assert safe_filename("My Notes (v2).txt") == "My_Notes__v2_.txt"
    assert safe_filename("../../etc/passwd") == ".._.._etc_passwd"
    assert safe_filename("report-2024.md") == "report-2024.md"


@pytest.mark.parametrize("content_type", ["text/plain", "text/markdown", "text/plain; charset=utf-8"])
def test_validate_accepts_text(content_type):
    validate_upload("a.txt", content_type, 10, 100)


@pytest.mark.parametrize("filename,content_type,size,message", [
    (None, "text/plain", 1, "No file provided"),
    ("a.pdf", "application/pdf", 1, "Unsupported file type"),
    ("a.docx", None, 1, "Unsupported file type"),
    ("a.txt", "text/plain", 101, "File too large"),
])
def test_validate_rejects(filename, content_type, size, message):
    with pytest.raises(UploadError) as exc:
        validate_upload(filename, content_type, size, 100)
    assert message in str(exc.value)
    assert exc.value.status_code == 400


def test_size_limit_message_in_megabytes():
    with pytest.raises(UploadError, match="Maximum size is 10MB"):
        validate_upload("a.txt", "text/plain", 11 * 1024 * 1024, 10 * 1024 * 1024)


def test_decode_text_ignores_bad_bytes():
    assert decode_text("héllo".encode("utf-8") + b"\xff") == "héllo"


def test_save_upload(tmp_path):
    path = save_upload(str(tmp_path / "up"), "a b.txt", b"data")

    assert path.parent == tmp_path / "up"
    assert path.name.endswith("_a_b.txt")
    assert path.read_bytes() == b"data"


class CountingStream(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.bytes_read = 0

    def read(self, size=-1):
        chunk = super().read(size)
        self.bytes_read += len(chunk)
        return chunk


def test_read_limited_returns_small_body():
    assert read_limited(io.BytesIO(b"hello"), 5) == b"hello"


def test_read_limited_stops_after_limit():
    stream = CountingStream(b"a" * 1_000_000)

    with pytest.raises(UploadError, match="File too large"):
        read_limited(stream, 100)
    assert stream.bytes_read == 101
