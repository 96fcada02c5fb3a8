import logging
import pathlib
import re
import time
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {"text/plain", "text/markdown"}
_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]")


class UploadError(ValueError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# "My Notes (v2).txt" -> "My_Notes__v2_.txt"
def safe_filename(name: str) -> str:
    return _UNSAFE.sub("_", name)


def validate_upload(filename: Optional[str], content_type: Optional[str],
                    size: int, max_bytes: int) -> None:
    if not filename:
        raise UploadError("No file provided")
    # browsers send "text/plain; charset=utf-8"
    base_type = (content_type or "").split(";")[0].strip().lower()
    if base_type not in ALLOWED_TYPES:
        raise UploadError("Unsupported file type. Please upload plain text or markdown files.")
    if size > max_bytes:
        raise UploadError(
            f"File too large. Maximum size is {max_bytes / (1024 * 1024):g}MB.")


def read_limited(stream: BinaryIO, max_bytes: int) -> bytes:
    # never pulls more than max_bytes + 1 bytes off the stream
    data = stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise UploadError(
            f"File too large. Maximum size is {max_bytes / (1024 * 1024):g}MB.")
    return data


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")


def save_upload(upload_dir: str, filename: str, data: bytes) -> pathlib.Path:
    root = pathlib.Path(upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    path = root / f"{int(time.time() * 1000)}_{safe_filename(filename)}"
    path.write_bytes(data)
    logger.info(f"Saved upload {filename} to {path}")
    return path
