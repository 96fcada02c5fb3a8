import os
from dataclasses import dataclass, field
from typing import List

from .chunker import ChunkingOptions


def _env_bool(name: str, default: str) -> bool:
	return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> List[str]:
	return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


@dataclass
class Settings:
	chunk_size: int = int(os.getenv("CHUNK_SIZE", "1000"))
	chunk_overlap: int = int(os.getenv("CHUNK_OVERLAP", "200"))
	min_chunk_size: int = int(os.getenv("MIN_CHUNK_SIZE", "100"))
	merge_small_chunks: bool = _env_bool("MERGE_SMALL_CHUNKS", "true")


	max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
	upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")


	log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
	cors_origins: List[str] = field(
		default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:3000"))

	def chunking_options(self) -> ChunkingOptions:
		# raises ChunkingConfigError on inconsistent sizes
		return ChunkingOptions(
			chunk_size=self.chunk_size,
			chunk_overlap=self.chunk_overlap,
			min_chunk_size=self.min_chunk_size,
		)


settings = Settings()
