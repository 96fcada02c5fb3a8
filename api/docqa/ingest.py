import argparse
import logging
import os
import pathlib
import sys
from typing import BinaryIO, Iterator, List, Optional

import orjson

from .chunker import ChunkingConfigError, ChunkingOptions, DocumentChunk, chunk_document

logger = logging.getLogger(__name__)

TEXT_EXT = {".txt", ".md"}
PAGE_BREAK = "\f"

# Read a text file and split it into pages when it carries form-feed page breaks
# input: Path("notes.md")   -> output: ("# Notes\n...", None)
# input: Path("report.txt") -> output: (None, ["Page 1 text", "Page 2 text"])   # pdftotext output


def _read_file(path: pathlib.Path):
    text = path.read_text(encoding="utf-8", errors="ignore")
    if PAGE_BREAK in text:
        pages = text.split(PAGE_BREAK)
        # pdftotext ends the last page with a form feed too
        if pages and not pages[-1].strip():
            pages = pages[:-1]
        return None, pages
    return text, None


def iter_files(root: pathlib.Path) -> Iterator[pathlib.Path]:
    for p in sorted(root.rglob("*")):
        if p.is_file() and p.suffix.lower() in TEXT_EXT:
            yield p


def chunk_file(path: pathlib.Path, options: ChunkingOptions, merge: bool = True) -> List[DocumentChunk]:
    text, pages = _read_file(path)
    return chunk_document(path.name, text=text, pages=pages, options=options, merge=merge)


def ingest_dir(root: str, options: ChunkingOptions, out: BinaryIO, merge: bool = True) -> int:
    root_path = pathlib.Path(root)
    paths = list(iter_files(root_path))
    logger.info(f"Found {len(paths)} files under {root}")
    total = 0
    for path in paths:
        chunks = chunk_file(path, options, merge=merge)
        if not chunks:
            logger.warning(f"Skip empty: {path}")
            continue
        for chunk in chunks:
            out.write(orjson.dumps(chunk.model_dump(), option=orjson.OPT_APPEND_NEWLINE))
        total += len(chunks)
        logger.info(f"{path.name}: {len(chunks)} chunks")
    return total


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docqa-ingest", description="Chunk .txt/.md files into JSON Lines")
    parser.add_argument("root", help="Directory containing TXT/MD files")
    parser.add_argument("--chunk", type=int,
                        default=int(os.getenv("CHUNK_SIZE", "1000")))
    parser.add_argument("--overlap", type=int,
                        default=int(os.getenv("CHUNK_OVERLAP", "200")))
    parser.add_argument("--min-size", type=int,
                        default=int(os.getenv("MIN_CHUNK_SIZE", "100")))
    parser.add_argument("--no-merge", action="store_true",
                        help="Keep chunks below --min-size as they are")
    parser.add_argument("--output", "-o", help="Write to this file instead of stdout")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), stream=sys.stderr)

    try:
        options = ChunkingOptions(
            chunk_size=args.chunk, chunk_overlap=args.overlap, min_chunk_size=args.min_size)
    except ChunkingConfigError as e:
        parser.error(str(e))
    merge = not args.no_merge
    if args.output:
        with open(args.output, "wb") as fh:
            total = ingest_dir(args.root, options, fh, merge=merge)
    else:
        total = ingest_dir(args.root, options, sys.stdout.buffer, merge=merge)
        sys.stdout.flush()
    print(f"Ingestion complete: {total} chunks.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
