import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, model_validator

from .chunker import ChunkingConfigError, ChunkingOptions, DocumentChunk, chunk_document
from .index import (DocumentIndex, DocumentNotFoundError, IndexedDocument, InMemoryIndex,
                    SearchResult, index_chunks)
from .settings import Settings, settings as default_settings
from .upload import (ALLOWED_TYPES, UploadError, decode_text, read_limited, save_upload,
                     validate_upload)

logger = logging.getLogger(__name__)


class ChunkRequest(BaseModel):
    filename: str
    text: Optional[str] = None
    pages: Optional[List[str]] = None
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    min_chunk_size: Optional[int] = None
    merge: Optional[bool] = None

    @model_validator(mode="after")
    def _text_or_pages(self):
        if (self.text is None) == (self.pages is None):
            raise ValueError("provide exactly one of 'text' or 'pages'")
        return self


class ChunkResponse(BaseModel):
    chunks: List[DocumentChunk]
    total: int


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_index(request: Request) -> DocumentIndex:
    return request.app.state.index


def create_app(settings: Optional[Settings] = None,
               index: Optional[DocumentIndex] = None) -> FastAPI:
    settings = settings or default_settings
    # fail at startup rather than on the first upload
    settings.chunking_options()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level)
        yield

    app = FastAPI(title="Document Q&A", default_response_class=ORJSONResponse, lifespan=lifespan)
    app.state.settings = settings
    app.state.index = index if index is not None else InMemoryIndex()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UploadError)
    def _upload_error(request: Request, exc: UploadError):
        return ORJSONResponse({"detail": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ChunkingConfigError)
    def _config_error(request: Request, exc: ChunkingConfigError):
        return ORJSONResponse({"detail": str(exc)}, status_code=422)

    @app.exception_handler(DocumentNotFoundError)
    def _not_found(request: Request, exc: DocumentNotFoundError):
        return ORJSONResponse({"detail": f"Document {exc.args[0]} not found"}, status_code=404)

    @app.get("/health")
    def health(index: DocumentIndex = Depends(get_index)):
        return {"ok": True, "documents": len(index.list_documents())}

    @app.post("/chunk", response_model=ChunkResponse)
    def chunk(req: ChunkRequest, settings: Settings = Depends(get_settings)):
        options = ChunkingOptions(
            chunk_size=req.chunk_size if req.chunk_size is not None else settings.chunk_size,
            chunk_overlap=req.chunk_overlap if req.chunk_overlap is not None else settings.chunk_overlap,
            min_chunk_size=req.min_chunk_size if req.min_chunk_size is not None else settings.min_chunk_size,
        )
        merge = settings.merge_small_chunks if req.merge is None else req.merge
        chunks = chunk_document(req.filename, text=req.text, pages=req.pages,
                                options=options, merge=merge)
        return ChunkResponse(chunks=chunks, total=len(chunks))

    @app.get("/upload")
    def upload_info(settings: Settings = Depends(get_settings)):
        return {
            "message": "Upload endpoint is working",
            "supported_types": sorted(ALLOWED_TYPES),
            "max_size_bytes": settings.max_upload_bytes,
        }

    @app.post("/upload")
    def upload(file: UploadFile = File(...),
               settings: Settings = Depends(get_settings),
               index: DocumentIndex = Depends(get_index)):
        # sync on purpose: runs in the threadpool
        validate_upload(file.filename, file.content_type, file.size or 0, settings.max_upload_bytes)
        data = read_limited(file.file, settings.max_upload_bytes)
        save_upload(settings.upload_dir, file.filename, data)

        chunks = chunk_document(file.filename, text=decode_text(data),
                                options=settings.chunking_options(),
                                merge=settings.merge_small_chunks)
        if not chunks:
            raise UploadError("No readable content found in the file.")
        logger.info(f"Processed {file.filename}: {len(chunks)} chunks")

        report = index_chunks(index, chunks)
        details = {
            "filename": file.filename,
            "file_size": len(data),
            "chunks_created": len(chunks),
            "documents_uploaded": len(report.document_ids),
        }
        if report.failed:
            # the file was chunked but only part of it reached the index
            return ORJSONResponse({
                "success": False,
                "error": "File was processed but failed to upload to the index",
                "details": {**details, "failed_chunks": report.failed},
            }, status_code=500)
        return {
            "success": True,
            "message": f"Successfully processed {file.filename}",
            "details": details,
        }

    @app.get("/search", response_model=SearchResult)
    def search(q: str = Query(min_length=1), count: int = Query(default=10, ge=1, le=100),
               index: DocumentIndex = Depends(get_index)):
        return index.search(q, count=count, passages=True)

    @app.get("/documents", response_model=List[IndexedDocument])
    def list_documents(index: DocumentIndex = Depends(get_index)):
        return index.list_documents()

    @app.delete("/documents/{document_id}")
    def delete_document(document_id: str, index: DocumentIndex = Depends(get_index)):
        index.delete_document(document_id)
        return {"success": True}

    @app.post("/documents/clear")
    def clear_documents(index: DocumentIndex = Depends(get_index)):
        deleted = index.clear()
        logger.info(f"Cleared {deleted} documents from the index")
        return {"success": True, "deleted": deleted}

    return app


app = create_app()
