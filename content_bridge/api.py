"""
FastAPI application exposing the content source to the editor and the site.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import AirtableConfig, get_settings
from .content_source import TableContentSource
from .errors import (
    ConfigurationError,
    ContentBridgeError,
    InvalidTransitionError,
    RecordNotFoundError,
    TransitionFailedError,
    TransportError,
)
from .logging_config import configure_logging
from .schemas import AssetUpload, DeleteResponse, FieldsPayload, PublishRequest, PublishResponse

logger = structlog.get_logger()

# Global content source instance
content_source: Optional[TableContentSource] = None

ERROR_STATUS_CODES = {
    RecordNotFoundError: 404,
    InvalidTransitionError: 409,
    TransportError: 502,
    TransitionFailedError: 502,
    ConfigurationError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting Content Bridge")

    global content_source
    try:
        content_source = TableContentSource(AirtableConfig.from_settings(settings))
        await content_source.init()
    except ConfigurationError as e:
        logger.error("content_source_init_failed", error=str(e))
        raise

    yield

    logger.info("Shutting down Content Bridge")
    await content_source.close()
    content_source = None


app = FastAPI(
    title="Content Bridge",
    description="Drafts, pending edits and publishing on top of a table service",
    version=importlib.metadata.version("content-bridge"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContentBridgeError)
async def content_bridge_error_handler(request: Request, exc: ContentBridgeError) -> JSONResponse:
    status_code = 500
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_class):
            status_code = code
            break
    logger.warning("request_failed", path=request.url.path, code=exc.code, status_code=status_code)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def get_content_source() -> TableContentSource:
    """Dependency returning the initialized content source."""
    if content_source is None:
        raise HTTPException(status_code=503, detail="Content source not initialized")
    return content_source


@app.get("/health", tags=["system"])
async def health() -> dict:
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("content-bridge")}


@app.get("/models", tags=["schema"])
async def list_models(
    source: TableContentSource = Depends(get_content_source),
) -> List[Dict[str, Any]]:
    """Content tables with the reserved state columns removed."""
    models = await source.get_models()
    return [model.model_dump(mode="json") for model in models]


@app.get("/documents", tags=["documents"])
async def list_documents(
    preview: bool = True,
    source: TableContentSource = Depends(get_content_source),
) -> List[Dict[str, Any]]:
    """All visible documents with link fields resolved."""
    documents = await source.get_documents(preview=preview)
    return [document.to_dict() for document in documents]


@app.get("/tables/{table}/records", tags=["documents"])
async def list_records(
    table: str,
    preview: bool = False,
    source: TableContentSource = Depends(get_content_source),
) -> List[Dict[str, Any]]:
    records = await source.get_documents(preview=preview, tables=[table])
    return [record.to_dict() for record in records]


@app.get("/tables/{table}/records/{record_id}", tags=["documents"])
async def get_record(
    table: str,
    record_id: str,
    preview: bool = False,
    source: TableContentSource = Depends(get_content_source),
) -> Dict[str, Any]:
    record = await source.get_document(table, record_id, preview=preview)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record.to_dict()


@app.post("/tables/{table}/records", status_code=201, tags=["documents"])
async def create_record(
    table: str,
    payload: FieldsPayload,
    source: TableContentSource = Depends(get_content_source),
) -> Dict[str, Any]:
    record = await source.create_document(table, payload.fields)
    return record.to_dict()


@app.patch("/tables/{table}/records/{record_id}", tags=["documents"])
async def update_record(
    table: str,
    record_id: str,
    payload: FieldsPayload,
    source: TableContentSource = Depends(get_content_source),
) -> Dict[str, Any]:
    record = await source.update_document(table, record_id, payload.fields)
    return record.to_dict()


@app.delete("/tables/{table}/records/{record_id}", response_model=DeleteResponse, tags=["documents"])
async def delete_record(
    table: str,
    record_id: str,
    source: TableContentSource = Depends(get_content_source),
) -> DeleteResponse:
    deleted_ids = await source.delete_document(table, record_id)
    return DeleteResponse(deleted_ids=deleted_ids)


@app.post("/publish", response_model=PublishResponse, tags=["documents"])
async def publish(
    request: PublishRequest,
    source: TableContentSource = Depends(get_content_source),
) -> PublishResponse:
    result = await source.publish_documents(request.records)
    return PublishResponse(
        published_records=[record.to_dict() for record in result.published_records],
        deleted_record_ids=result.deleted_record_ids,
    )


@app.get("/assets", tags=["assets"])
async def list_assets(
    source: TableContentSource = Depends(get_content_source),
) -> List[Dict[str, Any]]:
    assets = await source.get_assets()
    return [asset.to_dict() for asset in assets]


@app.post("/assets", status_code=201, tags=["assets"])
async def upload_asset(
    upload: AssetUpload,
    source: TableContentSource = Depends(get_content_source),
) -> Dict[str, Any]:
    asset = await source.upload_asset(upload.url, upload.filename)
    if asset is None:
        raise HTTPException(status_code=502, detail="Asset row was created without an attachment")
    return asset.to_dict()


@app.get("/transitions", tags=["diagnostics"])
async def list_transitions(
    source: TableContentSource = Depends(get_content_source),
) -> List[Dict[str, Any]]:
    """Transitions run since start-up, oldest first."""
    return source.log.to_dict()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("content_bridge.api:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
