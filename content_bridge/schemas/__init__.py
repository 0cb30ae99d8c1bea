"""Request and response schemas for the HTTP API."""

from .documents_v1 import (
    AssetUpload,
    DeleteResponse,
    FieldsPayload,
    PublishRequest,
    PublishResponse,
)

__all__ = [
    "AssetUpload",
    "DeleteResponse",
    "FieldsPayload",
    "PublishRequest",
    "PublishResponse",
]
