from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, constr

from ..data.models.records import RecordRef


class FieldsPayload(BaseModel):
    """Field values for a create or update call."""

    fields: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"fields": {"Title": "Hello", "Subtitle": "World"}}},
    )


class PublishRequest(BaseModel):
    """Records to publish, processed in order."""

    records: List[RecordRef] = Field(min_length=1)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {"records": [{"table": "HeroSection", "record_id": "rec123"}]}
        },
    )


class PublishResponse(BaseModel):
    published_records: List[Dict[str, Any]]
    deleted_record_ids: List[str]


class DeleteResponse(BaseModel):
    deleted_ids: List[str]


class AssetUpload(BaseModel):
    url: constr(min_length=1)
    filename: constr(min_length=1, max_length=256)

    model_config = ConfigDict(extra="forbid")
