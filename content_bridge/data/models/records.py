"""
Record models for the table-service backend.

A backend row is a flat ``fields`` mapping. Two reserved columns carry the
publishing state: the status tag and a single self-referencing link. The
``StatefulFields`` wrapper splits those two columns off an arbitrary user
field mapping and puts them back when writing.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecordStatus(str, Enum):
    """Lifecycle tag stored in the status column."""

    DRAFT = "draft"
    PUBLISHED = "published"
    CHANGED = "changed"
    PUBLISHED_HAS_CHANGES = "published-has-changes"
    PUBLISHED_TO_BE_DELETED = "published-to-be-deleted"
    DELETED = "deleted"

    @classmethod
    def parse(cls, value: Any) -> Optional["RecordStatus"]:
        """Map a stored value to a status, or None when it is not recognised."""
        if isinstance(value, RecordStatus):
            return value
        if not isinstance(value, str):
            return None
        value = LEGACY_STATUS_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


# Spellings written by earlier adapter versions.
LEGACY_STATUS_ALIASES = {
    "published-changed": RecordStatus.PUBLISHED_HAS_CHANGES.value,
    "published-deleted": RecordStatus.PUBLISHED_TO_BE_DELETED.value,
}


class DocumentStatus(str, Enum):
    """Simplified lifecycle label exposed to the editor."""

    ADDED = "added"
    MODIFIED = "modified"
    PUBLISHED = "published"
    DELETED = "deleted"


class TableRecord(BaseModel):
    """A raw row as returned by the table service."""

    id: str
    created_time: Optional[str] = Field(default=None, alias="createdTime")
    fields: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class StateColumns(BaseModel):
    """Names of the two reserved columns."""

    status_field: str = "State"
    related_field: str = "Related"

    @property
    def reserved(self) -> tuple:
        return (self.status_field, self.related_field)

    def strip(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``fields`` without the reserved columns."""
        return {k: v for k, v in fields.items() if k not in self.reserved}


class StatefulFields(BaseModel):
    """User fields plus the publishing state carried by the reserved columns."""

    status: Optional[RecordStatus] = None
    raw_status: Optional[Any] = None
    related_id: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def split(cls, row_fields: Dict[str, Any], columns: StateColumns) -> "StatefulFields":
        raw_status = row_fields.get(columns.status_field)
        related = row_fields.get(columns.related_field)
        if isinstance(related, (list, tuple)):
            related_id = related[0] if related else None
        elif isinstance(related, str) and related:
            related_id = related
        else:
            related_id = None
        return cls(
            status=RecordStatus.parse(raw_status),
            raw_status=raw_status,
            related_id=related_id,
            fields=columns.strip(row_fields),
        )

    def to_row(self, columns: StateColumns) -> Dict[str, Any]:
        """Rebuild the backend field mapping, reserved columns included."""
        row = columns.strip(self.fields)
        if self.status is not None:
            row[columns.status_field] = self.status.value
        row[columns.related_field] = [self.related_id] if self.related_id else []
        return row


class ExternalRecord(BaseModel):
    """
    A record as seen by callers.

    ``id`` is the external id: for a ``changed`` shadow it is the id of its
    published counterpart. The row's own id is kept in ``record_id`` and,
    for the shadow pair, the shadow's id in ``shadow_id``.
    """

    id: str
    record_id: str
    table: str
    status: Optional[RecordStatus] = None
    label: DocumentStatus = DocumentStatus.ADDED
    shadow_id: Optional[str] = None
    created_time: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class AssetRecord(BaseModel):
    """A row of the assets table. Assets carry no publishing state."""

    id: str
    table: str
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    file_name: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    created_time: Optional[str] = None
    label: DocumentStatus = DocumentStatus.PUBLISHED

    @classmethod
    def from_row(cls, row: TableRecord, table: str) -> Optional["AssetRecord"]:
        """Convert an assets-table row; rows without an attachment yield None."""
        attachments = row.fields.get("Asset")
        if not isinstance(attachments, list) or not attachments:
            return None
        attachment = attachments[0]
        if not isinstance(attachment, dict):
            return None
        return cls(
            id=row.id,
            table=table,
            title=row.fields.get("Title"),
            description=row.fields.get("Description"),
            url=attachment.get("url"),
            file_name=attachment.get("filename"),
            content_type=attachment.get("type"),
            size=attachment.get("size"),
            width=attachment.get("width"),
            height=attachment.get("height"),
            created_time=row.created_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class RecordRef(BaseModel):
    """A (table, record id) pair naming one logical document."""

    table: str
    record_id: str


class TableField(BaseModel):
    """A column declared in the base schema."""

    id: Optional[str] = None
    name: str
    type: str = "singleLineText"
    options: Dict[str, Any] = Field(default_factory=dict)


class TableModel(BaseModel):
    """A table declared in the base schema."""

    id: str
    name: str
    primary_field_id: Optional[str] = Field(default=None, alias="primaryFieldId")
    fields: List[TableField] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def link_fields(self) -> List[TableField]:
        """Columns linking to rows of another (or the same) table."""
        return [f for f in self.fields if f.type == "multipleRecordLinks"]
