"""Data models for records, schema and change events."""

from .events import ChangeEventTypes, ContentChangeEvent
from .records import (
    AssetRecord,
    DocumentStatus,
    ExternalRecord,
    RecordRef,
    RecordStatus,
    StateColumns,
    StatefulFields,
    TableField,
    TableModel,
    TableRecord,
)

__all__ = [
    "AssetRecord",
    "ChangeEventTypes",
    "ContentChangeEvent",
    "DocumentStatus",
    "ExternalRecord",
    "RecordRef",
    "RecordStatus",
    "StateColumns",
    "StatefulFields",
    "TableField",
    "TableModel",
    "TableRecord",
]
