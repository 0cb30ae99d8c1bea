"""
Change event models for Content Bridge.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import uuid

from .records import ExternalRecord


class ChangeEventTypes:
    """Operations that emit a change event."""

    RECORD_CREATED = "record.created"
    RECORD_UPDATED = "record.updated"
    RECORD_DELETED = "record.deleted"
    RECORDS_PUBLISHED = "records.published"


class ContentChangeEvent:
    """
    Describes the outcome of one mutation.

    ``records`` are the created or modified records as callers see them,
    ``deleted_ids`` the ids that should be dropped from the caller's view.
    """

    def __init__(
        self,
        event_type: str,
        source: str,
        records: Optional[List[ExternalRecord]] = None,
        deleted_ids: Optional[List[str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.source = source
        self.records = records or []
        self.deleted_ids = deleted_ids or []
        self.created_at = datetime.now(timezone.utc)

    @property
    def is_empty(self) -> bool:
        return not self.records and not self.deleted_ids

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "records": [record.to_dict() for record in self.records],
            "deleted_ids": list(self.deleted_ids),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentChangeEvent":
        """Create an event from a dictionary."""
        event = cls(
            event_type=data["type"],
            source=data["source"],
            records=[ExternalRecord.model_validate(r) for r in data.get("records", [])],
            deleted_ids=data.get("deleted_ids"),
        )
        event.id = data["id"]
        event.created_at = datetime.fromisoformat(data["created_at"])
        return event

    def __str__(self) -> str:
        return (
            f"ContentChangeEvent(id={self.id[:8]}, type={self.type}, "
            f"records={len(self.records)}, deleted={len(self.deleted_ids)})"
        )

    def __repr__(self) -> str:
        return self.__str__()
