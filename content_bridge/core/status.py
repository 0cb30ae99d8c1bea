"""
Status resolution and visibility rules.

Pure functions only: nothing here touches the network. The publish state
machine and the cross-reference resolver share these rules so that a record
is visible (or hidden) the same way whether it is read alone or reached
through a link field.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, NamedTuple, Optional

from ..data.models.records import (
    DocumentStatus,
    ExternalRecord,
    RecordStatus,
    StateColumns,
    StatefulFields,
    TableRecord,
)

STATUS_LABELS = {
    RecordStatus.DRAFT: DocumentStatus.ADDED,
    RecordStatus.CHANGED: DocumentStatus.MODIFIED,
    RecordStatus.PUBLISHED: DocumentStatus.PUBLISHED,
    RecordStatus.PUBLISHED_HAS_CHANGES: DocumentStatus.PUBLISHED,
    RecordStatus.PUBLISHED_TO_BE_DELETED: DocumentStatus.PUBLISHED,
    RecordStatus.DELETED: DocumentStatus.DELETED,
}

PREVIEW_STATUSES = frozenset(
    {RecordStatus.DRAFT, RecordStatus.CHANGED, RecordStatus.PUBLISHED}
)
PRODUCTION_STATUSES = frozenset(
    {
        RecordStatus.PUBLISHED,
        RecordStatus.PUBLISHED_HAS_CHANGES,
        RecordStatus.PUBLISHED_TO_BE_DELETED,
    }
)


def visible_statuses(preview: bool, include_to_be_deleted: bool = False) -> FrozenSet[RecordStatus]:
    """Statuses a bulk read returns for the given mode."""
    if not preview:
        return PRODUCTION_STATUSES
    if include_to_be_deleted:
        return PREVIEW_STATUSES | {RecordStatus.PUBLISHED_TO_BE_DELETED}
    return PREVIEW_STATUSES


def resolve_record(
    row: TableRecord, table: str, columns: Optional[StateColumns] = None
) -> ExternalRecord:
    """
    Map a raw row to the record callers see.

    Total over every stored value: an unknown or malformed status resolves
    to the ``added`` label and the row's own id.
    """
    columns = columns or StateColumns()
    state = StatefulFields.split(row.fields, columns)
    external_id = row.id
    shadow_id = None

    if state.status == RecordStatus.CHANGED and state.related_id:
        external_id = state.related_id
        shadow_id = row.id
    elif state.status == RecordStatus.PUBLISHED_HAS_CHANGES and state.related_id:
        shadow_id = state.related_id

    return ExternalRecord(
        id=external_id,
        record_id=row.id,
        table=table,
        status=state.status,
        label=STATUS_LABELS.get(state.status, DocumentStatus.ADDED),
        shadow_id=shadow_id,
        created_time=row.created_time,
        fields=state.fields,
    )


class ReadAction(str, Enum):
    RETURN = "return"
    FOLLOW = "follow"
    MISS = "miss"


class ReadRoute(NamedTuple):
    action: ReadAction
    target_id: Optional[str] = None


def route_read(
    status: Optional[RecordStatus],
    related_id: Optional[str],
    preview: bool,
    include_to_be_deleted: bool = False,
) -> ReadRoute:
    """
    Decide what a single-record read of a row in ``status`` yields.

    FOLLOW means the row stands in for its counterpart in this mode and the
    read continues at ``target_id``.
    """
    if status == RecordStatus.DRAFT:
        return ReadRoute(ReadAction.RETURN if preview else ReadAction.MISS)
    if status == RecordStatus.CHANGED:
        if preview:
            return ReadRoute(ReadAction.RETURN)
        return _follow(related_id)
    if status == RecordStatus.PUBLISHED:
        return ReadRoute(ReadAction.RETURN)
    if status == RecordStatus.PUBLISHED_HAS_CHANGES:
        if preview:
            return _follow(related_id)
        return ReadRoute(ReadAction.RETURN)
    if status == RecordStatus.PUBLISHED_TO_BE_DELETED:
        return ReadRoute(ReadAction.RETURN if include_to_be_deleted else ReadAction.MISS)
    return ReadRoute(ReadAction.MISS)


def _follow(related_id: Optional[str]) -> ReadRoute:
    if not related_id:
        return ReadRoute(ReadAction.MISS)
    return ReadRoute(ReadAction.FOLLOW, related_id)
