"""
Cross-reference resolution for link fields.

Link columns store row ids. At read time they are replaced with the
referenced records, looked up among rows already fetched for the same read
and filtered with the single-record visibility rules. References that
resolve to nothing are dropped. Resolution is one level deep: nested
records keep their own link columns as ids.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from ..data.models.records import (
    AssetRecord,
    ExternalRecord,
    StateColumns,
    StatefulFields,
    TableModel,
    TableRecord,
)
from .status import ReadAction, resolve_record, route_read

RowIndex = Mapping[str, Mapping[str, TableRecord]]


class ReferenceField(NamedTuple):
    """A link column and the table it points into."""

    name: str
    target_table: str
    many: bool = True
    stateful: bool = True


def reference_fields_for(
    model: TableModel,
    table_names: Mapping[str, str],
    assets_table: Optional[str] = None,
) -> List[ReferenceField]:
    """
    Derive reference fields from a table's link columns.

    ``table_names`` maps table ids to names; links into the assets table
    point at stateless rows.
    """
    fields = []
    for field in model.link_fields():
        linked = field.options.get("linkedTableId")
        target = table_names.get(linked, linked) if linked else None
        if not target:
            continue
        fields.append(
            ReferenceField(
                name=field.name,
                target_table=target,
                many=not field.options.get("prefersSingleRecordLink", False),
                stateful=target != assets_table,
            )
        )
    return fields


def select_visible(
    rows: Mapping[str, TableRecord],
    record_id: str,
    preview: bool,
    columns: StateColumns,
) -> Optional[TableRecord]:
    """In-memory counterpart of a single-record read."""
    hops = 0
    while True:
        row = rows.get(record_id)
        if row is None:
            return None
        state = StatefulFields.split(row.fields, columns)
        route = route_read(state.status, state.related_id, preview)
        if route.action == ReadAction.RETURN:
            return row
        if route.action == ReadAction.MISS or hops >= 1:
            return None
        record_id = route.target_id
        hops += 1


def _link_ids(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, str)]
    return []


def _resolve_link(
    reference: ReferenceField,
    record_id: str,
    rows_by_table: RowIndex,
    preview: bool,
    columns: StateColumns,
) -> Optional[Dict[str, Any]]:
    rows = rows_by_table.get(reference.target_table, {})
    if not reference.stateful:
        row = rows.get(record_id)
        if row is None:
            return None
        asset = AssetRecord.from_row(row, reference.target_table)
        return asset.to_dict() if asset else None

    row = select_visible(rows, record_id, preview, columns)
    if row is None:
        return None
    return resolve_record(row, reference.target_table, columns).to_dict()


def resolve_references(
    records: List[ExternalRecord],
    references: Mapping[str, List[ReferenceField]],
    rows_by_table: RowIndex,
    preview: bool,
    columns: Optional[StateColumns] = None,
) -> List[ExternalRecord]:
    """
    Return copies of ``records`` with link fields replaced by nested records.

    ``references`` maps a table name to its reference fields.
    """
    columns = columns or StateColumns()
    resolved = []
    for record in records:
        fields = dict(record.fields)
        for reference in references.get(record.table, []):
            if reference.name not in fields:
                continue
            values = []
            seen = set()
            # both rows of a shadow pair resolve to the same external id
            for link_id in _link_ids(fields[reference.name]):
                value = _resolve_link(reference, link_id, rows_by_table, preview, columns)
                if value is None or value["id"] in seen:
                    continue
                seen.add(value["id"])
                values.append(value)
            if reference.many:
                fields[reference.name] = values
            else:
                fields[reference.name] = values[0] if values else None
        resolved.append(record.model_copy(update={"fields": fields}))
    return resolved


def index_rows(rows: List[TableRecord]) -> Dict[str, TableRecord]:
    return {row.id: row for row in rows}
