"""
Publish state machine over the table service.

The table service has no drafts, no revisions and no atomic publish. Every
row carries a status tag and a single self-referencing link, and this module
simulates content versioning on top of them:

- a new row starts as ``draft``;
- editing a ``published`` row never touches it: a linked ``changed`` shadow
  row holds the pending edit while the original flips to
  ``published-has-changes``;
- publishing folds the shadow back into the original and destroys it;
- deletion of published content is a soft mark until published.

Reads take a ``preview`` flag. Preview surfaces drafts and pending edits,
production only what is currently published. A ``changed`` shadow is
always reported under its counterpart's id so callers see one id per
logical document.

Every mutation runs as a declared ``Transition`` (see ``transitions``).
Steps are strictly sequential and nothing is rolled back on failure.
Two sessions editing the same published record at once can both take the
copy-on-write path and leave an orphaned shadow; this race is not detected.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import structlog

from ..data.models.events import ChangeEventTypes
from ..data.models.records import (
    ExternalRecord,
    RecordRef,
    RecordStatus,
    StateColumns,
    StatefulFields,
    TableRecord,
)
from ..errors import InvalidTransitionError, RecordNotFoundError
from .notifications import ChangeNotificationRelay
from .status import ReadAction, resolve_record, route_read, visible_statuses
from .transitions import TransitionLog

logger = structlog.get_logger()

# A shadow and its counterpart link to each other, so a read follows at most one hop.
MAX_READ_HOPS = 1

EDITABLE_STATUSES = (RecordStatus.DRAFT, RecordStatus.PUBLISHED, RecordStatus.CHANGED)
DELETABLE_STATUSES = (RecordStatus.DRAFT, RecordStatus.PUBLISHED, RecordStatus.CHANGED)
PUBLISHABLE_STATUSES = (
    RecordStatus.DRAFT,
    RecordStatus.CHANGED,
    RecordStatus.PUBLISHED_TO_BE_DELETED,
)


class PublishResult(NamedTuple):
    published_records: List[ExternalRecord]
    deleted_record_ids: List[str]


def _values(statuses: Iterable[RecordStatus]) -> tuple:
    return tuple(s.value for s in statuses)


class PublishStateMachine:
    """
    Create, read, update, delete and publish records of one base.

    Args:
        client: Record store accessor (``AirtableClient`` or compatible)
        relay: Receives a change event after every successful mutation
        log: Keeps the transitions run by this instance
    """

    def __init__(
        self,
        client: Any,
        relay: Optional[ChangeNotificationRelay] = None,
        log: Optional[TransitionLog] = None,
        columns: Optional[StateColumns] = None,
    ):
        self.client = client
        self.columns = columns or getattr(client, "columns", None) or StateColumns()
        self.relay = relay or ChangeNotificationRelay()
        self.log = log or TransitionLog()
        self.logger = logger.bind(component="publisher")

    # ------------------------------------------------------------------ #
    # reads
    # ------------------------------------------------------------------ #
    def resolve(self, row: TableRecord, table: str) -> ExternalRecord:
        return resolve_record(row, table, self.columns)

    def filter_visible(
        self,
        rows: Iterable[TableRecord],
        table: str,
        preview: bool,
        include_to_be_deleted: bool = False,
    ) -> List[ExternalRecord]:
        statuses = visible_statuses(preview, include_to_be_deleted)
        records = (self.resolve(row, table) for row in rows)
        return [record for record in records if record.status in statuses]

    async def get_records(
        self,
        table: str,
        preview: bool = False,
        include_to_be_deleted: bool = False,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Dict[str, str]]] = None,
        fields: Optional[List[str]] = None,
    ) -> List[ExternalRecord]:
        """All records of ``table`` visible in the given mode, in backend order."""
        rows = await self.client.list_records(table, filter=filter, sort=sort, fields=fields)
        records = self.filter_visible(rows, table, preview, include_to_be_deleted)
        self.logger.debug(
            "records_fetched", table=table, preview=preview, rows=len(rows), visible=len(records)
        )
        return records

    async def get_all_records(
        self, preview: bool = False, include_to_be_deleted: bool = False
    ) -> List[ExternalRecord]:
        """Visible records of every non-asset table in the base."""
        records: List[ExternalRecord] = []
        for table in await self.client.get_table_models():
            records.extend(
                await self.get_records(
                    table.name, preview=preview, include_to_be_deleted=include_to_be_deleted
                )
            )
        return records

    async def get_record(
        self,
        table: str,
        record_id: str,
        preview: bool = False,
        include_to_be_deleted: bool = False,
    ) -> Optional[ExternalRecord]:
        """
        Read one record by id, or None when it is missing or hidden.

        In preview a published row with pending edits reads as its shadow;
        in production a shadow reads as its published counterpart.
        """
        hops = 0
        while True:
            row = await self.client.get_record(table, record_id)
            if row is None:
                return None
            state = StatefulFields.split(row.fields, self.columns)
            route = route_read(state.status, state.related_id, preview, include_to_be_deleted)
            if route.action == ReadAction.RETURN:
                return self.resolve(row, table)
            if route.action == ReadAction.MISS or hops >= MAX_READ_HOPS:
                return None
            record_id = route.target_id
            include_to_be_deleted = False
            hops += 1

    async def _require(self, table: str, record_id: str) -> ExternalRecord:
        record = await self.get_record(table, record_id, preview=True, include_to_be_deleted=True)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        return record

    def _user_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        user_fields = self.columns.strip(fields)
        if len(user_fields) != len(fields):
            self.logger.warning("reserved_columns_ignored", columns=list(self.columns.reserved))
        return user_fields

    def _state(
        self,
        status: RecordStatus,
        related_id: Optional[str] = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Backend row for ``fields`` with the reserved columns set."""
        return StatefulFields(
            status=status, related_id=related_id, fields=fields or {}
        ).to_row(self.columns)

    # ------------------------------------------------------------------ #
    # mutations
    # ------------------------------------------------------------------ #
    async def create_record(
        self,
        table: str,
        fields: Dict[str, Any],
        status: Optional[RecordStatus] = None,
    ) -> ExternalRecord:
        """
        Insert a row. It starts as ``draft`` unless ``status`` overrides it,
        which is meant for seeding and tests only.
        """
        row_fields = self._user_fields(fields)
        row_fields[self.columns.status_field] = (status or RecordStatus.DRAFT).value

        transition = self.log.begin("create", table, "new", "new")
        row = await transition.run_step(
            "create_row", lambda: self.client.create_record(table, row_fields)
        )
        transition.record_id = row.id

        record = self.resolve(row, table)
        self.logger.info("record_created", table=table, record_id=record.id, status=row_fields[self.columns.status_field])
        self.relay.notify(ChangeEventTypes.RECORD_CREATED, records=[record])
        return record

    async def update_record(
        self, table: str, record_id: str, fields: Dict[str, Any]
    ) -> ExternalRecord:
        """
        Apply ``fields`` to the most current version of a record.

        Published rows are copy-on-write: the edit lands in a new shadow row.
        Drafts and existing shadows are edited in place.
        """
        edits = self._user_fields(fields)
        current = await self._require(table, record_id)
        log = self.logger.bind(table=table, record_id=current.id, status=current.status)
        log.info("record_update_start")

        if current.status == RecordStatus.PUBLISHED:
            transition = self.log.begin("update", table, current.id, current.status.value)
            shadow_fields = self._state(
                RecordStatus.CHANGED, current.record_id, {**current.fields, **edits}
            )
            shadow = await transition.run_step(
                "create_shadow", lambda: self.client.create_record(table, shadow_fields)
            )
            await transition.run_step(
                "mark_published_has_changes",
                lambda: self.client.update_record(
                    table,
                    current.record_id,
                    self._state(RecordStatus.PUBLISHED_HAS_CHANGES, shadow.id),
                ),
            )
            row = shadow
        elif current.status == RecordStatus.DRAFT:
            transition = self.log.begin("update", table, current.id, current.status.value)
            row = await transition.run_step(
                "update_row", lambda: self.client.update_record(table, current.record_id, edits)
            )
        elif current.status == RecordStatus.CHANGED:
            transition = self.log.begin("update", table, current.id, current.status.value)
            row = await transition.run_step(
                "update_shadow", lambda: self.client.update_record(table, current.record_id, edits)
            )
        else:
            raise InvalidTransitionError(
                "update", _status_value(current.status), _values(EDITABLE_STATUSES)
            )

        record = self.resolve(row, table)
        log.info("record_updated", shadow_id=record.shadow_id)
        self.relay.notify(ChangeEventTypes.RECORD_UPDATED, records=[record])
        return record

    async def delete_record(self, table: str, record_id: str) -> List[str]:
        """
        Delete a record and return the ids callers should drop.

        Published content stays live in production until the deletion is
        published. Deleting a pending edit marks its counterpart and
        destroys the shadow.
        """
        current = await self._require(table, record_id)
        log = self.logger.bind(table=table, record_id=current.id, status=current.status)

        if current.status == RecordStatus.PUBLISHED:
            transition = self.log.begin("delete", table, current.id, current.status.value)
            await transition.run_step(
                "mark_to_be_deleted",
                lambda: self.client.update_record(
                    table, current.record_id, self._state(RecordStatus.PUBLISHED_TO_BE_DELETED)
                ),
            )
            deleted_ids = [current.id]
        elif current.status == RecordStatus.DRAFT:
            transition = self.log.begin("delete", table, current.id, current.status.value)
            await transition.run_step(
                "mark_deleted",
                lambda: self.client.update_record(
                    table, current.record_id, self._state(RecordStatus.DELETED)
                ),
            )
            deleted_ids = [current.id]
        elif current.status == RecordStatus.CHANGED:
            transition = self.log.begin("delete", table, current.id, current.status.value)
            await transition.run_step(
                "mark_counterpart_to_be_deleted",
                lambda: self.client.update_record(
                    table, current.id, self._state(RecordStatus.PUBLISHED_TO_BE_DELETED)
                ),
            )
            await transition.run_step(
                "destroy_shadow", lambda: self.client.destroy_record(table, current.record_id)
            )
            deleted_ids = [current.record_id, current.id]
        else:
            raise InvalidTransitionError(
                "delete", _status_value(current.status), _values(DELETABLE_STATUSES)
            )

        log.info("record_deleted", deleted_ids=deleted_ids)
        self.relay.notify(ChangeEventTypes.RECORD_DELETED, deleted_ids=deleted_ids)
        return deleted_ids

    async def publish_records(self, refs: Iterable[RecordRef]) -> PublishResult:
        """
        Publish pending changes of each referenced record, in order.

        References are independent: a failure stops the batch but does not
        undo earlier ones, which are still reported to the listener before
        the error propagates.
        """
        published: List[ExternalRecord] = []
        deleted_ids: List[str] = []
        try:
            for ref in refs:
                await self._publish_one(ref, published, deleted_ids)
        except Exception:
            if published or deleted_ids:
                try:
                    self.relay.notify(
                        ChangeEventTypes.RECORDS_PUBLISHED, records=published, deleted_ids=deleted_ids
                    )
                except Exception:
                    # the publish failure is the error the caller gets
                    self.logger.exception(
                        "partial_publish_notify_failed",
                        published=len(published),
                        deleted=len(deleted_ids),
                    )
            raise

        self.logger.info(
            "records_published", published=len(published), deleted=len(deleted_ids)
        )
        self.relay.notify(
            ChangeEventTypes.RECORDS_PUBLISHED, records=published, deleted_ids=deleted_ids
        )
        return PublishResult(published, deleted_ids)

    async def _publish_one(
        self, ref: RecordRef, published: List[ExternalRecord], deleted_ids: List[str]
    ) -> None:
        table = ref.table
        current = await self._require(table, ref.record_id)

        if current.status == RecordStatus.DRAFT:
            transition = self.log.begin("publish", table, current.id, current.status.value)
            row = await transition.run_step(
                "mark_published",
                lambda: self.client.update_record(
                    table, current.record_id, self._state(RecordStatus.PUBLISHED)
                ),
            )
            published.append(self.resolve(row, table))
        elif current.status == RecordStatus.CHANGED:
            transition = self.log.begin("publish", table, current.id, current.status.value)
            folded = self._state(RecordStatus.PUBLISHED, fields=current.fields)
            row = await transition.run_step(
                "fold_shadow_into_published",
                lambda: self.client.replace_record(table, current.id, folded),
            )
            await transition.run_step(
                "destroy_shadow", lambda: self.client.destroy_record(table, current.record_id)
            )
            published.append(self.resolve(row, table))
        elif current.status == RecordStatus.PUBLISHED_TO_BE_DELETED:
            transition = self.log.begin("publish", table, current.id, current.status.value)
            await transition.run_step(
                "mark_deleted",
                lambda: self.client.update_record(
                    table, current.record_id, self._state(RecordStatus.DELETED)
                ),
            )
            deleted_ids.append(current.id)
        else:
            raise InvalidTransitionError(
                "publish", _status_value(current.status), _values(PUBLISHABLE_STATUSES)
            )


def _status_value(status: Optional[RecordStatus]) -> Optional[str]:
    return status.value if status is not None else None
