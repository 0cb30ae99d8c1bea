"""Test configuration and fixtures."""

from typing import Any, Dict, List, Optional

import pytest
import structlog

from content_bridge.config import AirtableConfig
from content_bridge.content_source import TableContentSource
from content_bridge.core.notifications import ChangeNotificationRelay
from content_bridge.core.publisher import PublishStateMachine
from content_bridge.data.models.records import (
    StateColumns,
    TableField,
    TableModel,
    TableRecord,
)
from content_bridge.errors import TransportError


def _clean(fields: Dict[str, Any]) -> Dict[str, Any]:
    # The table service omits empty cells from responses.
    return {k: v for k, v in fields.items() if v not in (None, [], "")}


class FakeTableService:
    """
    In-memory stand-in for the record store accessor.

    Rows keep insertion order, every call is recorded in ``calls`` and
    ``fail_on(method)`` makes the next call of that method raise.
    """

    def __init__(self):
        self.columns = StateColumns()
        self.tables: Dict[str, Dict[str, TableRecord]] = {}
        self.models: List[TableModel] = []
        self.calls: List[tuple] = []
        self.closed = False
        self._failures: Dict[str, Exception] = {}
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"rec{self._counter:04d}"

    def fail_on(self, method: str, error: Optional[Exception] = None) -> None:
        self._failures[method] = error or TransportError(
            "error calling table service, status: 500", status_code=500
        )

    def _call(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        if method in self._failures:
            raise self._failures.pop(method)

    def calls_of(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def row(self, table: str, record_id: str) -> Optional[TableRecord]:
        return self.tables.get(table, {}).get(record_id)

    def seed(self, table: str, fields: Dict[str, Any], record_id: Optional[str] = None) -> TableRecord:
        """Insert a row directly, bypassing call recording."""
        record_id = record_id or self._next_id()
        row = TableRecord(id=record_id, createdTime="2024-01-01T00:00:00.000Z", fields=_clean(fields))
        self.tables.setdefault(table, {})[record_id] = row
        return row

    def _existing(self, table: str, record_id: str) -> TableRecord:
        row = self.row(table, record_id)
        if row is None:
            raise TransportError("error calling table service, status: 404", status_code=404)
        return row

    async def close(self) -> None:
        self.closed = True

    async def list_records(self, table, filter=None, sort=None, fields=None):
        self._call("list_records", table)
        rows = list(self.tables.get(table, {}).values())
        if filter:
            rows = [
                r for r in rows
                if all(str(r.fields.get(k)) == str(v) for k, v in filter.items())
            ]
        return [r.model_copy(deep=True) for r in rows]

    async def get_record(self, table, record_id):
        self._call("get_record", table, record_id)
        row = self.row(table, record_id)
        return row.model_copy(deep=True) if row else None

    async def create_record(self, table, fields):
        self._call("create_record", table, dict(fields))
        return self.seed(table, fields).model_copy(deep=True)

    async def update_record(self, table, record_id, fields):
        self._call("update_record", table, record_id, dict(fields))
        row = self._existing(table, record_id)
        row.fields = _clean({**row.fields, **fields})
        return row.model_copy(deep=True)

    async def replace_record(self, table, record_id, fields):
        self._call("replace_record", table, record_id, dict(fields))
        row = self._existing(table, record_id)
        row.fields = _clean(dict(fields))
        return row.model_copy(deep=True)

    async def destroy_record(self, table, record_id):
        self._call("destroy_record", table, record_id)
        self._existing(table, record_id)
        del self.tables[table][record_id]

    async def get_table_models(self, include_assets_table=False, assets_table_name=None):
        self._call("get_table_models")
        assets = assets_table_name or "Assets"
        return [m for m in self.models if include_assets_table or m.name != assets]


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by entry points under test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def store() -> FakeTableService:
    """An empty in-memory table service."""
    return FakeTableService()


@pytest.fixture
def relay() -> ChangeNotificationRelay:
    return ChangeNotificationRelay()


@pytest.fixture
def events(relay) -> list:
    """Change events received by a subscribed listener."""
    received = []
    relay.subscribe(received.append)
    return received


@pytest.fixture
def machine(store, relay) -> PublishStateMachine:
    return PublishStateMachine(store, relay=relay)


@pytest.fixture
def config() -> AirtableConfig:
    return AirtableConfig(base_id="appTEST", personal_access_token="patTEST")


@pytest.fixture
def site_store(store) -> FakeTableService:
    """A store with a hero section linking to buttons and an asset."""
    store.models = [
        TableModel(
            id="tblHero",
            name="HeroSection",
            fields=[
                TableField(name="Title"),
                TableField(name="Buttons", type="multipleRecordLinks", options={"linkedTableId": "tblButton"}),
                TableField(
                    name="Asset",
                    type="multipleRecordLinks",
                    options={"linkedTableId": "tblAsset", "prefersSingleRecordLink": True},
                ),
            ],
        ),
        TableModel(id="tblButton", name="Button", fields=[TableField(name="Label")]),
        TableModel(
            id="tblAsset",
            name="Assets",
            fields=[TableField(name="Title"), TableField(name="Asset", type="multipleAttachments")],
        ),
    ]
    store.seed(
        "Assets",
        {
            "Title": "hero.png",
            "Asset": [{"url": "https://cdn.example.com/hero.png", "filename": "hero.png",
                       "type": "image/png", "size": 1024, "width": 800, "height": 600}],
        },
        record_id="recAsset1",
    )
    store.seed("Button", {"Label": "Live", "State": "published"}, record_id="recBtnLive")
    store.seed("Button", {"Label": "Draft", "State": "draft"}, record_id="recBtnDraft")
    store.seed(
        "Button",
        {"Label": "Old", "State": "published-has-changes", "Related": ["recBtnShadow"]},
        record_id="recBtnEdited",
    )
    store.seed(
        "Button",
        {"Label": "New", "State": "changed", "Related": ["recBtnEdited"]},
        record_id="recBtnShadow",
    )
    store.seed("Button", {"Label": "Gone", "State": "deleted"}, record_id="recBtnGone")
    store.seed(
        "HeroSection",
        {
            "Title": "Welcome",
            "State": "published",
            "Buttons": ["recBtnLive", "recBtnDraft", "recBtnEdited", "recBtnGone", "recMissing"],
            "Asset": ["recAsset1"],
        },
        record_id="recHero",
    )
    return store


@pytest.fixture
def content_source(config, site_store) -> TableContentSource:
    return TableContentSource(config, client=site_store)
