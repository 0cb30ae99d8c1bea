"""
Table-service content source.

Presents one Airtable base to the visual editor and the site as a content
source with drafts, pending edits and publishing, the way the other CMS
backends behave natively.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
import logging

import httpx

from .config import AirtableConfig
from .core.notifications import ChangeListener, ChangeNotificationRelay
from .core.publisher import PublishResult, PublishStateMachine
from .core.references import ReferenceField, index_rows, reference_fields_for, resolve_references
from .core.transitions import TransitionLog
from .data.models.records import AssetRecord, ExternalRecord, RecordRef, TableModel
from .integrations.airtable import AirtableClient

logger = logging.getLogger(__name__)


class TableContentSource:
    """
    Content source over one base.

    ``init()`` must be awaited before use; a pre-built client (anything
    implementing the accessor methods) can be injected for tests.
    """

    content_source_type = "airtable"
    project_environment = "master"

    def __init__(self, config: AirtableConfig, client: Optional[Any] = None):
        self.config = config
        self.client = client
        self.relay = ChangeNotificationRelay(source=self.content_source_type)
        self.log = TransitionLog()
        self.machine: Optional[PublishStateMachine] = None
        if client is not None:
            self._attach(client)

    @property
    def project_id(self) -> str:
        return self.config.base_id

    @property
    def manage_url(self) -> str:
        return self.config.manage_url or "https://www.example.com"

    @property
    def assets_table(self) -> str:
        return self.config.assets_table

    def _attach(self, client: Any) -> None:
        self.client = client
        self.machine = PublishStateMachine(client, relay=self.relay, log=self.log)

    async def init(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """Create the accessor. Raises ``ConfigurationError`` on missing credentials."""
        if self.client is None:
            self._attach(AirtableClient(self.config, transport=transport))
        logger.info(f"Content source initialized for base {self.project_id}")

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    def _machine(self) -> PublishStateMachine:
        if self.machine is None:
            raise RuntimeError("Call init() before using the content source")
        return self.machine

    # change watching
    def start_watching_content_updates(self, listener: ChangeListener) -> None:
        self.relay.subscribe(listener)

    def stop_watching_content_updates(self) -> None:
        self.relay.unsubscribe()

    # reads
    async def get_models(self) -> List[TableModel]:
        """Content tables, reserved state columns removed."""
        self._machine()
        return await self.client.get_table_models()

    async def get_documents(
        self, preview: bool = True, tables: Optional[Iterable[str]] = None
    ) -> List[ExternalRecord]:
        """
        Visible documents with their link fields resolved.

        Every table is fetched once so that references into tables outside
        ``tables`` still resolve.
        """
        machine = self._machine()
        wanted = set(tables) if tables is not None else None
        models = await self.client.get_table_models(
            include_assets_table=True, assets_table_name=self.assets_table
        )
        table_names = {model.id: model.name for model in models}

        rows_by_table = {}
        references: Dict[str, List[ReferenceField]] = {}
        documents: List[ExternalRecord] = []
        for model in models:
            rows = await self.client.list_records(model.name)
            rows_by_table[model.name] = index_rows(rows)
            if model.name == self.assets_table:
                continue
            if wanted is not None and model.name not in wanted:
                continue
            references[model.name] = reference_fields_for(model, table_names, self.assets_table)
            documents.extend(machine.filter_visible(rows, model.name, preview))

        logger.debug(f"Resolved {len(documents)} documents (preview={preview})")
        return resolve_references(documents, references, rows_by_table, preview, machine.columns)

    async def get_document(
        self, table: str, record_id: str, preview: bool = True
    ) -> Optional[ExternalRecord]:
        return await self._machine().get_record(table, record_id, preview=preview)

    async def get_assets(self) -> List[AssetRecord]:
        self._machine()
        rows = await self.client.list_records(self.assets_table)
        assets = [AssetRecord.from_row(row, self.assets_table) for row in rows]
        return [asset for asset in assets if asset is not None]

    # writes
    async def upload_asset(self, url: str, filename: str) -> Optional[AssetRecord]:
        """Create an asset row from a public URL."""
        self._machine()
        row = await self.client.create_record(
            self.assets_table,
            {"Title": filename, "Asset": [{"url": url, "filename": filename}]},
        )
        return AssetRecord.from_row(row, self.assets_table)

    async def create_document(self, table: str, fields: Dict[str, Any]) -> ExternalRecord:
        return await self._machine().create_record(table, fields)

    async def update_document(
        self, table: str, record_id: str, fields: Dict[str, Any]
    ) -> ExternalRecord:
        return await self._machine().update_record(table, record_id, fields)

    async def delete_document(self, table: str, record_id: str) -> List[str]:
        return await self._machine().delete_record(table, record_id)

    async def publish_documents(self, refs: Iterable[RecordRef]) -> PublishResult:
        return await self._machine().publish_records(refs)
