"""
Record store accessor for the Airtable REST API.

Thin wrapper over the table service primitives: select, find, create,
update, replace and destroy. Every call is one network round trip, there
are no retries and no batching. Failures surface as ``TransportError``.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

import httpx

from ..config import AirtableConfig
from ..data.models.records import StateColumns, TableModel, TableRecord
from ..errors import ConfigurationError, TransportError


logger = logging.getLogger(__name__)


def build_filter_formula(filter: Dict[str, Any]) -> Optional[str]:
    """
    Compile an equality-AND filter into a formula.

    Examples:
        {"Slug": "home"} -> '{Slug}="home"'
        {"A": 1, "B": "x"} -> 'AND({A}="1",{B}="x")'
    """
    expressions = []
    for key, value in filter.items():
        text = str(value).replace("\\", "\\\\").replace('"', '\\"')
        expressions.append(f'{{{key}}}="{text}"')
    if not expressions:
        return None
    if len(expressions) == 1:
        return expressions[0]
    return f"AND({','.join(expressions)})"


def _response_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class AirtableClient:
    """
    Client for one Airtable base.

    Reserved state columns are passed through untouched on rows; only the
    schema listing strips them.
    """

    def __init__(
        self,
        config: AirtableConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.personal_access_token:
            raise ConfigurationError("AirtableClient error: personal access token was not provided")
        if not config.base_id:
            raise ConfigurationError("AirtableClient error: base id was not provided")
        self.config = config
        self.base_id = config.base_id
        self.columns = StateColumns(
            status_field=config.status_field,
            related_field=config.related_field,
        )
        self.client = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            headers={"Authorization": f"Bearer {config.personal_access_token}"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "AirtableClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _table_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url += f"/{quote(record_id, safe='')}"
        return url

    async def _request(
        self, method: str, url: str, allow_not_found: bool = False, **kwargs: Any
    ) -> Optional[httpx.Response]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Table service request failed: {method} {url}: {e}")
            raise TransportError(
                f"error calling table service, request: {method} {url}, error: {e}"
            ) from e

        if allow_not_found and response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _response_detail(response)
            logger.error(f"Table service rejected {method} {url}: {response.status_code}")
            raise TransportError(
                f"error calling table service, status: {response.status_code}, data: {detail}",
                status_code=response.status_code,
                detail=detail,
            ) from e
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    async def list_records(
        self,
        table: str,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Dict[str, str]]] = None,
        fields: Optional[List[str]] = None,
    ) -> List[TableRecord]:
        """Select rows of ``table``, following the pagination cursor to the end."""
        params: Dict[str, Any] = {}
        if fields:
            params["fields[]"] = list(dict.fromkeys([*fields, *self.columns.reserved]))
        if sort:
            for i, item in enumerate(sort):
                params[f"sort[{i}][field]"] = item["field"]
                params[f"sort[{i}][direction]"] = item.get("direction", "asc")
        if filter:
            formula = build_filter_formula(filter)
            if formula:
                params["filterByFormula"] = formula

        records: List[TableRecord] = []
        offset: Optional[str] = None
        while True:
            page_params = dict(params)
            if offset:
                page_params["offset"] = offset
            response = await self._request("GET", self._table_url(table), params=page_params)
            data = response.json()
            records.extend(TableRecord.model_validate(r) for r in data.get("records", []))
            offset = data.get("offset")
            if not offset:
                break
        logger.debug(f"Fetched {len(records)} records from table {table}")
        return records

    async def get_record(self, table: str, record_id: str) -> Optional[TableRecord]:
        """Find a row by id; a missing row is None."""
        response = await self._request(
            "GET", self._table_url(table, record_id), allow_not_found=True
        )
        if response is None:
            return None
        return TableRecord.model_validate(response.json())

    async def create_record(self, table: str, fields: Dict[str, Any]) -> TableRecord:
        response = await self._request("POST", self._table_url(table), json={"fields": fields})
        return TableRecord.model_validate(response.json())

    async def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> TableRecord:
        """Patch the given columns, leaving the others untouched."""
        response = await self._request(
            "PATCH", self._table_url(table, record_id), json={"fields": fields}
        )
        return TableRecord.model_validate(response.json())

    async def replace_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> TableRecord:
        """Overwrite the row: columns missing from ``fields`` are cleared."""
        response = await self._request(
            "PUT", self._table_url(table, record_id), json={"fields": fields}
        )
        return TableRecord.model_validate(response.json())

    async def destroy_record(self, table: str, record_id: str) -> None:
        await self._request("DELETE", self._table_url(table, record_id))

    async def get_table_models(
        self,
        include_assets_table: bool = False,
        assets_table_name: Optional[str] = None,
    ) -> List[TableModel]:
        """Read the base schema with the reserved state columns removed."""
        response = await self._request("GET", f"meta/bases/{self.base_id}/tables")
        assets_table_name = assets_table_name or self.config.assets_table
        models = []
        for table in response.json().get("tables", []):
            if not include_assets_table and table.get("name") == assets_table_name:
                continue
            table = dict(table)
            table["fields"] = [
                f for f in table.get("fields", []) if f.get("name") not in self.columns.reserved
            ]
            models.append(TableModel.model_validate(table))
        return models

    async def get_webhook(
        self, webhook_id: Optional[str] = None, webhook_url: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Find a registered webhook by id or notification URL."""
        if webhook_id is None and webhook_url is None:
            return None
        response = await self._request("GET", f"bases/{self.base_id}/webhooks")
        for webhook in response.json().get("webhooks", []):
            if webhook.get("id") == webhook_id or webhook.get("notificationUrl") == webhook_url:
                return webhook
        return None

    async def create_webhook(self, webhook_url: str) -> Dict[str, Any]:
        """Register a webhook for row and schema changes."""
        data = {
            "notificationUrl": webhook_url,
            "specification": {
                "options": {"filters": {"dataTypes": ["tableData", "tableFields"]}}
            },
        }
        response = await self._request("POST", f"bases/{self.base_id}/webhooks", json=data)
        return response.json()

    async def get_webhook_payloads(
        self, webhook_id: str, cursor: Optional[int] = None
    ) -> Dict[str, Any]:
        params = {"cursor": cursor} if cursor is not None else None
        response = await self._request(
            "GET", f"bases/{self.base_id}/webhooks/{webhook_id}/payloads", params=params
        )
        return response.json()
