"""Tests for link-field resolution."""

import pytest

from content_bridge.core.references import (
    ReferenceField,
    index_rows,
    reference_fields_for,
    resolve_references,
    select_visible,
)
from content_bridge.core.status import resolve_record
from content_bridge.data.models.records import StateColumns

TABLE_NAMES = {"tblHero": "HeroSection", "tblButton": "Button", "tblAsset": "Assets"}


def _index(store):
    return {table: index_rows(list(rows.values())) for table, rows in store.tables.items()}


def _hero(store):
    return resolve_record(store.row("HeroSection", "recHero"), "HeroSection")


class TestReferenceFields:
    """Test cases for deriving reference fields from the schema."""

    def test_from_link_columns(self, site_store):
        """Test link columns become reference fields."""
        hero = site_store.models[0]

        fields = reference_fields_for(hero, TABLE_NAMES, assets_table="Assets")

        assert fields == [
            ReferenceField(name="Buttons", target_table="Button", many=True, stateful=True),
            ReferenceField(name="Asset", target_table="Assets", many=False, stateful=False),
        ]

    def test_table_without_links(self, site_store):
        """Test plain tables have no reference fields."""
        assert reference_fields_for(site_store.models[1], TABLE_NAMES) == []


class TestSelectVisible:
    """Test cases for the in-memory single read."""

    def test_preview_follows_to_shadow(self, site_store):
        """Test a row with pending edits resolves to its shadow in preview."""
        rows = _index(site_store)["Button"]

        row = select_visible(rows, "recBtnEdited", True, StateColumns())

        assert row.id == "recBtnShadow"

    def test_production_keeps_published(self, site_store):
        """Test production keeps the published row."""
        rows = _index(site_store)["Button"]

        assert select_visible(rows, "recBtnEdited", False, StateColumns()).id == "recBtnEdited"
        assert select_visible(rows, "recBtnShadow", False, StateColumns()).id == "recBtnEdited"

    def test_hidden_rows(self, site_store):
        """Test drafts, deleted and missing rows are hidden in production."""
        rows = _index(site_store)["Button"]

        for record_id in ("recBtnDraft", "recBtnGone", "recMissing"):
            assert select_visible(rows, record_id, False, StateColumns()) is None


class TestResolveReferences:
    """Test cases for replacing link ids with records."""

    def _resolve(self, store, preview):
        references = {
            "HeroSection": reference_fields_for(store.models[0], TABLE_NAMES, assets_table="Assets")
        }
        (hero,) = resolve_references([_hero(store)], references, _index(store), preview)
        return hero

    def test_preview(self, site_store):
        """Test preview resolves drafts and pending edits."""
        hero = self._resolve(site_store, preview=True)

        buttons = hero.fields["Buttons"]
        assert [b["id"] for b in buttons] == ["recBtnLive", "recBtnDraft", "recBtnEdited"]
        assert [b["fields"]["Label"] for b in buttons] == ["Live", "Draft", "New"]
        assert buttons[2]["label"] == "modified"

    def test_production(self, site_store):
        """Test production resolves only live content."""
        hero = self._resolve(site_store, preview=False)

        buttons = hero.fields["Buttons"]
        assert [b["id"] for b in buttons] == ["recBtnLive", "recBtnEdited"]
        assert [b["fields"]["Label"] for b in buttons] == ["Live", "Old"]

    @pytest.mark.parametrize("preview,label", [(True, "New"), (False, "Old")])
    def test_reverse_link_to_shadow_pair(self, site_store, preview, label):
        """Test a link column holding both rows of a shadow pair yields one document."""
        site_store.row("HeroSection", "recHero").fields["Buttons"] = ["recBtnEdited", "recBtnShadow"]

        hero = self._resolve(site_store, preview=preview)

        buttons = hero.fields["Buttons"]
        assert [b["id"] for b in buttons] == ["recBtnEdited"]
        assert buttons[0]["fields"]["Label"] == label

    def test_single_asset_link(self, site_store):
        """Test a single link into the assets table becomes one asset."""
        hero = self._resolve(site_store, preview=False)

        asset = hero.fields["Asset"]
        assert asset["id"] == "recAsset1"
        assert asset["url"] == "https://cdn.example.com/hero.png"
        assert asset["content_type"] == "image/png"

    def test_single_link_to_nothing(self, site_store):
        """Test an unresolvable single link becomes None."""
        site_store.row("HeroSection", "recHero").fields["Asset"] = ["recNope"]

        hero = self._resolve(site_store, preview=True)

        assert hero.fields["Asset"] is None

    def test_original_is_not_modified(self, site_store):
        """Test resolution returns copies."""
        original = _hero(site_store)
        references = {
            "HeroSection": reference_fields_for(site_store.models[0], TABLE_NAMES, assets_table="Assets")
        }

        resolve_references([original], references, _index(site_store), True)

        assert original.fields["Buttons"][0] == "recBtnLive"

    def test_nested_links_stay_ids(self, site_store):
        """Test resolution is one level deep."""
        site_store.row("Button", "recBtnLive").fields["Parent"] = ["recHero"]
        references = {
            "HeroSection": [ReferenceField("Buttons", "Button")],
            "Button": [ReferenceField("Parent", "HeroSection")],
        }

        (hero,) = resolve_references([_hero(site_store)], references, _index(site_store), False)

        assert hero.fields["Buttons"][0]["fields"]["Parent"] == ["recHero"]

    @pytest.mark.parametrize("value", [None, 7, {"id": "recBtnLive"}])
    def test_malformed_link_values(self, site_store, value):
        """Test malformed link cells resolve to an empty list."""
        site_store.row("HeroSection", "recHero").fields["Buttons"] = value

        hero = self._resolve(site_store, preview=True)

        assert hero.fields["Buttons"] == []


class TestContentSourceDocuments:
    """Test cases for documents read through the content source."""

    @pytest.mark.asyncio
    async def test_get_documents_preview(self, content_source):
        """Test documents of every content table with links resolved."""
        documents = await content_source.get_documents(preview=True)

        by_id = {d.id: d for d in documents}
        assert set(by_id) == {"recHero", "recBtnLive", "recBtnDraft", "recBtnEdited"}
        assert by_id["recBtnEdited"].fields == {"Label": "New"}
        assert len(by_id["recHero"].fields["Buttons"]) == 3
        assert by_id["recHero"].fields["Asset"]["file_name"] == "hero.png"

    @pytest.mark.asyncio
    async def test_get_documents_for_one_table(self, content_source):
        """Test links into tables outside the selection still resolve."""
        documents = await content_source.get_documents(preview=False, tables=["HeroSection"])

        (hero,) = documents
        assert [b["fields"]["Label"] for b in hero.fields["Buttons"]] == ["Live", "Old"]

    @pytest.mark.asyncio
    async def test_get_assets(self, content_source, site_store):
        """Test assets without an attachment are skipped."""
        site_store.seed("Assets", {"Title": "empty"}, record_id="recAssetEmpty")

        assets = await content_source.get_assets()

        assert [a.id for a in assets] == ["recAsset1"]
        assert assets[0].width == 800

    @pytest.mark.asyncio
    async def test_upload_asset(self, content_source, site_store):
        """Test uploading creates an asset row from a URL."""
        asset = await content_source.upload_asset("https://cdn.example.com/a.jpg", "a.jpg")

        assert asset.url == "https://cdn.example.com/a.jpg"
        assert asset.file_name == "a.jpg"
        assert site_store.row("Assets", asset.id).fields["Title"] == "a.jpg"
