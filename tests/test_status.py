"""Tests for status resolution and read routing."""

import pytest

from content_bridge.core.status import (
    PREVIEW_STATUSES,
    PRODUCTION_STATUSES,
    ReadAction,
    resolve_record,
    route_read,
    visible_statuses,
)
from content_bridge.data.models.records import (
    DocumentStatus,
    RecordStatus,
    StateColumns,
    StatefulFields,
    TableRecord,
)


def _row(record_id="rec1", **fields):
    return TableRecord(id=record_id, createdTime="2024-01-01T00:00:00.000Z", fields=fields)


class TestResolveRecord:
    """Test cases for mapping raw rows to external records."""

    @pytest.mark.parametrize(
        "status,label",
        [
            ("draft", DocumentStatus.ADDED),
            ("published", DocumentStatus.PUBLISHED),
            ("published-has-changes", DocumentStatus.PUBLISHED),
            ("published-to-be-deleted", DocumentStatus.PUBLISHED),
            ("deleted", DocumentStatus.DELETED),
        ],
    )
    def test_label_for_each_status(self, status, label):
        """Test every stored status maps to its editor label."""
        record = resolve_record(_row(State=status, Title="x"), "Pages")

        assert record.label == label
        assert record.id == "rec1"
        assert record.record_id == "rec1"
        assert record.fields == {"Title": "x"}

    def test_changed_row_takes_counterpart_id(self):
        """Test a shadow is reported under the id of its published row."""
        record = resolve_record(_row("recShadow", State="changed", Related=["recOrig"]), "Pages")

        assert record.id == "recOrig"
        assert record.record_id == "recShadow"
        assert record.shadow_id == "recShadow"
        assert record.label == DocumentStatus.MODIFIED

    def test_changed_row_without_link_keeps_own_id(self):
        """Test a shadow that lost its link falls back to its own id."""
        record = resolve_record(_row("recShadow", State="changed"), "Pages")

        assert record.id == "recShadow"
        assert record.shadow_id is None
        assert record.label == DocumentStatus.MODIFIED

    def test_published_has_changes_points_at_shadow(self):
        """Test the published row exposes the id of its pending edit."""
        record = resolve_record(
            _row("recOrig", State="published-has-changes", Related=["recShadow"]), "Pages"
        )

        assert record.id == "recOrig"
        assert record.shadow_id == "recShadow"

    @pytest.mark.parametrize("value", [None, "", "archived", 42, ["draft"], {"a": 1}])
    def test_unknown_status_is_total(self, value):
        """Test malformed status values resolve to an added record."""
        fields = {"Title": "x"}
        if value is not None:
            fields["State"] = value
        record = resolve_record(_row(**fields), "Pages")

        assert record.status is None
        assert record.label == DocumentStatus.ADDED
        assert record.id == "rec1"
        assert record.fields == {"Title": "x"}

    def test_reserved_columns_are_stripped(self):
        """Test neither reserved column leaks into user fields."""
        record = resolve_record(_row(State="published", Related=[], Title="x"), "Pages")

        assert "State" not in record.fields
        assert "Related" not in record.fields

    def test_custom_column_names(self):
        """Test the reserved columns can be renamed."""
        columns = StateColumns(status_field="Status", related_field="Twin")
        record = resolve_record(
            _row("recShadow", Status="changed", Twin=["recOrig"], State="kept"), "Pages", columns
        )

        assert record.id == "recOrig"
        assert record.fields == {"State": "kept"}

    @pytest.mark.parametrize(
        "legacy,status",
        [
            ("published-changed", RecordStatus.PUBLISHED_HAS_CHANGES),
            ("published-deleted", RecordStatus.PUBLISHED_TO_BE_DELETED),
        ],
    )
    def test_legacy_status_spellings(self, legacy, status):
        """Test spellings written by older adapters are normalised."""
        record = resolve_record(_row(State=legacy), "Pages")

        assert record.status == status
        assert record.label == DocumentStatus.PUBLISHED


class TestStatefulFields:
    """Test cases for splitting the reserved columns."""

    def test_split_and_rebuild(self):
        """Test splitting a row and writing it back."""
        columns = StateColumns()
        state = StatefulFields.split(
            {"Title": "x", "State": "changed", "Related": ["recOrig"]}, columns
        )

        assert state.status == RecordStatus.CHANGED
        assert state.related_id == "recOrig"
        assert state.fields == {"Title": "x"}
        assert state.to_row(columns) == {"Title": "x", "State": "changed", "Related": ["recOrig"]}

    def test_related_as_plain_string(self):
        """Test a single id stored as a string is accepted."""
        state = StatefulFields.split({"Related": "recOrig"}, StateColumns())

        assert state.related_id == "recOrig"

    def test_empty_related(self):
        """Test an empty link list means no counterpart."""
        state = StatefulFields.split({"State": "published", "Related": []}, StateColumns())

        assert state.related_id is None
        assert state.to_row(StateColumns())["Related"] == []


class TestVisibility:
    """Test cases for bulk-read visibility sets."""

    def test_preview_statuses(self):
        """Test preview shows drafts, shadows and published rows."""
        assert visible_statuses(preview=True) == PREVIEW_STATUSES
        assert RecordStatus.PUBLISHED_HAS_CHANGES not in PREVIEW_STATUSES
        assert RecordStatus.PUBLISHED_TO_BE_DELETED not in PREVIEW_STATUSES

    def test_preview_with_to_be_deleted(self):
        """Test the explicit flag adds rows pending deletion in preview."""
        statuses = visible_statuses(preview=True, include_to_be_deleted=True)

        assert RecordStatus.PUBLISHED_TO_BE_DELETED in statuses

    def test_production_statuses(self):
        """Test production shows what is live, pending deletions included."""
        assert visible_statuses(preview=False) == PRODUCTION_STATUSES
        assert RecordStatus.DRAFT not in PRODUCTION_STATUSES
        assert RecordStatus.CHANGED not in PRODUCTION_STATUSES

    def test_deleted_never_visible(self):
        """Test soft-deleted rows are hidden in every mode."""
        for preview in (True, False):
            for include in (True, False):
                assert RecordStatus.DELETED not in visible_statuses(preview, include)


class TestRouteRead:
    """Test cases for single-record read routing."""

    @pytest.mark.parametrize(
        "status,preview,action",
        [
            (RecordStatus.DRAFT, True, ReadAction.RETURN),
            (RecordStatus.DRAFT, False, ReadAction.MISS),
            (RecordStatus.CHANGED, True, ReadAction.RETURN),
            (RecordStatus.CHANGED, False, ReadAction.FOLLOW),
            (RecordStatus.PUBLISHED, True, ReadAction.RETURN),
            (RecordStatus.PUBLISHED, False, ReadAction.RETURN),
            (RecordStatus.PUBLISHED_HAS_CHANGES, True, ReadAction.FOLLOW),
            (RecordStatus.PUBLISHED_HAS_CHANGES, False, ReadAction.RETURN),
            (RecordStatus.PUBLISHED_TO_BE_DELETED, True, ReadAction.MISS),
            (RecordStatus.PUBLISHED_TO_BE_DELETED, False, ReadAction.MISS),
            (RecordStatus.DELETED, True, ReadAction.MISS),
            (RecordStatus.DELETED, False, ReadAction.MISS),
            (None, True, ReadAction.MISS),
        ],
    )
    def test_routes(self, status, preview, action):
        """Test the routing table for each status and mode."""
        route = route_read(status, "recOther", preview)

        assert route.action == action
        if action == ReadAction.FOLLOW:
            assert route.target_id == "recOther"

    def test_to_be_deleted_with_flag(self):
        """Test rows pending deletion are returned when asked for."""
        route = route_read(RecordStatus.PUBLISHED_TO_BE_DELETED, None, False, include_to_be_deleted=True)

        assert route.action == ReadAction.RETURN

    def test_follow_without_link_is_miss(self):
        """Test a dangling follow does not raise."""
        route = route_read(RecordStatus.PUBLISHED_HAS_CHANGES, None, True)

        assert route.action == ReadAction.MISS
