"""Unit tests for dashboard loading and reconciliation."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from envsync.dashboards import (
    DashboardReconciler,
    DuplicatePolicy,
    find_by_display_name,
    load_dashboard_definitions,
)
from envsync.errors import (
    ConfigurationError,
    DashboardNotFoundError,
    DashboardStoreError,
)
from envsync.schemas.dashboards import (
    DashboardDefinition,
    RemoteDashboard,
    RemoteDashboardRef,
    SyncAction,
)


def _definition(display_name: str, **extra: Any) -> DashboardDefinition:
    return DashboardDefinition.from_body({"displayName": display_name, **extra})


class TestLoadDashboardDefinitions:
    """Tests for load_dashboard_definitions."""

    def test_reads_files_in_sorted_order(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(b={"displayName": "B"}, a={"displayName": "A"})

        definitions = load_dashboard_definitions(directory)

        assert [d.display_name for d in definitions] == ["A", "B"]
        assert definitions[0].source is not None
        assert definitions[0].source.endswith("a.json")

    def test_ignores_non_json_files(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(a={"displayName": "A"})
        (directory / "README.md").write_text("# dashboards")

        assert len(load_dashboard_definitions(directory)) == 1

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_dashboard_definitions(tmp_path / "missing")

    def test_invalid_json(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards()
        (directory / "broken.json").write_text("{")

        with pytest.raises(ConfigurationError, match="broken.json"):
            load_dashboard_definitions(directory)

    def test_missing_display_name(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(nameless={"gridLayout": {}})

        with pytest.raises(ConfigurationError, match="displayName"):
            load_dashboard_definitions(directory)

    def test_non_string_display_name(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(numbered={"displayName": 5})

        with pytest.raises(ConfigurationError, match="numbered.json"):
            load_dashboard_definitions(directory)

    def test_duplicates_rejected_by_default(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(a={"displayName": "Same"}, b={"displayName": "Same"})

        with pytest.raises(ConfigurationError, match="Duplicate dashboard displayName"):
            load_dashboard_definitions(directory)

    def test_duplicates_last_wins(self, write_dashboards: Callable[..., Path]) -> None:
        directory = write_dashboards(
            a={"displayName": "Same", "v": 1},
            b={"displayName": "Other"},
            c={"displayName": "Same", "v": 2},
        )

        definitions = load_dashboard_definitions(directory, DuplicatePolicy.LAST_WINS)

        assert [d.display_name for d in definitions] == ["Other", "Same"]
        assert definitions[1].body["v"] == 2


class TestFindByDisplayName:
    """Tests for find_by_display_name."""

    def test_first_match_wins(self) -> None:
        remotes = [
            RemoteDashboardRef(name="n1", display_name="X"),
            RemoteDashboardRef(name="n2", display_name="X"),
        ]
        match = find_by_display_name(remotes, "X")
        assert match is not None
        assert match.name == "n1"

    def test_no_match(self) -> None:
        assert find_by_display_name([], "X") is None


class TestDashboardReconciler:
    """Tests for the upsert protocol."""

    def test_creates_missing_dashboard(self, fake_store: Any) -> None:
        results = DashboardReconciler(fake_store).reconcile([_definition("Frontend")])

        assert results[0].action == SyncAction.CREATED
        assert results[0].remote_name in fake_store.dashboards
        assert fake_store.mutations == [("create", "Frontend")]

    def test_updates_existing_with_fresh_etag(self, fake_store: Any) -> None:
        name = fake_store.seed({"displayName": "Frontend", "widgets": 1})
        fake_store.bump(name)

        results = DashboardReconciler(fake_store).reconcile(
            [_definition("Frontend", widgets=2)]
        )

        assert results[0].action == SyncAction.UPDATED
        assert results[0].remote_name == name
        assert fake_store.dashboards[name]["widgets"] == 2
        assert [c[0] for c in fake_store.calls] == ["list", "describe", "update"]

    def test_update_never_creates_duplicate(self, fake_store: Any) -> None:
        fake_store.seed({"displayName": "Frontend", "widgets": 1})

        DashboardReconciler(fake_store).reconcile([_definition("Frontend", widgets=2)])

        names = [b["displayName"] for b in fake_store.dashboards.values()]
        assert names == ["Frontend"]

    def test_local_server_fields_are_ignored(self, fake_store: Any) -> None:
        definition = DashboardDefinition.from_body(
            {"displayName": "Frontend", "name": "projects/x/dashboards/old", "etag": "zzz"}
        )

        DashboardReconciler(fake_store).reconcile([definition])

        (body,) = fake_store.dashboards.values()
        assert body["name"] != "projects/x/dashboards/old"
        assert body["etag"] != "zzz"

    def test_second_pass_is_idempotent(self, fake_store: Any) -> None:
        fake_store.seed({"displayName": "Existing", "widgets": 1})
        definitions = [_definition("Existing", widgets=2), _definition("New")]
        reconciler = DashboardReconciler(fake_store)

        first = reconciler.reconcile(definitions)
        fake_store.calls.clear()
        second = reconciler.reconcile(definitions)

        assert [r.action for r in first] == [SyncAction.UPDATED, SyncAction.CREATED]
        assert [r.action for r in second] == [SyncAction.UNCHANGED, SyncAction.UNCHANGED]
        assert fake_store.mutations == []
        assert len(fake_store.dashboards) == 2

    def test_stale_etag_is_reported_and_next_pass_succeeds(self, fake_store: Any) -> None:
        name = fake_store.seed({"displayName": "Frontend", "widgets": 1})
        fake_store.on_describe.append(fake_store.bump)
        reconciler = DashboardReconciler(fake_store)

        first = reconciler.reconcile([_definition("Frontend", widgets=2)])

        assert first[0].action == SyncAction.FAILED
        assert first[0].error_type == "ConcurrentModificationError"
        assert first[0].retryable is True
        assert first[0].remote_name == name

        fake_store.on_describe.clear()
        second = reconciler.reconcile([_definition("Frontend", widgets=2)])

        assert second[0].action == SyncAction.UPDATED
        assert fake_store.dashboards[name]["widgets"] == 2

    def test_vanished_before_describe_falls_back_to_create(self) -> None:
        store = MagicMock()
        store.list.return_value = [RemoteDashboardRef(name="gone", display_name="Frontend")]
        store.describe.side_effect = DashboardNotFoundError("gone")
        store.create.return_value = "projects/p/dashboards/new"

        result = DashboardReconciler(store).reconcile_one(_definition("Frontend"))

        assert result.action == SyncAction.CREATED
        assert result.remote_name == "projects/p/dashboards/new"
        store.update.assert_not_called()

    def test_one_failure_does_not_block_others(self) -> None:
        store = MagicMock()
        store.list.return_value = []
        store.create.side_effect = [DashboardStoreError("create", "quota exceeded"), "n2"]

        results = DashboardReconciler(store).reconcile([_definition("A"), _definition("B")])

        assert [r.action for r in results] == [SyncAction.FAILED, SyncAction.CREATED]
        assert results[0].retryable is False
        assert "quota exceeded" in (results[0].error or "")

    def test_list_failure_is_per_item_result(self) -> None:
        store = MagicMock()
        store.list.side_effect = DashboardStoreError("list", "permission denied")

        results = DashboardReconciler(store).reconcile([_definition("A"), _definition("B")])

        assert all(r.action == SyncAction.FAILED for r in results)
        assert len(results) == 2

    def test_update_payload_carries_remote_name_and_etag(self) -> None:
        store = MagicMock()
        store.list.return_value = [RemoteDashboardRef(name="n1", display_name="A")]
        store.describe.return_value = RemoteDashboard(
            name="n1", etag="e7", body={"displayName": "A", "name": "n1", "etag": "e7"}
        )

        DashboardReconciler(store).reconcile_one(_definition("A", widgets=[1]))

        store.update.assert_called_once_with(
            "n1", "e7", {"displayName": "A", "widgets": [1], "name": "n1", "etag": "e7"}
        )

    def test_empty_definitions(self, fake_store: Any) -> None:
        assert DashboardReconciler(fake_store).reconcile([]) == []
        assert fake_store.calls == []

    def test_missing_etag_is_never_updated(self) -> None:
        store = MagicMock()
        store.list.return_value = [RemoteDashboardRef(name="n1", display_name="A")]
        store.describe.return_value = RemoteDashboard(
            name="n1", etag="", body={"displayName": "A", "widgets": [1]}
        )

        result = DashboardReconciler(store).reconcile_one(_definition("A", widgets=[2]))

        assert result.action == SyncAction.FAILED
        assert result.error_type == "DashboardStoreError"
        assert "no etag" in (result.error or "")
        store.update.assert_not_called()
        store.create.assert_not_called()
