"""Monitoring dashboard reconciliation.

Brings a remote dashboard store in line with dashboard definitions kept as
JSON files, matching remote dashboards by display name.

Per-definition protocol:
    1. List remote dashboards and pick the first whose displayName matches
    2. Found: describe it for a fresh etag, then update with the local body
       carrying the remote ``name`` and ``etag``. Skip the update when the
       remote body already matches.
    3. Not found (or gone by describe time): create from the local body
    4. Record a per-definition result; one failure never blocks the others

A stale etag surfaces as ConcurrentModificationError and is not retried
here. Re-running the whole pass is safe because it is idempotent.

Example:
    >>> definitions = load_dashboard_definitions(Path("monitoring/dashboards"))
    >>> results = DashboardReconciler(store).reconcile(definitions)
    >>> all(r.ok for r in results)
    True
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

import structlog

from envsync.errors import (
    ConfigurationError,
    DashboardNotFoundError,
    DashboardStoreError,
)
from envsync.interfaces import DashboardStore
from envsync.schemas.dashboards import (
    DashboardDefinition,
    DashboardSyncResult,
    RemoteDashboardRef,
    SyncAction,
)
from envsync.telemetry import get_tracer

logger = structlog.get_logger(__name__)


class DuplicatePolicy(str, Enum):
    """How to treat local definitions sharing a display name."""

    ERROR = "error"
    LAST_WINS = "last-wins"


def load_dashboard_definitions(
    directory: Path,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.ERROR,
) -> list[DashboardDefinition]:
    """Read every ``*.json`` dashboard definition in a directory.

    Files are read in sorted name order.

    Args:
        directory: Directory holding dashboard JSON files.
        duplicate_policy: ERROR rejects duplicate display names; LAST_WINS
            keeps the definition from the later file.

    Returns:
        Definitions in file order, with duplicates resolved per policy.

    Raises:
        ConfigurationError: If the directory is missing, a file is not a JSON
            object with a ``displayName``, or duplicates are rejected.
    """
    if not directory.is_dir():
        raise ConfigurationError(f"Dashboard directory not found: {directory}")

    by_name: dict[str, DashboardDefinition] = {}
    for path in sorted(directory.glob("*.json")):
        try:
            body = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid dashboard JSON in {path.name}: {e}") from e
        display_name = body.get("displayName") if isinstance(body, dict) else None
        if not isinstance(display_name, str) or not display_name:
            raise ConfigurationError(f"Dashboard {path.name} has no displayName")

        definition = DashboardDefinition.from_body(body, source=str(path))
        previous = by_name.get(definition.display_name)
        if previous is not None:
            if duplicate_policy == DuplicatePolicy.ERROR:
                raise ConfigurationError(
                    f"Duplicate dashboard displayName {definition.display_name!r} "
                    f"in {Path(previous.source or '').name} and {path.name}"
                )
            logger.warning(
                "dashboard_duplicate_display_name",
                display_name=definition.display_name,
                kept=path.name,
                dropped=Path(previous.source or "").name,
            )
            del by_name[definition.display_name]
        by_name[definition.display_name] = definition

    return list(by_name.values())


def find_by_display_name(
    remotes: Sequence[RemoteDashboardRef], display_name: str
) -> RemoteDashboardRef | None:
    """Return the first remote dashboard with the given display name."""
    for remote in remotes:
        if remote.display_name == display_name:
            return remote
    return None


class DashboardReconciler:
    """Upserts local dashboard definitions into a remote store.

    Args:
        store: Remote dashboard store.
    """

    def __init__(self, store: DashboardStore) -> None:
        self._store = store

    def reconcile(self, definitions: Sequence[DashboardDefinition]) -> list[DashboardSyncResult]:
        """Reconcile every definition independently.

        Returns:
            One result per definition, in input order.
        """
        results = [self.reconcile_one(definition) for definition in definitions]
        logger.info(
            "dashboards_reconciled",
            total=len(results),
            failed=sum(1 for r in results if not r.ok),
        )
        return results

    def reconcile_one(self, definition: DashboardDefinition) -> DashboardSyncResult:
        """Create or update the remote dashboard for one definition.

        Store failures are captured in the result rather than raised.
        """
        with get_tracer().start_as_current_span("envsync.dashboard.upsert") as span:
            span.set_attribute("envsync.dashboard.display_name", definition.display_name)
            try:
                result = self._upsert(definition)
            except DashboardStoreError as e:
                logger.warning(
                    "dashboard_sync_failed",
                    display_name=definition.display_name,
                    error_type=type(e).__name__,
                    retryable=e.retryable,
                    detail=str(e),
                )
                result = DashboardSyncResult(
                    display_name=definition.display_name,
                    action=SyncAction.FAILED,
                    remote_name=getattr(e, "name", None),
                    error=str(e),
                    error_type=type(e).__name__,
                    retryable=e.retryable,
                )
            span.set_attribute("envsync.dashboard.action", result.action.value)
            return result

    def _upsert(self, definition: DashboardDefinition) -> DashboardSyncResult:
        try:
            remotes = self._store.list()
        except DashboardNotFoundError:
            remotes = []
        existing = find_by_display_name(remotes, definition.display_name)
        if existing is not None:
            try:
                remote = self._store.describe(existing.name)
            except DashboardNotFoundError:
                logger.info(
                    "dashboard_vanished_before_describe",
                    display_name=definition.display_name,
                    name=existing.name,
                )
            else:
                if remote.desired_body() == definition.desired_body():
                    logger.info(
                        "dashboard_unchanged",
                        display_name=definition.display_name,
                        name=remote.name,
                    )
                    return DashboardSyncResult(
                        display_name=definition.display_name,
                        action=SyncAction.UNCHANGED,
                        remote_name=remote.name,
                    )

                if not remote.etag:
                    raise DashboardStoreError(
                        "update", f"describe of {remote.name} returned no etag; refusing to update"
                    )
                payload = definition.desired_body()
                payload["name"] = remote.name
                payload["etag"] = remote.etag
                self._store.update(remote.name, remote.etag, payload)
                logger.info(
                    "dashboard_updated", display_name=definition.display_name, name=remote.name
                )
                return DashboardSyncResult(
                    display_name=definition.display_name,
                    action=SyncAction.UPDATED,
                    remote_name=remote.name,
                )

        name = self._store.create(definition.desired_body())
        logger.info("dashboard_created", display_name=definition.display_name, name=name)
        return DashboardSyncResult(
            display_name=definition.display_name,
            action=SyncAction.CREATED,
            remote_name=name or None,
        )


__all__ = [
    "DashboardReconciler",
    "DuplicatePolicy",
    "find_by_display_name",
    "load_dashboard_definitions",
]
