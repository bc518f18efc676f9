"""Dashboard reconciliation schemas.

Key Components:
    DashboardDefinition: Local desired-state dashboard read from JSON
    RemoteDashboardRef: Entry of the remote dashboard inventory
    RemoteDashboard: Described remote dashboard with its etag
    SyncAction: What the reconciler did for one definition
    DashboardSyncResult: Per-definition reconcile result
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Server-assigned fields that never belong in a desired-state body
SERVER_FIELDS: frozenset[str] = frozenset({"name", "etag"})


class DashboardDefinition(BaseModel):
    """A locally defined dashboard.

    Identity is ``display_name``, which mirrors the ``displayName`` key of
    the JSON body.

    Examples:
        >>> d = DashboardDefinition.from_body({"displayName": "Frontend", "gridLayout": {}})
        >>> d.display_name
        'Frontend'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    display_name: str = Field(..., min_length=1, description="Dashboard displayName")
    body: dict[str, Any] = Field(..., description="Dashboard JSON body")
    source: str | None = Field(default=None, description="File the definition was read from")

    @classmethod
    def from_body(cls, body: dict[str, Any], source: str | None = None) -> DashboardDefinition:
        """Build a definition from a dashboard JSON object.

        Raises:
            KeyError: If ``displayName`` is missing.
        """
        return cls(display_name=body["displayName"], body=body, source=source)

    def desired_body(self) -> dict[str, Any]:
        """Return the body without server-assigned fields."""
        return {k: v for k, v in self.body.items() if k not in SERVER_FIELDS}


class RemoteDashboardRef(BaseModel):
    """Inventory entry returned by a dashboard list call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., description="Opaque server resource name")
    display_name: str = Field(default="", description="Dashboard displayName")


class RemoteDashboard(BaseModel):
    """A described remote dashboard carrying its concurrency token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    etag: str
    body: dict[str, Any] = Field(default_factory=dict)

    def desired_body(self) -> dict[str, Any]:
        """Return the body without server-assigned fields."""
        return {k: v for k, v in self.body.items() if k not in SERVER_FIELDS}


class SyncAction(str, Enum):
    """Outcome of reconciling one dashboard definition."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class DashboardSyncResult(BaseModel):
    """Result of reconciling a single dashboard definition.

    Attributes:
        display_name: Local dashboard identity.
        action: What happened remotely.
        remote_name: Server resource name, when known.
        error: Error message for failed items.
        error_type: Exception class name for failed items.
        retryable: Whether a new full pass may succeed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    display_name: str
    action: SyncAction
    remote_name: str | None = None
    error: str | None = None
    error_type: str | None = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        """Return True unless the definition failed to reconcile."""
        return self.action != SyncAction.FAILED


__all__ = [
    "SERVER_FIELDS",
    "DashboardDefinition",
    "DashboardSyncResult",
    "RemoteDashboard",
    "RemoteDashboardRef",
    "SyncAction",
]
