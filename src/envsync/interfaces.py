"""Protocols for the external collaborators envsync drives.

These protocols define the narrow surface envsync consumes from the cluster,
the workload orchestrator, and the monitoring backend. Concrete adapters live
in ``envsync.k8s`` and ``envsync.gcloud``; tests substitute in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from envsync.schemas.dashboards import RemoteDashboard, RemoteDashboardRef
from envsync.schemas.readiness import RolloutStatus, Workload


@runtime_checkable
class ClusterProvisioner(Protocol):
    """Resolves the identity of the provisioned cluster.

    The identity changes if and only if the cluster was destroyed and
    recreated; in-place mutation keeps it stable.
    """

    def cluster_identity(self) -> str:
        """Return the current cluster incarnation token.

        Raises:
            ProvisioningError: If the cluster cannot be reached.
        """
        ...


@runtime_checkable
class WorkloadSource(Protocol):
    """Read-only view of workloads, as needed by the readiness gate."""

    def list_workloads(self, namespace: str) -> list[Workload]:
        """List workloads currently defined in a namespace."""
        ...

    def get_rollout_status(self, namespace: str, name: str) -> RolloutStatus:
        """Return the current rollout status of one workload."""
        ...


@runtime_checkable
class WorkloadOrchestrator(WorkloadSource, Protocol):
    """Kubernetes-equivalent orchestrator that can also mutate state."""

    def create_namespace_if_absent(self, name: str) -> bool:
        """Create a namespace unless it exists. Returns True if created."""
        ...

    def apply_manifests(self, path: Path, namespace: str) -> None:
        """Apply every manifest under ``path`` into ``namespace``."""
        ...


@runtime_checkable
class DashboardStore(Protocol):
    """Remote monitoring dashboard store with etag-based updates."""

    def list(self) -> list[RemoteDashboardRef]:
        """List dashboards in the configured project."""
        ...

    def describe(self, name: str) -> RemoteDashboard:
        """Fetch one dashboard with a fresh etag.

        Raises:
            DashboardNotFoundError: If the dashboard does not exist.
        """
        ...

    def update(self, name: str, etag: str, body: dict[str, Any]) -> None:
        """Replace a dashboard, presenting the etag last observed.

        Raises:
            ConcurrentModificationError: If the etag is stale.
        """
        ...

    def create(self, body: dict[str, Any]) -> str:
        """Create a dashboard and return its server resource name."""
        ...


@runtime_checkable
class ImageBuilder(Protocol):
    """Container build/push service used by CI, not by the envsync core."""

    def build(self, service_source: Path) -> str:
        """Build an image from a service source tree and return its ref."""
        ...

    def push(self, image_ref: str) -> str:
        """Push an image and return its registry URL."""
        ...


__all__ = [
    "ClusterProvisioner",
    "DashboardStore",
    "ImageBuilder",
    "WorkloadOrchestrator",
    "WorkloadSource",
]
