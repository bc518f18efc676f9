"""Unit test fixtures for envsync.

Unit tests run without a cluster or gcloud. The fakes below stand in for
the orchestrator, the cluster identity source, and the dashboard store, and
record every call so tests can assert on what was (not) queried.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from envsync.errors import (
    ConcurrentModificationError,
    DashboardNotFoundError,
    ProvisioningError,
)
from envsync.schemas.dashboards import RemoteDashboard, RemoteDashboardRef
from envsync.schemas.readiness import RolloutState, RolloutStatus, Workload


class FakeClock:
    """Monotonic clock advanced only by waits."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits: list[float] = []

    def __call__(self) -> float:
        return self.now

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False


class FakeOrchestrator:
    """In-memory orchestrator and cluster identity source.

    ``rollouts`` maps workload name to the sequence of states returned by
    successive polls; the last state repeats once the sequence is exhausted.
    """

    def __init__(self, cluster_id: str = "cluster-1") -> None:
        self.cluster_id = cluster_id
        self.workloads: dict[str, list[str]] = {}
        self.rollouts: dict[str, list[RolloutState]] = {}
        self.messages: dict[str, str] = {}
        self.namespaces: set[str] = set()
        self.applied: list[tuple[Path, str]] = []
        self.polled: list[str] = []
        self.fail_apply: str | None = None
        self.fail_identity = False

    def cluster_identity(self) -> str:
        if self.fail_identity:
            raise ProvisioningError("cluster", "unreachable")
        return self.cluster_id

    def create_namespace_if_absent(self, name: str) -> bool:
        if name in self.namespaces:
            return False
        self.namespaces.add(name)
        return True

    def apply_manifests(self, path: Path, namespace: str) -> None:
        if self.fail_apply is not None:
            raise ProvisioningError(f"manifests {path}", self.fail_apply)
        self.applied.append((path, namespace))

    def list_workloads(self, namespace: str) -> list[Workload]:
        return [Workload(name=n, namespace=namespace) for n in self.workloads.get(namespace, [])]

    def get_rollout_status(self, namespace: str, name: str) -> RolloutStatus:
        self.polled.append(name)
        states = self.rollouts.get(name, [RolloutState.SUCCEEDED])
        state = states.pop(0) if len(states) > 1 else states[0]
        return RolloutStatus(state=state, message=self.messages.get(name, f"{name} {state.value}"))


class FakeDashboardStore:
    """In-memory dashboard store with etag checks.

    ``on_describe`` hooks run after a describe returns, which lets tests
    change the dashboard between the describe and the update.
    """

    def __init__(self) -> None:
        self.dashboards: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.on_describe: list[Callable[[str], None]] = []
        self._counter = 0

    def seed(self, body: dict[str, Any]) -> str:
        self._counter += 1
        name = f"projects/p/dashboards/{self._counter}"
        self.dashboards[name] = {**body, "name": name, "etag": f"etag-{self._counter}-0"}
        return name

    def bump(self, name: str) -> None:
        """Simulate a concurrent writer changing the dashboard."""
        current = self.dashboards[name]
        version = int(current["etag"].rsplit("-", 1)[1]) + 1
        current["etag"] = current["etag"].rsplit("-", 1)[0] + f"-{version}"

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("update", "create")]

    def list(self) -> list[RemoteDashboardRef]:
        self.calls.append(("list", ""))
        return [
            RemoteDashboardRef(name=name, display_name=body.get("displayName", ""))
            for name, body in self.dashboards.items()
        ]

    def describe(self, name: str) -> RemoteDashboard:
        self.calls.append(("describe", name))
        if name not in self.dashboards:
            raise DashboardNotFoundError(name)
        body = dict(self.dashboards[name])
        remote = RemoteDashboard(name=name, etag=body["etag"], body=body)
        for hook in self.on_describe:
            hook(name)
        return remote

    def update(self, name: str, etag: str, body: dict[str, Any]) -> None:
        self.calls.append(("update", name))
        if name not in self.dashboards:
            raise DashboardNotFoundError(name)
        if self.dashboards[name]["etag"] != etag:
            raise ConcurrentModificationError(name)
        self.dashboards[name] = {**body, "name": name}
        self.bump(name)

    def create(self, body: dict[str, Any]) -> str:
        self.calls.append(("create", body.get("displayName", "")))
        return self.seed(body)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a clock that only moves when the gate waits."""
    return FakeClock()


@pytest.fixture
def fake_orchestrator() -> FakeOrchestrator:
    """Provide an in-memory orchestrator for cluster ``cluster-1``."""
    return FakeOrchestrator()


@pytest.fixture
def fake_store() -> FakeDashboardStore:
    """Provide an empty in-memory dashboard store."""
    return FakeDashboardStore()


@pytest.fixture
def manifest_dir(tmp_path: Path) -> Path:
    """Create a manifest directory with a single Deployment file."""
    path = tmp_path / "kubernetes-manifests"
    path.mkdir()
    (path / "frontend.yaml").write_text("kind: Deployment\nmetadata:\n  name: frontend\n")
    return path


@pytest.fixture
def write_dashboards(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing dashboard JSON files into a directory.

    Example:
        >>> directory = write_dashboards(a={"displayName": "A"})
    """

    def _write(**files: dict[str, Any]) -> Path:
        directory = tmp_path / "dashboards"
        directory.mkdir(exist_ok=True)
        for stem, body in files.items():
            (directory / f"{stem}.json").write_text(json.dumps(body))
        return directory

    return _write
