"""Cloud Monitoring dashboard store backed by the gcloud CLI.

Wraps ``gcloud monitoring dashboards list|describe|update|create`` and maps
gcloud failures onto the envsync error hierarchy:

    NOT_FOUND                          -> DashboardNotFoundError
    ABORTED / FAILED_PRECONDITION/etag -> ConcurrentModificationError
    anything else                      -> DashboardStoreError

Example:
    >>> store = GcloudDashboardStore(project_id="my-project")
    >>> [d.display_name for d in store.list()]
    ['Frontend latency', 'Checkout errors']
"""

from __future__ import annotations

import json
import os
import re
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import structlog

from envsync.errors import (
    ConcurrentModificationError,
    DashboardNotFoundError,
    DashboardStoreError,
)
from envsync.schemas.dashboards import RemoteDashboard, RemoteDashboardRef

logger = structlog.get_logger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

_NOT_FOUND = re.compile(r"NOT_FOUND|not found|does not exist", re.IGNORECASE)
_CONFLICT = re.compile(r"ABORTED|FAILED_PRECONDITION|etag", re.IGNORECASE)
_MAX_DETAIL_LENGTH = 300


def _summarize(stderr: str | None) -> str:
    text = " ".join((stderr or "").split())
    if len(text) > _MAX_DETAIL_LENGTH:
        text = text[: _MAX_DETAIL_LENGTH - 3] + "..."
    return text or "no output"


class GcloudDashboardStore:
    """DashboardStore implementation shelling out to gcloud.

    Args:
        project_id: Google Cloud project holding the dashboards.
        gcloud: gcloud executable (default: ``$GCLOUD`` or ``gcloud``).
        timeout_s: Timeout for each gcloud invocation.
        runner: subprocess.run-compatible callable (injectable for tests).
    """

    def __init__(
        self,
        project_id: str,
        *,
        gcloud: str | None = None,
        timeout_s: float = 60.0,
        runner: Runner = subprocess.run,
    ) -> None:
        self.project_id = project_id
        self._gcloud = gcloud or os.environ.get("GCLOUD", "gcloud")
        self._timeout_s = timeout_s
        self._runner = runner

    def _run(self, operation: str, args: Sequence[str], *, name: str | None = None) -> str:
        argv = [
            self._gcloud,
            "monitoring",
            "dashboards",
            *args,
            "--project",
            self.project_id,
            "--quiet",
        ]
        logger.debug("gcloud_invoke", operation=operation, name=name)
        try:
            result = self._runner(
                argv,
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout_s,
            )
        except FileNotFoundError as e:
            raise DashboardStoreError(
                operation, f"gcloud executable not found: {self._gcloud}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise DashboardStoreError(
                operation, f"gcloud timed out after {self._timeout_s:g}s"
            ) from e
        except subprocess.CalledProcessError as e:
            raise self._classify(operation, e.stderr, name) from e
        return result.stdout or ""

    @staticmethod
    def _classify(operation: str, stderr: str | None, name: str | None) -> DashboardStoreError:
        detail = _summarize(stderr)
        if name and operation in ("describe", "update") and _NOT_FOUND.search(detail):
            return DashboardNotFoundError(name)
        if name and operation == "update" and _CONFLICT.search(detail):
            return ConcurrentModificationError(name, detail)
        return DashboardStoreError(operation, detail)

    @staticmethod
    def _parse_json(operation: str, stdout: str) -> Any:
        try:
            return json.loads(stdout) if stdout.strip() else None
        except json.JSONDecodeError as e:
            raise DashboardStoreError(operation, f"unparseable gcloud output: {e}") from e

    def _run_with_config(
        self, operation: str, args: Sequence[str], body: dict[str, Any], *, name: str | None = None
    ) -> str:
        temp_file = tempfile.NamedTemporaryFile(
            mode="w",
            suffix=".json",
            prefix="envsync-dashboard-",
            delete=False,
            encoding="utf-8",
        )
        try:
            json.dump(body, temp_file, indent=2)
            temp_file.close()
            return self._run(
                operation, [*args, f"--config-from-file={temp_file.name}"], name=name
            )
        finally:
            Path(temp_file.name).unlink(missing_ok=True)

    def list(self) -> list[RemoteDashboardRef]:
        """List dashboards in the project."""
        data = self._parse_json("list", self._run("list", ["list", "--format=json"])) or []
        return [
            RemoteDashboardRef(name=item["name"], display_name=item.get("displayName", ""))
            for item in data
            if isinstance(item, dict) and item.get("name")
        ]

    def describe(self, name: str) -> RemoteDashboard:
        """Describe a dashboard, returning its current etag and body."""
        data = self._parse_json(
            "describe", self._run("describe", ["describe", name, "--format=json"], name=name)
        )
        if not isinstance(data, dict):
            raise DashboardStoreError("describe", f"empty description for {name}")
        return RemoteDashboard(name=data.get("name", name), etag=data.get("etag", ""), body=data)

    def update(self, name: str, etag: str, body: dict[str, Any]) -> None:
        """Replace a dashboard; gcloud rejects the call if ``etag`` is stale."""
        payload = {**body, "name": name, "etag": etag}
        self._run_with_config("update", ["update", name], payload, name=name)

    def create(self, body: dict[str, Any]) -> str:
        """Create a dashboard and return its resource name."""
        stdout = self._run_with_config("create", ["create", "--format=json"], body)
        data = self._parse_json("create", stdout)
        return data.get("name", "") if isinstance(data, dict) else ""


__all__ = ["GcloudDashboardStore"]
