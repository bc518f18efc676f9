"""Command-line interface for envsync.

Commands:
    envsync apply: Apply manifests and gate on workload readiness
    envsync sync-dashboards: Create or update monitoring dashboards
    envsync environments: Show the resolved environment list

Exit Codes:
    0: Success
    1: General error
    2: Configuration error
    3: Provisioning error
    4: Readiness error (timeout or failed rollout)
    5: Dashboard error
    6: Concurrent modification (retryable)
    130: Cancelled
"""

from __future__ import annotations

from envsync.cli.main import cli

__all__: list[str] = ["cli"]
