"""envsync - environment readiness gating and dashboard reconciliation.

This package applies deployment manifests per environment, blocks until
workloads have rolled out, and upserts monitoring dashboards by display
name.

Example:
    $ envsync apply --env staging --env production
    $ envsync sync-dashboards --project my-project
"""

from __future__ import annotations

__version__ = "0.1.0"
