"""Integration test configuration.

Integration tests talk to a real Kubernetes cluster through the current
kubeconfig. They are deselected by default; run them with
``pytest -m integration``.
"""

from __future__ import annotations

import pytest

from envsync.errors import ProvisioningError
from envsync.k8s import KubernetesOrchestrator


@pytest.fixture(scope="module")
def orchestrator() -> KubernetesOrchestrator:
    """Connect to the cluster of the current kubeconfig, or skip."""
    try:
        orchestrator = KubernetesOrchestrator.from_kubeconfig()
        orchestrator.cluster_identity()
    except ProvisioningError as e:
        pytest.skip(f"No reachable Kubernetes cluster: {e}")
    return orchestrator
