"""Integration tests against a live Kubernetes cluster."""

from __future__ import annotations

import pytest

from envsync.k8s import KubernetesOrchestrator
from envsync.readiness import ReadinessGate


@pytest.mark.integration
class TestLiveCluster:
    """Read-only checks; nothing is created in the cluster."""

    def test_cluster_identity_is_stable(self, orchestrator: KubernetesOrchestrator) -> None:
        assert orchestrator.cluster_identity() == orchestrator.cluster_identity()

    def test_kube_system_readiness(self, orchestrator: KubernetesOrchestrator) -> None:
        gate = ReadinessGate(orchestrator, timeout_per_workload=120, poll_interval=2)

        result = gate.await_ready("kube-system")

        assert result.is_ready, result.message
        assert result.polls >= len(result.checked)
