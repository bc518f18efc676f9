"""Kubernetes orchestrator adapter.

Implements the workload orchestrator and cluster identity protocols on top of
the official ``kubernetes`` client, and applies manifests with ``kubectl
apply`` (server-side merge semantics are kubectl's, not ours).

Cluster identity is the UID of the ``kube-system`` namespace: it is stable
for the lifetime of a cluster and changes only when the cluster is
recreated, which makes it a reliable upstream trigger.

Example:
    >>> orchestrator = KubernetesOrchestrator.from_kubeconfig()
    >>> orchestrator.cluster_identity()
    '5a0c0f5e-...'
    >>> orchestrator.get_rollout_status("staging", "frontend").state
    <RolloutState.SUCCEEDED: 'succeeded'>
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from envsync.errors import ProvisioningError
from envsync.schemas.readiness import RolloutState, RolloutStatus, Workload

logger = structlog.get_logger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "envsync"
CLUSTER_IDENTITY_NAMESPACE = "kube-system"

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def sanitize_k8s_api_error(exc: Exception) -> str:
    """Reduce a kubernetes ApiException to its status and reason.

    Avoids echoing response bodies or headers into logs.
    """
    status = getattr(exc, "status", None)
    reason = getattr(exc, "reason", None)
    if status is not None and reason is not None:
        return f"{reason} (HTTP {status})"
    if reason is not None:
        return str(reason)
    return type(exc).__name__


def deployment_rollout_status(deployment: Any) -> RolloutStatus:
    """Evaluate a Deployment's rollout the way ``kubectl rollout status`` does.

    Args:
        deployment: V1Deployment (or any object with the same attributes).

    Returns:
        RolloutStatus with a kubectl-style diagnostic message.
    """
    name = deployment.metadata.name
    generation = deployment.metadata.generation or 0
    status = deployment.status
    observed = (status.observed_generation or 0) if status else 0

    if status is None or generation > observed:
        return RolloutStatus(
            state=RolloutState.IN_PROGRESS,
            message=f"waiting for deployment {name!r} spec update to be observed",
        )

    for condition in status.conditions or []:
        if condition.type == "Progressing" and condition.reason == "ProgressDeadlineExceeded":
            return RolloutStatus(
                state=RolloutState.FAILED,
                message=f"deployment {name!r} exceeded its progress deadline",
            )

    desired = deployment.spec.replicas if deployment.spec.replicas is not None else 1
    updated = status.updated_replicas or 0
    total = status.replicas or 0
    available = status.available_replicas or 0

    if updated < desired:
        return RolloutStatus(
            state=RolloutState.IN_PROGRESS,
            message=f"{updated} out of {desired} new replicas have been updated",
        )
    if total > updated:
        return RolloutStatus(
            state=RolloutState.IN_PROGRESS,
            message=f"{total - updated} old replicas are pending termination",
        )
    if available < updated:
        return RolloutStatus(
            state=RolloutState.IN_PROGRESS,
            message=f"{available} of {updated} updated replicas are available",
        )
    return RolloutStatus(
        state=RolloutState.SUCCEEDED,
        message=f"deployment {name!r} successfully rolled out",
    )


class KubernetesOrchestrator:
    """Workload orchestrator and cluster identity source for one cluster.

    Args:
        core_api: ``kubernetes.client.CoreV1Api`` instance.
        apps_api: ``kubernetes.client.AppsV1Api`` instance.
        kubectl: kubectl executable (default: ``$KUBECTL`` or ``kubectl``).
        kubeconfig: kubeconfig passed to kubectl, if not the default.
        kube_context: kubeconfig context passed to kubectl.
        runner: subprocess.run-compatible callable (injectable for tests).
    """

    def __init__(
        self,
        core_api: Any,
        apps_api: Any,
        *,
        kubectl: str | None = None,
        kubeconfig: Path | None = None,
        kube_context: str | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self._core = core_api
        self._apps = apps_api
        self._kubectl = kubectl or os.environ.get("KUBECTL", "kubectl")
        self._kubeconfig = kubeconfig
        self._kube_context = kube_context
        self._runner = runner

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: Path | None = None,
        kube_context: str | None = None,
    ) -> KubernetesOrchestrator:
        """Build an orchestrator from kubeconfig or in-cluster configuration.

        Raises:
            ProvisioningError: If no usable cluster configuration is found.
        """
        from kubernetes import client
        from kubernetes import config as k8s_config

        try:
            if kubeconfig or kube_context:
                k8s_config.load_kube_config(
                    config_file=str(kubeconfig) if kubeconfig else None,
                    context=kube_context,
                )
            else:
                try:
                    k8s_config.load_incluster_config()
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config()
        except k8s_config.ConfigException as e:
            raise ProvisioningError("cluster", f"cannot load Kubernetes configuration: {e}") from e

        return cls(
            client.CoreV1Api(),
            client.AppsV1Api(),
            kubeconfig=kubeconfig,
            kube_context=kube_context,
        )

    def cluster_identity(self) -> str:
        """Return the UID of the kube-system namespace.

        Raises:
            ProvisioningError: If the cluster cannot be queried.
        """
        try:
            namespace = self._core.read_namespace(CLUSTER_IDENTITY_NAMESPACE)
        except Exception as e:
            raise ProvisioningError("cluster", sanitize_k8s_api_error(e)) from e
        uid = namespace.metadata.uid
        if not uid:
            raise ProvisioningError("cluster", "kube-system namespace has no UID")
        return str(uid)

    def create_namespace_if_absent(self, name: str) -> bool:
        """Create a namespace unless it already exists.

        Returns:
            True if the namespace was created, False if it already existed.
        """
        from kubernetes import client
        from kubernetes.client.rest import ApiException

        try:
            self._core.read_namespace(name)
            return False
        except ApiException as e:
            if e.status != 404:
                raise

        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(
                name=name,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            )
        )
        try:
            self._core.create_namespace(body=body)
        except ApiException as e:
            if e.status == 409:
                return False
            raise
        logger.info("namespace_created", namespace=name)
        return True

    def apply_manifests(self, path: Path, namespace: str) -> None:
        """Run ``kubectl apply`` for a manifest file or directory.

        Raises:
            ProvisioningError: If the path is missing or kubectl fails.
        """
        if not path.exists():
            raise ProvisioningError(f"manifests {path}", "path does not exist")

        argv = [self._kubectl]
        if self._kubeconfig:
            argv += ["--kubeconfig", str(self._kubeconfig)]
        if self._kube_context:
            argv += ["--context", self._kube_context]
        argv += ["apply", "-n", namespace, "-f", str(path)]
        if path.is_dir():
            argv.append("--recursive")

        logger.info("manifests_applying", namespace=namespace, path=str(path))
        try:
            result = self._runner(argv, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ProvisioningError(
                f"manifests {path}", f"kubectl executable not found: {self._kubectl}"
            ) from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"kubectl exited with {e.returncode}"
            raise ProvisioningError(f"manifests {path}", detail) from e
        logger.debug("manifests_applied", namespace=namespace, output=(result.stdout or "").strip())

    def list_workloads(self, namespace: str) -> list[Workload]:
        """List Deployments in a namespace."""
        deployments = self._apps.list_namespaced_deployment(namespace)
        return [
            Workload(name=d.metadata.name, namespace=namespace, kind="Deployment")
            for d in deployments.items
        ]

    def get_rollout_status(self, namespace: str, name: str) -> RolloutStatus:
        """Read a Deployment and evaluate its rollout status."""
        deployment = self._apps.read_namespaced_deployment_status(name, namespace)
        return deployment_rollout_status(deployment)


__all__ = [
    "CLUSTER_IDENTITY_NAMESPACE",
    "MANAGED_BY_LABEL",
    "KubernetesOrchestrator",
    "deployment_rollout_status",
    "sanitize_k8s_api_error",
]
