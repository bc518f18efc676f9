"""envsync exception hierarchy.

All exceptions inherit from EnvSyncError, allowing callers to catch every
envsync failure with a single except clause. Each class carries the CLI exit
code used when it reaches the command line.

Exception Hierarchy:
    EnvSyncError (base)
    ├── ConfigurationError            # Invalid or inconsistent configuration
    ├── ProvisioningError             # Upstream resource (cluster) unavailable
    ├── ReadinessError                # Workload did not become ready
    │   ├── ReadinessTimeoutError     # Rollout did not finish within budget
    │   ├── RolloutFailedError        # Rollout reported failure
    │   └── ReadinessCancelledError   # Wait aborted externally
    └── DashboardStoreError           # Remote dashboard store call failed
        ├── ConcurrentModificationError  # Stale etag on update
        └── DashboardNotFoundError       # Dashboard vanished remotely

Exit Codes:
    0   - Success
    1   - General error (EnvSyncError)
    2   - Configuration error
    3   - Provisioning error
    4   - Readiness timeout / rollout failed
    5   - Dashboard store error
    6   - Concurrent modification (retryable)
    130 - Cancelled

Example:
    >>> from envsync.errors import RolloutFailedError
    >>> raise RolloutFailedError("staging", "frontend", "exceeded its progress deadline")
    Traceback (most recent call last):
        ...
    RolloutFailedError: Rollout failed for staging/frontend: exceeded its progress deadline
"""

from __future__ import annotations


class EnvSyncError(Exception):
    """Base exception for all envsync errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
        retryable: Whether re-running the whole operation may succeed.
    """

    exit_code: int = 1
    retryable: bool = False


class ConfigurationError(EnvSyncError):
    """Raised when configuration is invalid and cannot be acted upon.

    Fatal, never retried. Examples include an empty environment list with no
    fallback namespace, or duplicate dashboard display names under the
    ``error`` duplicate policy.
    """

    exit_code: int = 2


class ProvisioningError(EnvSyncError):
    """Raised when an upstream resource cannot be created or resolved.

    Surfaced to the operator; envsync does not retry provisioning.

    Attributes:
        resource: Description of the resource that failed.
        reason: Why it failed.
    """

    exit_code: int = 3

    def __init__(self, resource: str, reason: str) -> None:
        self.resource = resource
        self.reason = reason
        super().__init__(f"Provisioning failed for {resource}: {reason}")


class ReadinessError(EnvSyncError):
    """Base class for readiness gate failures.

    Attributes:
        environment: Environment (namespace) being checked.
        workload: Name of the first workload that failed, if any.
        kind: Short failure kind reported to users.
    """

    exit_code: int = 4
    kind: str = "not_ready"

    def __init__(self, environment: str, workload: str | None, message: str) -> None:
        self.environment = environment
        self.workload = workload
        super().__init__(message)


class ReadinessTimeoutError(ReadinessError):
    """Raised when a workload does not finish its rollout within its budget.

    The caller decides whether to retry the whole apply cycle.

    Attributes:
        timeout_seconds: The per-workload budget that elapsed.
    """

    kind = "timed_out"
    retryable = True

    def __init__(self, environment: str, workload: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            environment,
            workload,
            f"Rollout of {environment}/{workload} did not complete within {timeout_seconds:g}s",
        )


class RolloutFailedError(ReadinessError):
    """Raised when a workload's rollout reports failure.

    Indicates a bad deployment rather than a transient condition, so it is
    not retried automatically.

    Attributes:
        diagnostic: Diagnostic message from the orchestrator.
    """

    kind = "rollout_failed"

    def __init__(self, environment: str, workload: str, diagnostic: str) -> None:
        self.diagnostic = diagnostic
        super().__init__(
            environment,
            workload,
            f"Rollout failed for {environment}/{workload}: {diagnostic}",
        )


class ReadinessCancelledError(ReadinessError):
    """Raised when a readiness wait is aborted by signal or deadline."""

    exit_code: int = 130
    kind = "cancelled"

    def __init__(self, environment: str, workload: str | None = None) -> None:
        target = f"{environment}/{workload}" if workload else environment
        super().__init__(environment, workload, f"Readiness wait cancelled for {target}")


class DashboardStoreError(EnvSyncError):
    """Raised when a call to the remote dashboard store fails.

    Attributes:
        operation: Store operation that failed (list, describe, update, create).
        detail: Diagnostic returned by the store.
    """

    exit_code: int = 5

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Dashboard {operation} failed: {detail}")


class ConcurrentModificationError(DashboardStoreError):
    """Raised when an update is rejected because the etag is stale.

    Retryable by re-running the full reconcile pass, which is idempotent.

    Attributes:
        name: Remote dashboard resource name.
    """

    exit_code: int = 6
    retryable = True

    def __init__(self, name: str, detail: str = "etag mismatch") -> None:
        self.name = name
        super().__init__("update", f"{name} was modified concurrently ({detail})")


class DashboardNotFoundError(DashboardStoreError):
    """Raised when a remote dashboard does not exist.

    The reconciler treats this as a signal to take the create path.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__("describe", f"dashboard not found: {name}")


__all__ = [
    "ConcurrentModificationError",
    "ConfigurationError",
    "DashboardNotFoundError",
    "DashboardStoreError",
    "EnvSyncError",
    "ProvisioningError",
    "ReadinessCancelledError",
    "ReadinessError",
    "ReadinessTimeoutError",
    "RolloutFailedError",
]
