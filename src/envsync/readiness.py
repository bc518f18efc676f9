"""Readiness gate for environment workloads.

Blocks until every non-excluded workload of an environment reports a
completed rollout, or stops at the first workload that fails, times out, or
is cancelled.

Gate Algorithm:
    1. List workloads in the environment's namespace
    2. Drop workloads matched by the exclusion matcher (never polled)
    3. Sort the rest by name for a deterministic check order
    4. Poll each workload sequentially until succeeded, failed, timed out,
       or cancelled
    5. Abort on the first failure without querying remaining workloads

Polling is sequential so the first failure is reported immediately and
repeated runs against the same state report the same workload. Worst-case
blocking is ``timeout_per_workload`` times the number of gated workloads.

Example:
    >>> gate = ReadinessGate(orchestrator, timeout_per_workload=300)
    >>> result = gate.await_ready("staging")
    >>> result.raise_for_outcome()
"""

from __future__ import annotations

import fnmatch
import threading
import time
from collections.abc import Callable, Iterable

import structlog

from envsync.errors import (
    ReadinessCancelledError,
    ReadinessError,
    ReadinessTimeoutError,
    RolloutFailedError,
)
from envsync.interfaces import WorkloadSource
from envsync.k8s import sanitize_k8s_api_error
from envsync.schemas.readiness import (
    ReadinessOutcome,
    ReadinessResult,
    RolloutState,
    Workload,
)
from envsync.telemetry import get_tracer

logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDED_WORKLOADS: tuple[str, ...] = ("loadgenerator",)
"""Workloads never gated. The demo's traffic generator reports readiness
unrelated to platform health and produced false negatives."""

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0

_OUTCOME_BY_ERROR: dict[type[ReadinessError], ReadinessOutcome] = {
    ReadinessTimeoutError: ReadinessOutcome.TIMED_OUT,
    RolloutFailedError: ReadinessOutcome.ROLLOUT_FAILED,
    ReadinessCancelledError: ReadinessOutcome.CANCELLED,
}


class NameMatcher:
    """Matches workload names against shell-style patterns.

    Examples:
        >>> matcher = NameMatcher(["loadgenerator", "debug-*"])
        >>> matcher("loadgenerator"), matcher("debug-shell"), matcher("frontend")
        (True, True, False)
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_EXCLUDED_WORKLOADS) -> None:
        self.patterns: tuple[str, ...] = tuple(patterns)

    def __call__(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.patterns)

    def __repr__(self) -> str:
        return f"NameMatcher({list(self.patterns)!r})"


class ReadinessGate:
    """Waits for an environment's workloads to finish rolling out.

    Args:
        source: Workload lister and rollout status provider.
        exclude: Predicate on workload name; matching workloads are skipped.
        timeout_per_workload: Budget in seconds for each workload.
        poll_interval: Seconds between status queries of one workload.
        cancel_event: Event that aborts waiting as soon as it is set.
        clock: Monotonic time source.
        wait: Sleeps up to the given seconds and returns True if cancelled.
            Defaults to ``cancel_event.wait``.
    """

    def __init__(
        self,
        source: WorkloadSource,
        *,
        exclude: Callable[[str], bool] | None = None,
        timeout_per_workload: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        if timeout_per_workload < 0:
            raise ValueError("timeout_per_workload must be >= 0")
        if poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")
        self._source = source
        self._exclude = exclude if exclude is not None else NameMatcher()
        self._timeout = float(timeout_per_workload)
        self._poll_interval = float(poll_interval)
        self._cancel_event = cancel_event or threading.Event()
        self._clock = clock
        self._wait = wait or self._cancel_event.wait

    @property
    def cancel_event(self) -> threading.Event:
        """Event that cancels any in-flight wait when set."""
        return self._cancel_event

    def gated_workloads(self, environment: str) -> tuple[list[Workload], list[str]]:
        """List the workloads to gate on and the names that were excluded.

        Returns:
            Tuple of (workloads sorted by name, excluded names sorted).
        """
        gated: list[Workload] = []
        excluded: list[str] = []
        for workload in self._source.list_workloads(environment):
            if self._exclude(workload.name):
                excluded.append(workload.name)
            else:
                gated.append(workload)
        gated.sort(key=lambda w: w.name)
        return gated, sorted(excluded)

    def await_ready(self, environment: str) -> ReadinessResult:
        """Block until the environment is ready or the first workload fails.

        Args:
            environment: Environment name, used as the namespace.

        Returns:
            ReadinessResult describing the outcome. An environment with no
            gated workloads is ready without any status queries.
        """
        with get_tracer().start_as_current_span("envsync.readiness") as span:
            span.set_attribute("envsync.environment", environment)
            workloads, excluded = self.gated_workloads(environment)
            if excluded:
                logger.info(
                    "readiness_workloads_excluded", namespace=environment, excluded=excluded
                )

            checked: list[str] = []
            tally = _PollTally()
            for workload in workloads:
                try:
                    self._await_workload(environment, workload, tally)
                except ReadinessError as e:
                    outcome = _OUTCOME_BY_ERROR.get(type(e), ReadinessOutcome.ROLLOUT_FAILED)
                    span.set_attribute("envsync.readiness.outcome", outcome.value)
                    logger.warning(
                        "readiness_failed",
                        namespace=environment,
                        workload=workload.name,
                        outcome=outcome.value,
                        detail=str(e),
                    )
                    return ReadinessResult(
                        environment=environment,
                        outcome=outcome,
                        failed_workload=workload.name,
                        message=getattr(e, "diagnostic", str(e)),
                        checked=checked,
                        excluded=excluded,
                        polls=tally.polls,
                        timeout_seconds=self._timeout,
                    )
                checked.append(workload.name)

            span.set_attribute("envsync.readiness.outcome", ReadinessOutcome.READY.value)
            logger.info(
                "readiness_environment_ready",
                namespace=environment,
                workloads=len(checked),
                polls=tally.polls,
            )
            return ReadinessResult(
                environment=environment,
                outcome=ReadinessOutcome.READY,
                checked=checked,
                excluded=excluded,
                polls=tally.polls,
                timeout_seconds=self._timeout,
            )

    def _await_workload(self, environment: str, workload: Workload, tally: _PollTally) -> None:
        """Poll one workload until its rollout completes.

        Raises:
            RolloutFailedError: Rollout reported failure or its status query raised.
            ReadinessTimeoutError: Budget elapsed before success.
            ReadinessCancelledError: Cancel event set.
        """
        deadline = self._clock() + self._timeout
        while True:
            if self._cancel_event.is_set():
                raise ReadinessCancelledError(environment, workload.name)

            try:
                status = self._source.get_rollout_status(workload.namespace, workload.name)
            except Exception as e:
                raise RolloutFailedError(
                    environment,
                    workload.name,
                    f"rollout status query failed: {sanitize_k8s_api_error(e)}",
                ) from e
            tally.polls += 1
            if status.state == RolloutState.SUCCEEDED:
                logger.info(
                    "readiness_workload_ready", namespace=environment, workload=workload.name
                )
                return
            if status.state == RolloutState.FAILED:
                raise RolloutFailedError(environment, workload.name, status.message)

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ReadinessTimeoutError(environment, workload.name, self._timeout)
            logger.debug(
                "readiness_waiting",
                namespace=environment,
                workload=workload.name,
                detail=status.message,
            )
            if self._wait(min(self._poll_interval, remaining)):
                raise ReadinessCancelledError(environment, workload.name)


class _PollTally:
    """Status queries issued during one await_ready call."""

    __slots__ = ("polls",)

    def __init__(self) -> None:
        self.polls = 0


__all__ = [
    "DEFAULT_EXCLUDED_WORKLOADS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "NameMatcher",
    "ReadinessGate",
]
