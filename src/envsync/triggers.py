"""Trigger evaluation and last-applied trigger persistence.

An operation guarded by triggers re-runs whenever any current trigger value
differs from the value recorded at its last successful run. Replacing an
upstream resource (a new cluster identity) therefore forces every downstream
operation keyed on that identity to re-run, even when its own inputs such as
the namespace name are unchanged.

Example:
    >>> store = TriggerStore(Path(".envsync/state.json"))
    >>> run_if_triggered(
    ...     store,
    ...     "staging/manifests",
    ...     {"cluster_id": "abc", "namespace": "staging"},
    ...     lambda: orchestrator.apply_manifests(path, "staging"),
    ... )
    True
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path

import structlog
from pydantic import ValidationError

from envsync.errors import ConfigurationError
from envsync.schemas.pipeline import TriggerRecord, TriggerState

logger = structlog.get_logger(__name__)

TriggerSet = Mapping[str, str]


def must_rerun(current: TriggerSet, last_applied: TriggerSet | None) -> bool:
    """Decide whether a triggered operation has to run again.

    Args:
        current: Trigger values for this invocation.
        last_applied: Values recorded at the last successful run, or None if
            the operation never succeeded.

    Returns:
        True if never run, or if any key of ``current`` is missing from or
        differs in ``last_applied``. Keys present only in ``last_applied``
        are ignored.

    Examples:
        >>> must_rerun({"cluster_id": "a"}, None)
        True
        >>> must_rerun({"cluster_id": "a"}, {"cluster_id": "a"})
        False
        >>> must_rerun({"cluster_id": "b"}, {"cluster_id": "a"})
        True
    """
    if last_applied is None:
        return True
    return any(last_applied.get(key) != value for key, value in current.items())


class TriggerStore:
    """JSON file holding last-applied triggers per operation instance.

    Writes are atomic (temp file + rename) so a crash never leaves a
    half-written document behind.

    Attributes:
        path: Location of the state document.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._state: TriggerState | None = None

    def _load(self) -> TriggerState:
        if self._state is not None:
            return self._state
        if not self.path.exists():
            self._state = TriggerState()
            return self._state
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._state = TriggerState.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigurationError(f"Corrupt trigger state file {self.path}: {e}") from e
        return self._state

    def _save(self, state: TriggerState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._state = state

    def get(self, operation: str) -> dict[str, str] | None:
        """Return the last applied triggers of an operation, if any."""
        record = self._load().operations.get(operation)
        return dict(record.triggers) if record else None

    def record(self, operation: str, triggers: TriggerSet) -> None:
        """Persist triggers as the new last-applied values of an operation."""
        state = self._load().model_copy(deep=True)
        state.operations[operation] = TriggerRecord(triggers=dict(triggers))
        self._save(state)
        logger.debug("triggers_recorded", operation=operation, keys=sorted(triggers))

    def forget(self, operation: str) -> None:
        """Drop the recorded triggers of an operation so it runs next time."""
        state = self._load().model_copy(deep=True)
        if state.operations.pop(operation, None) is not None:
            self._save(state)


def run_if_triggered(
    store: TriggerStore,
    operation: str,
    triggers: TriggerSet,
    action: Callable[[], object],
    *,
    force: bool = False,
) -> bool:
    """Run an action when its triggers changed, recording them on success.

    Args:
        store: Trigger store holding last-applied values.
        operation: Operation instance key (e.g. ``"staging/readiness"``).
        triggers: Current trigger values.
        action: The guarded operation.
        force: Run regardless of recorded triggers.

    Returns:
        True if the action ran, False if it was up to date.

    Raises:
        Exception: Whatever ``action`` raises. Triggers are not recorded in
            that case, so the next evaluation retries.
    """
    last_applied = store.get(operation)
    if not force and not must_rerun(triggers, last_applied):
        logger.info("operation_up_to_date", operation=operation)
        return False

    logger.info(
        "operation_triggered",
        operation=operation,
        forced=force,
        first_run=last_applied is None,
    )
    action()
    store.record(operation, triggers)
    return True


__all__ = ["TriggerSet", "TriggerStore", "must_rerun", "run_if_triggered"]
