"""Configuration for envsync.

Settings come from an optional YAML file (``envsync.yaml`` by default) with
``ENVSYNC_*`` environment variables taking precedence over YAML values.

Example:
    >>> config = get_config(Path("envsync.yaml"))
    >>> config.environments
    ['staging', 'production']

Environment Variables:
    ENVSYNC_PROJECT_ID: Monitoring project for dashboards
    ENVSYNC_ENVIRONMENTS: JSON list of environment names
    ENVSYNC_ROLLOUT_TIMEOUT_SECONDS: Per-workload readiness budget
    (every field below maps to ENVSYNC_<FIELD_NAME>)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    SettingsConfigDict,
    SettingsError,
)
from typing_extensions import Self

from envsync.dashboards import DuplicatePolicy
from envsync.errors import ConfigurationError
from envsync.readiness import (
    DEFAULT_EXCLUDED_WORKLOADS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)

DEFAULT_CONFIG_PATH = Path("envsync.yaml")


class EnvSyncConfig(BaseSettings):
    """Settings shared by the apply and sync-dashboards commands."""

    model_config = SettingsConfigDict(
        env_prefix="ENVSYNC_",
        extra="forbid",
    )

    # Monitoring
    project_id: str = Field(
        default="flash-aviary-488614-c1",
        min_length=1,
        description="Google Cloud project holding the monitoring dashboards",
    )
    dashboards_dir: Path = Field(
        default=Path("monitoring/dashboards"),
        description="Directory of dashboard JSON definitions",
    )
    duplicate_dashboards: DuplicatePolicy = Field(
        default=DuplicatePolicy.ERROR,
        description="Policy for local dashboards sharing a displayName",
    )

    # Environments and deployment
    environments: list[str] = Field(
        default_factory=lambda: ["staging", "production"],
        description="Ordered environment (namespace) names",
    )
    default_namespace: str = Field(
        default="default",
        description="Namespace used when no environments are configured",
    )
    manifest_path: Path = Field(
        default=Path("kubernetes-manifests"),
        description="Manifest file or directory applied into each environment",
    )

    # Readiness
    exclude_workloads: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_WORKLOADS),
        description="Workload name patterns never gated on",
    )
    rollout_timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Per-workload rollout budget",
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        le=60,
        description="Delay between rollout status queries",
    )

    # State
    state_file: Path = Field(
        default=Path(".envsync/state.json"),
        description="Last-applied trigger store",
    )

    # Cluster shape (consumed by the provisioning tool; validated here)
    machine_type: str = Field(default="e2-standard-4", min_length=1)
    node_count: int = Field(default=3, ge=1, le=100)

    # Cluster access
    kubeconfig: Path | None = Field(default=None)
    kube_context: str | None = Field(default=None)

    @field_validator("environments", "exclude_workloads")
    @classmethod
    def strip_blank_names(cls, v: list[str]) -> list[str]:
        """Drop blank entries and surrounding whitespace."""
        return [item.strip() for item in v if item and item.strip()]

    @model_validator(mode="after")
    def poll_interval_within_timeout(self) -> Self:
        """Validate that at least one poll fits inside the rollout budget."""
        if self.poll_interval_seconds > self.rollout_timeout_seconds:
            msg = (
                f"poll_interval_seconds ({self.poll_interval_seconds:g}) must not exceed "
                f"rollout_timeout_seconds ({self.rollout_timeout_seconds:g})"
            )
            raise ValueError(msg)
        return self


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration values from a YAML file.

    Returns:
        Mapping of values, or an empty dict if the file does not exist.

    Raises:
        ConfigurationError: If the file is not a YAML mapping.
    """
    if not config_path.exists():
        return {}

    import yaml

    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")
    return data


def get_config(config_path: Path | None = None, **overrides: Any) -> EnvSyncConfig:
    """Load configuration from YAML, environment variables and overrides.

    Precedence (highest first): ``overrides``, ``ENVSYNC_*`` variables, YAML.

    Raises:
        ConfigurationError: If values fail validation.
    """
    yaml_values = load_yaml_config(config_path or DEFAULT_CONFIG_PATH)
    explicit = {k: v for k, v in overrides.items() if v is not None}
    try:
        # Init kwargs outrank env vars in pydantic-settings, so the raw env
        # layer is read from the settings source and only the merge is validated.
        env_values = EnvSettingsSource(EnvSyncConfig)()
        merged = {**yaml_values, **env_values, **explicit}
        return EnvSyncConfig.model_validate(merged)
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


__all__ = ["DEFAULT_CONFIG_PATH", "EnvSyncConfig", "get_config", "load_yaml_config"]
