"""Top-level maintenance configuration and runtime toggles."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pydantic
import yaml
from pydantic import BaseModel, Field

from kubemaint.core.config.cluster import ClusterConfig, NodeMaintenanceConfig, ThresholdConfig
from kubemaint.core.config.execution import CircuitBreakerConfig, RetryConfig, TimeoutConfig
from kubemaint.core.constants import DEFAULT_CONFIG_PATHS
from kubemaint.core.errors import ConfigError
from kubemaint.core.logging import get_logger

_logger = get_logger("config")


class Environment(str, Enum):
    """Deployment environment a configuration describes."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    LOCAL = "local"


class MaintenanceConfig(BaseModel):
    """Complete kubemaint configuration, usually loaded from YAML.

    Every field has a default so an empty document (or no file at all)
    yields a working configuration.
    """

    environment: Environment = Environment.DEVELOPMENT
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    excluded_namespaces: list[str] = Field(
        default_factory=lambda: ["kube-system", "kube-public", "kube-node-lease"],
        min_length=1,
    )
    retention_days: int = Field(default=30, ge=1, le=365)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    node_maintenance: NodeMaintenanceConfig = Field(default_factory=NodeMaintenanceConfig)
    confirmation_required: bool = True

    @classmethod
    def from_yaml(cls, path: Path) -> MaintenanceConfig:
        """Load configuration from a YAML file.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not UTF-8 text.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the document fails schema validation.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> MaintenanceConfig:
        """Load configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})

    @classmethod
    def load(cls, path: Path | None = None) -> MaintenanceConfig:
        """Load configuration, falling back to defaults when no file exists.

        With an explicit path that does not exist, defaults are used and a
        warning is logged. Without a path, DEFAULT_CONFIG_PATHS are searched.

        Raises:
            ConfigError: If a file exists but cannot be parsed or validated.
        """
        candidates = [path] if path is not None else [Path(p) for p in DEFAULT_CONFIG_PATHS]
        for candidate in candidates:
            if not candidate.is_file():
                continue
            try:
                config = cls.from_yaml(candidate)
            except (
                OSError,
                UnicodeDecodeError,
                yaml.YAMLError,
                pydantic.ValidationError,
            ) as e:
                raise ConfigError(
                    f"Invalid configuration in {candidate}: {e}", operation="load_config"
                ) from e
            _logger.debug("config.loaded", path=str(candidate))
            return config

        if path is not None:
            _logger.warning("config.not_found", path=str(path), fallback="defaults")
        return cls()


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_flag(environ: Mapping[str, str], *names: str) -> bool:
    return any(environ.get(name, "").strip().lower() in _TRUE_VALUES for name in names)


@dataclass(frozen=True)
class RuntimeToggles:
    """Process-wide switches read once from the environment.

    CLI options override these after they are read.
    """

    debug: bool = False
    dry_run: bool = False
    force: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RuntimeToggles:
        env = os.environ if environ is None else environ
        return cls(
            debug=_env_flag(env, "K8S_MAINTENANCE_DEBUG"),
            dry_run=_env_flag(env, "DRY_RUN", "K8S_MAINTENANCE_DRY_RUN"),
            force=_env_flag(env, "FORCE_OPERATIONS"),
        )

    def override(
        self,
        debug: bool | None = None,
        dry_run: bool | None = None,
        force: bool | None = None,
    ) -> RuntimeToggles:
        """Return a copy with any non-None flag replaced (CLI wins over env)."""
        return RuntimeToggles(
            debug=self.debug if debug is None else debug,
            dry_run=self.dry_run if dry_run is None else dry_run,
            force=self.force if force is None else force,
        )
