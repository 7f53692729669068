"""Cluster identity, health thresholds and node maintenance settings."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClusterConfig(BaseModel):
    """Identifies the cluster a configuration targets."""

    name: str = Field(default="default")
    context: str | None = Field(
        default=None, description="kubectl context; the current context when unset"
    )
    region: str | None = None


class ThresholdConfig(BaseModel):
    """Percent thresholds used by health checks."""

    cpu_warning: int = Field(default=80, ge=1, le=100)
    cpu_critical: int = Field(default=95, ge=1, le=100)
    memory_warning: int = Field(default=80, ge=1, le=100)
    memory_critical: int = Field(default=95, ge=1, le=100)
    pod_restart_threshold: int = Field(default=10, ge=0)


class NodeMaintenanceConfig(BaseModel):
    """Flags passed to ``kubectl drain``."""

    grace_period: int = Field(default=30, ge=0, description="Pod termination grace period")
    ignore_daemonsets: bool = True
    delete_emptydir_data: bool = True
