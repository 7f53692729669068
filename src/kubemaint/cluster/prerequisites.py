"""Pre-flight checks run before any maintenance command."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass

from kubemaint.cluster.kubectl import KubectlClient
from kubemaint.core.constants import SERVICE_API_SERVER
from kubemaint.core.errors import (
    CircuitOpenError,
    ConfigError,
    ErrorKind,
    MaintenanceError,
    NetworkError,
)
from kubemaint.core.logging import get_logger
from kubemaint.execution.supervisor import OperationSupervisor

_logger = get_logger("prerequisites")

# Connectivity failures of these kinds are reported as-is instead of NETWORK
_PASSTHROUGH_KINDS = frozenset({ErrorKind.AUTH, ErrorKind.PERMISSION, ErrorKind.CONFIG})


@dataclass(frozen=True)
class PrerequisiteReport:
    """What the pre-flight checks found."""

    tools: tuple[str, ...]
    server_version: str | None


def check_prerequisites(
    kubectl: KubectlClient,
    supervisor: OperationSupervisor,
    which: Callable[[str], str | None] | None = None,
) -> PrerequisiteReport:
    """Verify required tools are installed and the cluster is reachable.

    Raises:
        ConfigError: A required tool is missing from PATH.
        NetworkError: The cluster could not be reached after retries.
        CircuitOpenError: The api_server breaker is open.
    """
    _logger.info("prerequisites.checking")

    find = which or shutil.which
    tools = (kubectl.binary,)
    missing = [tool for tool in tools if find(tool) is None]
    if missing:
        raise ConfigError(
            f"Missing required tools: {', '.join(missing)}", operation="prerequisites"
        )

    policy = supervisor.policy(
        "kubectl connectivity check", max_attempts=3, initial_delay=2, max_delay=10
    )
    try:
        supervisor.execute(SERVICE_API_SERVER, policy, kubectl.cluster_info)
    except CircuitOpenError:
        raise
    except MaintenanceError as e:
        if e.kind in _PASSTHROUGH_KINDS:
            raise
        raise NetworkError(
            "Cannot connect to Kubernetes cluster; check your kubeconfig and cluster connectivity",
            operation="kubectl connectivity check",
        ) from e

    version: str | None
    try:
        version = kubectl.server_version()
    except MaintenanceError as e:
        _logger.warning("prerequisites.version_unknown", error=str(e))
        version = None
    else:
        _logger.info("prerequisites.connected", server_version=version)

    _logger.info("prerequisites.passed")
    return PrerequisiteReport(tools=tools, server_version=version)
