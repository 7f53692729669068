"""Cluster health report.

HealthChecker gathers node readiness, pod distribution, resource usage,
system component state and storage into one HealthReport. Each query is a
supervised read on the service it depends on:

- ``kubectl``: nodes and pods
- ``metrics_server``: ``kubectl top nodes``
- ``storage``: persistent volumes, claims and storage classes

Node status is required, so a cluster that cannot list its nodes fails
the whole report. Every other check is best effort: its failure is logged,
recorded in ``HealthReport.skipped`` and the remaining checks still run.

Example usage:
    checker = HealthChecker(kubectl, supervisor, config)
    report = checker.cluster_health_check()
    if not report.healthy:
        ...
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from kubemaint.cluster.kubectl import KubectlClient
from kubemaint.cluster.nodes import NodeDetails
from kubemaint.core.config import MaintenanceConfig
from kubemaint.core.constants import SERVICE_KUBECTL, SERVICE_METRICS_SERVER, SERVICE_STORAGE
from kubemaint.core.errors import MaintenanceError
from kubemaint.core.logging import get_logger
from kubemaint.execution.supervisor import OperationSupervisor

_logger = get_logger("health")

T = TypeVar("T")

SYSTEM_NAMESPACE = "kube-system"

# Container states that mark a pod as broken even while its phase is Running
_PROBLEM_REASONS = frozenset({
    "CrashLoopBackOff",
    "ImagePullBackOff",
    "ErrImagePull",
    "CreateContainerConfigError",
    "Error",
})


class Severity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


def _severity(percent: int, warning: int, critical: int) -> Severity:
    if percent >= critical:
        return Severity.CRITICAL
    if percent >= warning:
        return Severity.WARNING
    return Severity.OK


@dataclass(frozen=True)
class NodeUsage:
    """One row of ``kubectl top nodes``, graded against the thresholds."""

    name: str
    cpu: str
    cpu_percent: int
    memory: str
    memory_percent: int
    cpu_severity: Severity = Severity.OK
    memory_severity: Severity = Severity.OK

    @property
    def severity(self) -> Severity:
        order = list(Severity)
        return max(self.cpu_severity, self.memory_severity, key=order.index)


def parse_top_nodes(output: str, cpu: tuple[int, int], memory: tuple[int, int]) -> list[NodeUsage]:
    """Parse ``kubectl top nodes --no-headers``.

    ``cpu`` and ``memory`` are (warning, critical) percent thresholds. Rows
    the metrics server reports as ``<unknown>`` are skipped.
    """
    usage: list[NodeUsage] = []
    for line in output.splitlines():
        columns = line.split()
        if len(columns) < 5:
            continue
        name, cpu_used, cpu_pct, mem_used, mem_pct = columns[:5]
        try:
            cpu_percent = int(cpu_pct.rstrip("%"))
            memory_percent = int(mem_pct.rstrip("%"))
        except ValueError:
            _logger.debug("health.usage_unparsed", line=line)
            continue
        usage.append(
            NodeUsage(
                name=name,
                cpu=cpu_used,
                cpu_percent=cpu_percent,
                memory=mem_used,
                memory_percent=memory_percent,
                cpu_severity=_severity(cpu_percent, *cpu),
                memory_severity=_severity(memory_percent, *memory),
            )
        )
    return usage


@dataclass(frozen=True)
class ProblemPod:
    """A pod that is failing, stuck, or restarting too often."""

    namespace: str
    name: str
    status: str
    restarts: int
    node: str | None

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"


def _restarts(item: dict[str, Any]) -> int:
    statuses = item.get("status", {}).get("containerStatuses") or []
    return sum(int(s.get("restartCount", 0)) for s in statuses)


def _container_problem(item: dict[str, Any]) -> str | None:
    for status in item.get("status", {}).get("containerStatuses") or []:
        state = status.get("state") or {}
        for detail in (state.get("waiting"), state.get("terminated")):
            reason = (detail or {}).get("reason")
            if reason in _PROBLEM_REASONS:
                return str(reason)
    return None


def find_problem_pod(item: dict[str, Any], restart_threshold: int) -> ProblemPod | None:
    """Classify one pod manifest; None when the pod looks healthy."""
    phase = item.get("status", {}).get("phase", "Unknown")
    if phase == "Succeeded":
        return None
    restarts = _restarts(item)
    status = _container_problem(item)
    if status is None and phase in ("Pending", "Failed", "Unknown"):
        status = phase
    if status is None and restart_threshold and restarts >= restart_threshold:
        status = f"{restarts} restarts"
    if status is None:
        return None
    metadata = item.get("metadata", {})
    return ProblemPod(
        namespace=metadata.get("namespace", "default"),
        name=metadata.get("name", ""),
        status=status,
        restarts=restarts,
        node=item.get("spec", {}).get("nodeName"),
    )


@dataclass
class HealthReport:
    """Everything one health check found."""

    nodes: list[NodeDetails] = field(default_factory=list)
    pods_per_node: dict[str, int] = field(default_factory=dict)
    problem_pods: list[ProblemPod] = field(default_factory=list)
    usage: list[NodeUsage] | None = None
    """None when the metrics server could not be queried."""
    system_pods_down: list[str] = field(default_factory=list)
    unbound_volumes: list[str] = field(default_factory=list)
    claims: dict[str, str] = field(default_factory=dict)
    storage_classes: int | None = None
    skipped: dict[str, str] = field(default_factory=dict)
    """Best-effort checks that failed, with the reason."""

    @property
    def not_ready(self) -> list[str]:
        return [node.name for node in self.nodes if not node.ready]

    @property
    def ready_count(self) -> int:
        return len(self.nodes) - len(self.not_ready)

    @property
    def healthy(self) -> bool:
        """No unready nodes, broken pods, critical usage or unbound volumes."""
        critical_usage = any(u.severity == Severity.CRITICAL for u in self.usage or [])
        return not (
            self.not_ready
            or self.problem_pods
            or critical_usage
            or self.system_pods_down
            or self.unbound_volumes
        )


class HealthChecker:
    """Runs the cluster health checks through the supervisor.

    Args:
        kubectl: Client used for every query.
        supervisor: Provides circuit breakers and retries.
        config: Thresholds and the health check timeout.
    """

    def __init__(
        self,
        kubectl: KubectlClient,
        supervisor: OperationSupervisor,
        config: MaintenanceConfig | None = None,
    ) -> None:
        self._kubectl = kubectl
        self._supervisor = supervisor
        self._config = config or supervisor.context.config

    @property
    def _timeout(self) -> float:
        return self._config.timeouts.health_check_timeout

    def _read(self, service: str, operation: str, query: Callable[[], T]) -> T:
        policy = self._supervisor.policy(operation, max_attempts=2, initial_delay=1, max_delay=5)
        return self._supervisor.execute(service, policy, query)

    def _best_effort(
        self, report: HealthReport, check: str, service: str, query: Callable[[], T]
    ) -> T | None:
        try:
            return self._read(service, check, query)
        except MaintenanceError as e:
            _logger.warning("health.check_skipped", check=check, service=service, error=e.message)
            report.skipped[check] = e.message
            return None

    def check_node_status(self) -> list[NodeDetails]:
        """Every node with its conditions. Raises when nodes cannot be listed."""
        items = self._read(
            SERVICE_KUBECTL, "node status", lambda: self._kubectl.list_nodes(timeout=self._timeout)
        )
        nodes = [NodeDetails.from_manifest(item) for item in items]
        not_ready = [node.name for node in nodes if not node.ready]
        if not_ready:
            _logger.warning("health.nodes_not_ready", nodes=not_ready)
        return nodes

    def check_pod_distribution(self, report: HealthReport) -> None:
        items = self._best_effort(
            report,
            "pod distribution",
            SERVICE_KUBECTL,
            lambda: self._kubectl.all_pods(timeout=self._timeout),
        )
        if items is None:
            return
        counts = Counter(
            item.get("spec", {}).get("nodeName")
            for item in items
            if item.get("spec", {}).get("nodeName")
        )
        report.pods_per_node = dict(sorted(counts.items()))
        threshold = self._config.thresholds.pod_restart_threshold
        report.problem_pods = [
            pod
            for pod in (find_problem_pod(item, threshold) for item in items)
            if pod is not None
        ]
        if report.problem_pods:
            _logger.warning("health.problem_pods", count=len(report.problem_pods))

    def check_resource_utilization(self, report: HealthReport) -> None:
        output = self._best_effort(
            report,
            "resource utilization",
            SERVICE_METRICS_SERVER,
            lambda: self._kubectl.top_nodes(timeout=self._timeout),
        )
        if output is None:
            return
        thresholds = self._config.thresholds
        report.usage = parse_top_nodes(
            output,
            cpu=(thresholds.cpu_warning, thresholds.cpu_critical),
            memory=(thresholds.memory_warning, thresholds.memory_critical),
        )
        for usage in report.usage:
            if usage.severity != Severity.OK:
                _logger.warning(
                    "health.usage_high",
                    node=usage.name,
                    cpu_percent=usage.cpu_percent,
                    memory_percent=usage.memory_percent,
                    severity=usage.severity.value,
                )

    def check_system_components(self, report: HealthReport) -> None:
        pods = self._best_effort(
            report,
            "system pods",
            SERVICE_KUBECTL,
            lambda: self._kubectl.pods_in_namespace(SYSTEM_NAMESPACE, timeout=self._timeout),
        )
        if pods is not None:
            report.system_pods_down = [
                f"{SYSTEM_NAMESPACE}/{item.get('metadata', {}).get('name', '')}"
                for item in pods
                if item.get("status", {}).get("phase") not in ("Running", "Succeeded")
            ]

        volumes = self._best_effort(
            report,
            "persistent volumes",
            SERVICE_STORAGE,
            lambda: self._kubectl.persistent_volumes(timeout=self._timeout),
        )
        if volumes is not None:
            report.unbound_volumes = [
                item.get("metadata", {}).get("name", "")
                for item in volumes
                if item.get("status", {}).get("phase") != "Bound"
            ]

    def check_storage_capacity(self, report: HealthReport) -> None:
        claims = self._best_effort(
            report,
            "volume claims",
            SERVICE_STORAGE,
            lambda: self._kubectl.persistent_volume_claims(timeout=self._timeout),
        )
        if claims is not None:
            report.claims = {
                f"{c.get('metadata', {}).get('namespace', 'default')}/"
                f"{c.get('metadata', {}).get('name', '')}": (
                    (c.get("status", {}).get("capacity") or {}).get("storage", "N/A")
                )
                for c in claims
            }

        classes = self._best_effort(
            report,
            "storage classes",
            SERVICE_STORAGE,
            lambda: self._kubectl.storage_classes(timeout=self._timeout),
        )
        if classes is not None:
            report.storage_classes = len(classes)

    def cluster_health_check(self) -> HealthReport:
        """Run every check and return the combined report."""
        _logger.info("health.started")
        report = HealthReport(nodes=self.check_node_status())
        self.check_pod_distribution(report)
        self.check_resource_utilization(report)
        self.check_system_components(report)
        self.check_storage_capacity(report)
        _logger.info(
            "health.completed",
            healthy=report.healthy,
            nodes=len(report.nodes),
            not_ready=len(report.not_ready),
            problem_pods=len(report.problem_pods),
            skipped=sorted(report.skipped),
        )
        return report


__all__ = [
    "HealthChecker",
    "HealthReport",
    "NodeUsage",
    "ProblemPod",
    "Severity",
    "find_problem_pod",
    "parse_top_nodes",
]
