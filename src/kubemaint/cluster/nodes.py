"""Node maintenance: drain, cordon and uncordon with rollback protection.

Every cluster call runs through the OperationSupervisor on the ``kubectl``
service. Destructive sequences register their compensating action before
the first mutation and only discard it once every step has succeeded, so a
failure part-way through (or an interrupt) uncordons the node again. A node
the operator had already cordoned is never uncordoned by a rollback.

Read-only helpers report pending pods, node conditions and node capacity.
"""

from __future__ import annotations

import re
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

from kubemaint.cluster.kubectl import KubectlClient, PodRef
from kubemaint.cluster.prompts import Prompter
from kubemaint.core.config import MaintenanceConfig
from kubemaint.core.constants import (
    DRAIN_TIMEOUT_GRACE_SECONDS,
    MAX_RESOURCE_NAME_LENGTH,
    SERVICE_KUBECTL,
)
from kubemaint.core.errors import (
    ErrorKind,
    MaintenanceError,
    ResourceNotFoundError,
    ValidationError,
)
from kubemaint.core.logging import get_logger, narrowed_context
from kubemaint.execution.supervisor import OperationSupervisor

_logger = get_logger("nodes")

_RFC1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

# Existence-check failures of these kinds are reported as "node not found";
# anything else (auth, network, open circuit...) keeps its own kind.
_NOT_FOUND_KINDS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.EXTERNAL_TOOL, ErrorKind.GENERAL})


def validate_resource_name(name: str, kind: str = "resource") -> str:
    """Check ``name`` against RFC 1123 label rules.

    Returns:
        The name, unchanged.

    Raises:
        ValidationError: If the name is empty, malformed or too long.
    """
    if not name:
        raise ValidationError(f"{kind} name cannot be empty")
    if not _RFC1123_LABEL.match(name):
        raise ValidationError(f"Invalid {kind} name: {name!r} (must match RFC 1123)")
    if len(name) > MAX_RESOURCE_NAME_LENGTH:
        raise ValidationError(
            f"{kind} name too long: {name!r} (max {MAX_RESOURCE_NAME_LENGTH} characters)"
        )
    return name


class ActionOutcome(str, Enum):
    """How a node operation ended when it did not raise."""

    COMPLETED = "completed"
    UNCHANGED = "unchanged"
    """The node was already in the requested state."""
    CANCELLED = "cancelled"
    """The operator declined the confirmation prompt."""


@dataclass(frozen=True)
class PendingPod:
    """A pod stuck in the Pending phase, with its latest condition."""

    namespace: str
    name: str
    reason: str
    message: str
    node: str | None
    created: str | None

    @classmethod
    def from_manifest(cls, item: dict[str, Any]) -> PendingPod:
        metadata = item.get("metadata", {})
        conditions = item.get("status", {}).get("conditions") or []
        latest = conditions[-1] if conditions else {}
        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", ""),
            reason=latest.get("reason") or "Unknown",
            message=latest.get("message") or "No message",
            node=item.get("spec", {}).get("nodeName"),
            created=metadata.get("creationTimestamp"),
        )


@dataclass(frozen=True)
class NodeCondition:
    type: str
    status: str
    message: str


@dataclass(frozen=True)
class NodeDetails:
    """Conditions, taints and labels of one node."""

    name: str
    conditions: tuple[NodeCondition, ...]
    taints: tuple[str, ...]
    labels: dict[str, str]
    unschedulable: bool = False

    @property
    def ready(self) -> bool:
        return any(c.type == "Ready" and c.status == "True" for c in self.conditions)

    @classmethod
    def from_manifest(cls, item: dict[str, Any]) -> NodeDetails:
        metadata = item.get("metadata", {})
        spec = item.get("spec", {})
        conditions = tuple(
            NodeCondition(
                type=c.get("type", "Unknown"),
                status=c.get("status", "Unknown"),
                message=c.get("message") or "N/A",
            )
            for c in item.get("status", {}).get("conditions") or []
        )
        taints = tuple(
            f"{t.get('key', '')}={t.get('value', '')}:{t.get('effect', '')}"
            for t in spec.get("taints") or []
        )
        return cls(
            name=metadata.get("name", ""),
            conditions=conditions,
            taints=taints,
            labels=dict(metadata.get("labels") or {}),
            unschedulable=bool(spec.get("unschedulable", False)),
        )


@dataclass(frozen=True)
class NodeCapacity:
    """Raw and allocatable resources of one node, as Kubernetes quantities."""

    name: str
    capacity: dict[str, str]
    allocatable: dict[str, str]

    @classmethod
    def from_manifest(cls, item: dict[str, Any]) -> NodeCapacity:
        status = item.get("status", {})
        return cls(
            name=item.get("metadata", {}).get("name", ""),
            capacity=dict(status.get("capacity") or {}),
            allocatable=dict(status.get("allocatable") or {}),
        )


class NodeManager:
    """Node maintenance operations built on the supervisor.

    Args:
        kubectl: Client used for every cluster call.
        supervisor: Provides circuit breaker, retry and rollback bookkeeping.
        config: Timeouts, drain flags and confirmation policy.
        prompter: Asks the operator for confirmation.
        console: Where pod listings are shown; nothing is printed if None.
        force: Skip confirmation prompts.
    """

    def __init__(
        self,
        kubectl: KubectlClient,
        supervisor: OperationSupervisor,
        config: MaintenanceConfig | None = None,
        prompter: Prompter | None = None,
        console: Console | None = None,
        force: bool = False,
    ) -> None:
        self._kubectl = kubectl
        self._supervisor = supervisor
        self._config = config or supervisor.context.config
        self._prompter = prompter or Prompter(timeout=self._config.timeouts.confirmation_timeout)
        self._console = console
        self._force = force

    def _needs_confirmation(self, force: bool) -> bool:
        return not (force or self._force) and self._config.confirmation_required

    def _ensure_exists(self, node: str, attempts: int, delay: float, max_delay: float) -> None:
        policy = self._supervisor.policy(
            "node existence check",
            max_attempts=attempts,
            initial_delay=delay,
            max_delay=max_delay,
        )
        try:
            self._supervisor.execute(SERVICE_KUBECTL, policy, lambda: self._kubectl.get_node(node))
        except MaintenanceError as e:
            if e.kind in _NOT_FOUND_KINDS:
                raise ResourceNotFoundError(
                    f"Node {node!r} not found or inaccessible", operation="node existence check"
                ) from e
            raise

    def _is_cordoned(self, node: str) -> bool | None:
        """Current cordon status, or None when it cannot be read."""
        policy = self._supervisor.policy(
            "node status", max_attempts=2, initial_delay=1, max_delay=5
        )
        try:
            return self._supervisor.execute(
                SERVICE_KUBECTL, policy, lambda: self._kubectl.is_unschedulable(node)
            )
        except MaintenanceError as e:
            _logger.debug("nodes.status_unavailable", node=node, error=str(e))
            return None

    def _show_pods(self, node: str, pods: list[PodRef]) -> None:
        if self._console is None:
            return
        table = Table(title=f"Pods currently running on node {node}")
        table.add_column("Namespace", style="cyan")
        table.add_column("Name")
        table.add_column("Phase")
        table.add_column("DaemonSet", justify="center")
        for pod in pods:
            table.add_row(pod.namespace, pod.name, pod.phase, "yes" if pod.is_daemonset_pod else "")
        self._console.print(table)

    def drain_node(self, node: str, force: bool = False) -> ActionOutcome:
        """Cordon and drain ``node``, uncordoning it again if anything fails.

        A node that was already cordoned is drained as is and stays cordoned
        on failure, since there is no cordon of ours to undo.

        Raises:
            ValidationError: The node name is malformed.
            ResourceNotFoundError: The node does not exist.
            MaintenanceError: Cordon, drain or verification failed. The
                uncordon action is left on the rollback stack.
        """
        validate_resource_name(node, "node")
        with narrowed_context(node=node):
            return self._drain(node, force)

    def _drain(self, node: str, force: bool) -> ActionOutcome:
        _logger.info("nodes.verifying_existence", node=node)
        self._ensure_exists(node, attempts=3, delay=2, max_delay=10)

        already_cordoned = self._is_cordoned(node) is True
        if already_cordoned:
            _logger.warning("nodes.already_cordoned", node=node, rollback="none")

        pods_policy = self._supervisor.policy("pod listing", max_attempts=1)
        pods = self._supervisor.execute(
            SERVICE_KUBECTL, pods_policy, lambda: self._kubectl.pods_on_node(node)
        )
        self._show_pods(node, pods)

        if self._needs_confirmation(force):
            prompt = f"Are you sure you want to drain node '{node}'? This will evict all pods."
            if not self._prompter.confirm_critical(prompt, "yes"):
                _logger.info("nodes.drain_cancelled", node=node)
                return ActionOutcome.CANCELLED

        timeouts = self._config.timeouts
        maintenance = self._config.node_maintenance
        _logger.info(
            "nodes.drain_started",
            node=node,
            drain_timeout=timeouts.drain_timeout,
            grace_period=maintenance.grace_period,
            ignore_daemonsets=maintenance.ignore_daemonsets,
            dry_run=self._supervisor.dry_run,
        )

        if already_cordoned:
            guard: AbstractContextManager[None] = nullcontext()
        else:
            uncordon = self._supervisor.mutation(
                f"uncordon {node}", lambda: self._kubectl.uncordon(node)
            )
            guard = self._supervisor.guarded("drain", uncordon, f"Uncordon node {node}")

        with guard:
            if not already_cordoned:
                cordon_policy = self._supervisor.policy(
                    "node cordon", max_attempts=3, initial_delay=2, max_delay=10
                )
                self._supervisor.execute(
                    SERVICE_KUBECTL,
                    cordon_policy,
                    self._supervisor.mutation(f"cordon {node}", lambda: self._kubectl.cordon(node)),
                )

            drain = self._supervisor.mutation(
                f"drain {node}",
                lambda: self._kubectl.drain(
                    node,
                    drain_timeout=timeouts.drain_timeout,
                    grace_period=maintenance.grace_period,
                    ignore_daemonsets=maintenance.ignore_daemonsets,
                    delete_emptydir_data=maintenance.delete_emptydir_data,
                    timeout=timeouts.drain_timeout + DRAIN_TIMEOUT_GRACE_SECONDS,
                ),
            )
            self._supervisor.execute(
                SERVICE_KUBECTL, self._supervisor.policy("node drain", max_attempts=1), drain
            )

            if not self._supervisor.dry_run and not self.verify_node_drained(node):
                raise MaintenanceError(
                    f"Node {node!r} still runs non-DaemonSet pods after drain",
                    operation="node drain verification",
                )

        _logger.info("nodes.drained", node=node)
        return ActionOutcome.COMPLETED

    def verify_node_drained(self, node: str) -> bool:
        """True when no pods other than DaemonSet pods remain on ``node``."""
        _logger.info("nodes.verifying_drain", node=node)
        policy = self._supervisor.policy(
            "drain verification", max_attempts=2, initial_delay=1, max_delay=5
        )
        try:
            pods = self._supervisor.execute(
                SERVICE_KUBECTL, policy, lambda: self._kubectl.pods_on_node(node)
            )
        except MaintenanceError as e:
            _logger.warning("nodes.drain_unverifiable", node=node, error=str(e))
            return False

        remaining = [pod.qualified_name for pod in pods if not pod.is_daemonset_pod]
        if remaining:
            _logger.warning("nodes.pods_remaining", node=node, pods=remaining)
            return False
        return True

    def cordon_node(self, node: str, action: str = "cordon", force: bool = False) -> ActionOutcome:
        """Cordon or uncordon ``node``. A node already in that state is left alone."""
        if action not in ("cordon", "uncordon"):
            raise ValidationError(f"Action must be 'cordon' or 'uncordon', got {action!r}")
        validate_resource_name(node, "node")
        with narrowed_context(node=node):
            return self._cordon(node, action, force)

    def _cordon(self, node: str, action: str, force: bool) -> ActionOutcome:
        self._ensure_exists(node, attempts=2, delay=1, max_delay=5)

        cordoned = self._is_cordoned(node)
        if action == "cordon" and cordoned is True:
            _logger.info("nodes.already_cordoned", node=node)
            return ActionOutcome.UNCHANGED
        if action == "uncordon" and cordoned is False:
            _logger.info("nodes.already_uncordoned", node=node)
            return ActionOutcome.UNCHANGED

        if self._needs_confirmation(force):
            if not self._prompter.confirm(f"Are you sure you want to {action} node '{node}'?"):
                _logger.info("nodes.action_cancelled", node=node, action=action)
                return ActionOutcome.CANCELLED

        policy = self._supervisor.policy(
            f"node {action}", max_attempts=3, initial_delay=2, max_delay=10
        )
        cordon = self._supervisor.mutation(f"cordon {node}", lambda: self._kubectl.cordon(node))
        uncordon = self._supervisor.mutation(
            f"uncordon {node}", lambda: self._kubectl.uncordon(node)
        )
        if action == "cordon":
            with self._supervisor.guarded(
                "cordon", uncordon, f"Uncordon node {node} if cordon fails"
            ):
                self._supervisor.execute(SERVICE_KUBECTL, policy, cordon)
        else:
            self._supervisor.execute(SERVICE_KUBECTL, policy, uncordon)

        _logger.info("nodes.action_completed", node=node, action=action)
        return ActionOutcome.COMPLETED

    def check_pending_pods(self) -> list[PendingPod]:
        """Every Pending pod in the cluster, with its most recent condition."""
        _logger.info("nodes.checking_pending_pods")
        policy = self._supervisor.policy("pending pods query", max_attempts=1)
        items = self._supervisor.execute(SERVICE_KUBECTL, policy, self._kubectl.pending_pods)
        pending = [PendingPod.from_manifest(item) for item in items]
        if pending:
            _logger.warning("nodes.pending_pods_found", count=len(pending))
        return pending

    def node_details(self, node: str) -> NodeDetails:
        """Conditions, taints and labels of ``node``."""
        validate_resource_name(node, "node")
        policy = self._supervisor.policy(
            "node details", max_attempts=2, initial_delay=1, max_delay=5
        )
        manifest = self._supervisor.execute(
            SERVICE_KUBECTL, policy, lambda: self._kubectl.get_node(node)
        )
        return NodeDetails.from_manifest(manifest)

    def node_capacity(self, node: str | None = None) -> list[NodeCapacity]:
        """Capacity of ``node``, or of every node when no name is given."""
        policy = self._supervisor.policy(
            "node capacity", max_attempts=2, initial_delay=1, max_delay=5
        )
        if node is None:
            items = self._supervisor.execute(SERVICE_KUBECTL, policy, self._kubectl.list_nodes)
        else:
            validate_resource_name(node, "node")
            items = [
                self._supervisor.execute(
                    SERVICE_KUBECTL, policy, lambda: self._kubectl.get_node(node)
                )
            ]
        return [NodeCapacity.from_manifest(item) for item in items]
