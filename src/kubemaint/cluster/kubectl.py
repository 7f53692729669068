"""Thin wrapper around the kubectl CLI with per-call timeouts.

Every invocation is bounded by a timeout and every failure is raised as a
MaintenanceError subclass whose kind is derived from kubectl's stderr, so
the retry engine can tell a flaky apiserver from bad credentials.
"""

from __future__ import annotations

import json
import re
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kubemaint.core.constants import KUBECTL_BINARY, TRUNCATE_STDERR_CHARS
from kubemaint.core.errors import (
    ConfigError,
    ErrorKind,
    ExternalToolError,
    OperationTimeoutError,
)
from kubemaint.core.logging import get_logger

_logger = get_logger("kubectl")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

# Checked in order; the first match wins.
_STDERR_PATTERNS: tuple[tuple[re.Pattern[str], ErrorKind], ...] = (
    (re.compile(r"unauthorized|you must be logged in", re.IGNORECASE), ErrorKind.AUTH),
    (re.compile(r"forbidden", re.IGNORECASE), ErrorKind.PERMISSION),
    (re.compile(r"notfound|not found", re.IGNORECASE), ErrorKind.NOT_FOUND),
    (
        re.compile(
            r"connection refused|was refused|unable to connect|i/o timeout|no such host",
            re.IGNORECASE,
        ),
        ErrorKind.NETWORK,
    ),
    (re.compile(r"unknown flag|invalid", re.IGNORECASE), ErrorKind.VALIDATION),
)


def classify_kubectl_failure(stderr: str) -> ErrorKind:
    """Map kubectl's stderr to an ErrorKind. Unrecognized output is EXTERNAL_TOOL."""
    for pattern, kind in _STDERR_PATTERNS:
        if pattern.search(stderr):
            return kind
    return ErrorKind.EXTERNAL_TOOL


@dataclass(frozen=True)
class KubectlResult:
    """Outcome of one kubectl invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class PodRef:
    """A pod reduced to what node maintenance cares about."""

    namespace: str
    name: str
    phase: str
    node: str | None
    owner_kinds: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_daemonset_pod(self) -> bool:
        return "DaemonSet" in self.owner_kinds

    @classmethod
    def from_manifest(cls, item: dict[str, Any]) -> PodRef:
        metadata = item.get("metadata", {})
        owners = tuple(ref.get("kind", "") for ref in metadata.get("ownerReferences") or [])
        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", ""),
            phase=item.get("status", {}).get("phase", "Unknown"),
            node=item.get("spec", {}).get("nodeName"),
            owner_kinds=owners,
        )


class KubectlClient:
    """Runs kubectl with a default per-call timeout.

    Args:
        binary: kubectl executable.
        timeout: Default timeout in seconds for each call.
        context: kubectl context to pass as ``--context``; current context if None.
        runner: ``subprocess.run``-compatible callable, injectable for tests.
        token: Returns a bearer token to pass as ``--token``, or None to
            let kubectl use its kubeconfig credentials. Called per invocation,
            so a token forgotten at cleanup is never sent again.
    """

    def __init__(
        self,
        binary: str = KUBECTL_BINARY,
        timeout: float = 60,
        context: str | None = None,
        runner: Runner = subprocess.run,
        token: Callable[[], str | None] | None = None,
    ) -> None:
        self.binary = binary
        self.timeout = timeout
        self.context = context
        self._runner = runner
        self._token = token

    def _command(self, args: tuple[str, ...]) -> list[str]:
        command = [self.binary]
        if self.context:
            command.append(f"--context={self.context}")
        token = self._token() if self._token is not None else None
        if token:
            command.append(f"--token={token}")
        command.extend(args)
        return command

    def run(self, *args: str, timeout: float | None = None, check: bool = True) -> KubectlResult:
        """Run ``kubectl <args>``.

        Raises:
            ConfigError: kubectl is not installed.
            OperationTimeoutError: The call exceeded its timeout.
            MaintenanceError: (check=True) kubectl exited non-zero; the
                kind is classified from stderr.
        """
        limit = self.timeout if timeout is None else timeout
        operation = f"kubectl {args[0]}" if args else "kubectl"
        start = time.monotonic()
        try:
            completed = self._runner(
                self._command(args),
                capture_output=True,
                text=True,
                timeout=limit,
                check=False,
            )
        except FileNotFoundError as e:
            raise ConfigError(
                f"{self.binary!r} not found; install kubectl and ensure it is on PATH",
                operation=operation,
            ) from e
        except subprocess.TimeoutExpired as e:
            _logger.warning("kubectl.timeout", args=list(args), timeout_seconds=limit)
            raise OperationTimeoutError(
                f"timed out after {limit:g}s", operation=operation
            ) from e

        result = KubectlResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration_seconds=time.monotonic() - start,
        )
        _logger.debug(
            "kubectl.completed",
            args=list(args),
            returncode=result.returncode,
            duration_seconds=round(result.duration_seconds, 3),
        )
        if check and not result.ok:
            stderr = result.stderr.strip()[:TRUNCATE_STDERR_CHARS]
            raise ExternalToolError(
                stderr or f"exited with status {result.returncode}",
                kind=classify_kubectl_failure(stderr),
                operation=operation,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def json(self, *args: str, timeout: float | None = None) -> Any:
        """Run ``kubectl <args> -o json`` and parse the output."""
        result = self.run(*args, "-o", "json", timeout=timeout)
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ExternalToolError(
                f"unparseable JSON output: {e}", operation=f"kubectl {args[0]}"
            ) from e

    # Node operations

    def get_node(self, node: str) -> dict[str, Any]:
        manifest: dict[str, Any] = self.json("get", "node", node)
        return manifest

    def is_unschedulable(self, node: str) -> bool:
        """True when the node is cordoned."""
        result = self.run("get", "node", node, "-o", "jsonpath={.spec.unschedulable}")
        return result.stdout.strip() == "true"

    def cordon(self, node: str) -> KubectlResult:
        return self.run("cordon", node)

    def uncordon(self, node: str) -> KubectlResult:
        return self.run("uncordon", node)

    def drain(
        self,
        node: str,
        drain_timeout: int,
        grace_period: int,
        ignore_daemonsets: bool = True,
        delete_emptydir_data: bool = True,
        timeout: float | None = None,
    ) -> KubectlResult:
        """Evict every pod from ``node``.

        ``drain_timeout`` is passed to kubectl; ``timeout`` bounds the
        process itself and should be a little longer.
        """
        args = [
            "drain",
            node,
            f"--timeout={drain_timeout}s",
            f"--grace-period={grace_period}",
            "--force",
        ]
        if delete_emptydir_data:
            args.append("--delete-emptydir-data")
        if ignore_daemonsets:
            args.append("--ignore-daemonsets")
        return self.run(*args, timeout=timeout)

    # Pod queries

    def pods_on_node(self, node: str) -> list[PodRef]:
        data = self.json(
            "get", "pods", "--all-namespaces", f"--field-selector=spec.nodeName={node}"
        )
        return [PodRef.from_manifest(item) for item in data.get("items", [])]

    def pending_pods(self) -> list[dict[str, Any]]:
        """Raw manifests of every Pending pod in the cluster."""
        return self._items(
            "get", "pods", "--all-namespaces", "--field-selector=status.phase=Pending"
        )

    # Cluster queries

    def cluster_info(self) -> str:
        return self.run("cluster-info").stdout

    def server_version(self) -> str:
        data = self.json("version")
        server = data.get("serverVersion") or {}
        return str(server.get("gitVersion", "unknown"))

    def list_nodes(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "nodes", timeout=timeout)

    def all_pods(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "pods", "--all-namespaces", timeout=timeout)

    def pods_in_namespace(
        self, namespace: str, timeout: float | None = None
    ) -> list[dict[str, Any]]:
        return self._items("get", "pods", "-n", namespace, timeout=timeout)

    def failed_pods(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items(
            "get", "pods", "--all-namespaces", "--field-selector=status.phase=Failed",
            timeout=timeout,
        )

    def jobs(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "jobs", "--all-namespaces", timeout=timeout)

    def top_nodes(self, timeout: float | None = None) -> str:
        """Raw ``kubectl top nodes`` table; needs the metrics server."""
        return self.run("top", "nodes", "--no-headers", timeout=timeout).stdout

    # Storage queries

    def persistent_volumes(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "pv", timeout=timeout)

    def persistent_volume_claims(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "pvc", "--all-namespaces", timeout=timeout)

    def storage_classes(self, timeout: float | None = None) -> list[dict[str, Any]]:
        return self._items("get", "storageclass", timeout=timeout)

    # Deletion

    def delete(self, kind: str, name: str, namespace: str) -> KubectlResult:
        return self.run("delete", kind, name, "-n", namespace)

    def _items(self, *args: str, timeout: float | None = None) -> list[dict[str, Any]]:
        data = self.json(*args, timeout=timeout)
        items: list[dict[str, Any]] = data.get("items", [])
        return items


__all__ = [
    "KubectlClient",
    "KubectlResult",
    "PodRef",
    "classify_kubectl_failure",
]
