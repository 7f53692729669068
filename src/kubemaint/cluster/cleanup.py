"""Cleanup of finished workload leftovers.

Three kinds of leftovers are found and deleted:

- evicted pods (phase Failed, reason Evicted)
- completed jobs older than the retention period
- failed jobs that never completed

Namespaces in ``excluded_namespaces`` are never touched. Every query and
every delete runs through the supervisor on the ``kubectl`` service, and
deletes honor dry-run. A failed delete is counted and the rest continue;
an open circuit stops the run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from kubemaint.cluster.kubectl import KubectlClient
from kubemaint.cluster.prompts import Prompter
from kubemaint.core.config import MaintenanceConfig
from kubemaint.core.constants import SERVICE_KUBECTL
from kubemaint.core.errors import CircuitOpenError, MaintenanceError
from kubemaint.core.logging import get_logger
from kubemaint.execution.supervisor import OperationSupervisor

_logger = get_logger("cleanup")


class CleanupTarget(str, Enum):
    EVICTED_PODS = "evicted-pods"
    COMPLETED_JOBS = "completed-jobs"
    FAILED_JOBS = "failed-jobs"


@dataclass(frozen=True)
class Candidate:
    """One resource selected for deletion."""

    kind: str
    namespace: str
    name: str
    detail: str = ""

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class CleanupResult:
    """What one target's cleanup found and did."""

    target: CleanupTarget
    found: list[Candidate]
    deleted: int = 0
    failed: int = 0
    cancelled: bool = False


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResourceCleaner:
    """Finds and deletes evicted pods and finished jobs.

    Args:
        kubectl: Client used for queries and deletes.
        supervisor: Provides circuit breakers, retries and dry-run.
        config: Excluded namespaces, retention and confirmation policy.
        prompter: Asks before deleting.
        force: Skip confirmation prompts.
        now: Current time, injectable for tests.
    """

    def __init__(
        self,
        kubectl: KubectlClient,
        supervisor: OperationSupervisor,
        config: MaintenanceConfig | None = None,
        prompter: Prompter | None = None,
        force: bool = False,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kubectl = kubectl
        self._supervisor = supervisor
        self._config = config or supervisor.context.config
        self._prompter = prompter or Prompter(timeout=self._config.timeouts.confirmation_timeout)
        self._force = force
        self._now = now

    def _included(self, item: dict[str, Any]) -> bool:
        namespace = item.get("metadata", {}).get("namespace", "default")
        return namespace not in self._config.excluded_namespaces

    def _query(
        self, operation: str, query: Callable[[], list[dict[str, Any]]]
    ) -> list[dict[str, Any]]:
        policy = self._supervisor.policy(operation, max_attempts=2, initial_delay=1, max_delay=5)
        items = self._supervisor.execute(SERVICE_KUBECTL, policy, query)
        return [item for item in items if self._included(item)]

    @staticmethod
    def _candidate(kind: str, item: dict[str, Any], detail: str) -> Candidate:
        metadata = item.get("metadata", {})
        return Candidate(
            kind=kind,
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", ""),
            detail=detail,
        )

    def find_evicted_pods(self) -> list[Candidate]:
        return [
            self._candidate("pod", item, item.get("status", {}).get("message") or "Evicted")
            for item in self._query("evicted pods query", self._kubectl.failed_pods)
            if item.get("status", {}).get("reason") == "Evicted"
        ]

    def find_completed_jobs(self, retention_days: int | None = None) -> list[Candidate]:
        """Jobs that completed more than ``retention_days`` ago."""
        days = self._config.retention_days if retention_days is None else retention_days
        cutoff = self._now() - timedelta(days=days)
        found = []
        for item in self._query("completed jobs query", self._kubectl.jobs):
            completed = _parse_time(item.get("status", {}).get("completionTime"))
            if completed is not None and completed < cutoff:
                found.append(self._candidate("job", item, f"completed {completed:%Y-%m-%d}"))
        return found

    def find_failed_jobs(self) -> list[Candidate]:
        """Jobs with failed pods that never reached completion."""
        found = []
        for item in self._query("failed jobs query", self._kubectl.jobs):
            status = item.get("status", {})
            failures = int(status.get("failed") or 0)
            if failures > 0 and not status.get("completionTime"):
                found.append(self._candidate("job", item, f"{failures} failed pod(s)"))
        return found

    def _delete(self, candidate: Candidate) -> bool:
        policy = self._supervisor.policy(
            f"delete {candidate.kind}", max_attempts=2, initial_delay=1, max_delay=5
        )
        delete = self._supervisor.mutation(
            f"delete {candidate.kind} {candidate.qualified_name}",
            lambda: self._kubectl.delete(candidate.kind, candidate.name, candidate.namespace),
        )
        try:
            self._supervisor.execute(SERVICE_KUBECTL, policy, delete)
        except CircuitOpenError:
            raise
        except MaintenanceError as e:
            _logger.warning(
                "cleanup.delete_failed",
                kind=candidate.kind,
                resource=candidate.qualified_name,
                error=e.message,
            )
            return False
        _logger.info("cleanup.deleted", kind=candidate.kind, resource=candidate.qualified_name)
        return True

    def _needs_confirmation(self, force: bool) -> bool:
        return not (force or self._force) and self._config.confirmation_required

    def clean(
        self, target: CleanupTarget, candidates: list[Candidate], force: bool = False
    ) -> CleanupResult:
        """Delete ``candidates`` after confirmation."""
        result = CleanupResult(target=target, found=candidates)
        if not candidates:
            _logger.info("cleanup.nothing_found", target=target.value)
            return result
        if self._needs_confirmation(force):
            label = target.value.replace("-", " ")
            if not self._prompter.confirm(f"Delete {len(candidates)} {label}?"):
                _logger.info("cleanup.cancelled", target=target.value)
                result.cancelled = True
                return result
        for candidate in candidates:
            if self._delete(candidate):
                result.deleted += 1
            else:
                result.failed += 1
        _logger.info(
            "cleanup.target_completed",
            target=target.value,
            deleted=result.deleted,
            failed=result.failed,
            dry_run=self._supervisor.dry_run,
        )
        return result

    def find(self, target: CleanupTarget, retention_days: int | None = None) -> list[Candidate]:
        if target == CleanupTarget.EVICTED_PODS:
            return self.find_evicted_pods()
        if target == CleanupTarget.COMPLETED_JOBS:
            return self.find_completed_jobs(retention_days)
        return self.find_failed_jobs()


__all__ = [
    "Candidate",
    "CleanupResult",
    "CleanupTarget",
    "ResourceCleaner",
]
