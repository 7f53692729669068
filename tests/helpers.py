"""Shared test doubles for kubemaint tests."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from typing import Any


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records requested delays and returns immediately."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.delays: list[float] = []
        self._clock = clock

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


@dataclass
class Response:
    """One scripted kubectl outcome."""

    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    raises: BaseException | None = None


class FakeKubectlRunner:
    """Stands in for ``subprocess.run`` when invoking kubectl.

    Rules match on a prefix of the kubectl arguments, ignoring ``--context``
    and ``--token`` flags; ``commands`` keeps the full command lines. A rule
    with several responses plays them in order and then keeps repeating the
    last one. Unmatched calls succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.timeouts: list[float | None] = []
        self.commands: list[list[str]] = []
        self._rules: list[tuple[tuple[str, ...], list[Response]]] = []

    def on(self, *prefix: str, responses: list[Response] | None = None, **response: Any) -> None:
        scripted = responses if responses is not None else [Response(**response)]
        self._rules.insert(0, (prefix, list(scripted)))

    def on_json(self, *prefix: str, payload: Any) -> None:
        self.on(*prefix, stdout=json.dumps(payload))

    def called(self, *prefix: str) -> int:
        """Number of calls whose arguments start with ``prefix``."""
        return sum(1 for args in self.calls if args[: len(prefix)] == prefix)

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.commands.append(list(cmd))
        args = tuple(arg for arg in cmd[1:] if not arg.startswith(("--context=", "--token=")))
        self.calls.append(args)
        self.timeouts.append(kwargs.get("timeout"))
        for prefix, responses in self._rules:
            if args[: len(prefix)] == prefix:
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if response.raises is not None:
                    raise response.raises
                return subprocess.CompletedProcess(
                    cmd, response.returncode, response.stdout, response.stderr
                )
        return subprocess.CompletedProcess(cmd, 0, "", "")


class ScriptedReader:
    """Line reader for Prompter that returns queued answers (None = timeout)."""

    def __init__(self, *answers: str | None) -> None:
        self.answers = list(answers)
        self.timeouts: list[float] = []

    def __call__(self, timeout: float) -> str | None:
        self.timeouts.append(timeout)
        return self.answers.pop(0) if self.answers else None


def pod_manifest(
    name: str,
    namespace: str = "default",
    node: str | None = "worker-1",
    phase: str = "Running",
    owner_kind: str | None = "ReplicaSet",
    conditions: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "creationTimestamp": "2026-01-01T00:00:00Z",
    }
    if owner_kind:
        metadata["ownerReferences"] = [{"kind": owner_kind, "name": f"{name}-owner"}]
    status: dict[str, Any] = {"phase": phase}
    if conditions is not None:
        status["conditions"] = conditions
    return {"metadata": metadata, "spec": {"nodeName": node}, "status": status}


def pod_list(*pods: dict[str, Any]) -> dict[str, Any]:
    return {"kind": "PodList", "items": list(pods)}


NODE_MANIFEST: dict[str, Any] = {
    "kind": "Node",
    "metadata": {"name": "worker-1"},
    "spec": {},
}

NOT_FOUND_STDERR = 'Error from server (NotFound): nodes "ghost" not found'
FORBIDDEN_STDERR = 'Error from server (Forbidden): nodes "worker-1" is forbidden: User "dev" cannot patch'
UNREACHABLE_STDERR = "Unable to connect to the server: dial tcp 10.0.0.1:6443: i/o timeout"
