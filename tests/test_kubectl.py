"""Tests for kubemaint.cluster.kubectl."""

import subprocess

import pytest

from kubemaint.cluster.kubectl import KubectlClient, PodRef, classify_kubectl_failure
from kubemaint.core.errors import (
    ConfigError,
    ErrorKind,
    ExternalToolError,
    OperationTimeoutError,
)
from tests.helpers import (
    FORBIDDEN_STDERR,
    NODE_MANIFEST,
    NOT_FOUND_STDERR,
    UNREACHABLE_STDERR,
    pod_list,
    pod_manifest,
)


class TestClassifyKubectlFailure:
    """Tests for mapping kubectl stderr to error kinds."""

    @pytest.mark.parametrize(
        ("stderr", "kind"),
        [
            ("error: You must be logged in to the server (Unauthorized)", ErrorKind.AUTH),
            (FORBIDDEN_STDERR, ErrorKind.PERMISSION),
            (NOT_FOUND_STDERR, ErrorKind.NOT_FOUND),
            (UNREACHABLE_STDERR, ErrorKind.NETWORK),
            ("The connection to the server localhost:8080 was refused", ErrorKind.NETWORK),
            ("error: unknown flag: --bogus", ErrorKind.VALIDATION),
            ("error: cannot evict pod as it would violate the pod's disruption budget",
             ErrorKind.EXTERNAL_TOOL),
            ("", ErrorKind.EXTERNAL_TOOL),
        ],
    )
    def test_classification(self, stderr, kind):
        assert classify_kubectl_failure(stderr) == kind


class TestKubectlClientRun:
    """Tests for KubectlClient.run()."""

    def test_passes_timeout_and_context(self, kubectl_runner):
        seen: list[list[str]] = []

        def runner(cmd, **kwargs):
            seen.append(cmd)
            return kubectl_runner(cmd, **kwargs)

        KubectlClient(timeout=15, context="prod", runner=runner).run("get", "nodes")

        assert seen == [["kubectl", "--context=prod", "get", "nodes"]]
        assert kubectl_runner.timeouts == [15]

    def test_token_passed_after_context(self, kubectl_runner):
        tokens = iter(["t0k", None])
        client = KubectlClient(context="prod", runner=kubectl_runner, token=lambda: next(tokens))

        client.run("get", "nodes")
        client.run("get", "nodes")

        assert kubectl_runner.commands == [
            ["kubectl", "--context=prod", "--token=t0k", "get", "nodes"],
            ["kubectl", "--context=prod", "get", "nodes"],
        ]

    def test_per_call_timeout_override(self, kubectl_runner):
        KubectlClient(runner=kubectl_runner).run("cluster-info", timeout=5)
        assert kubectl_runner.timeouts == [5]

    def test_non_zero_exit_is_classified(self, kubectl_runner):
        kubectl_runner.on("get", "node", returncode=1, stderr=NOT_FOUND_STDERR)

        with pytest.raises(ExternalToolError) as exc_info:
            KubectlClient(runner=kubectl_runner).run("get", "node", "ghost")

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.returncode == 1
        assert exc_info.value.operation == "kubectl get"

    def test_check_false_returns_result(self, kubectl_runner):
        kubectl_runner.on("get", returncode=1, stderr="boom")
        result = KubectlClient(runner=kubectl_runner).run("get", "x", check=False)
        assert not result.ok
        assert result.stderr == "boom"

    def test_stderr_is_truncated(self, kubectl_runner):
        kubectl_runner.on("get", returncode=1, stderr="x" * 2000)
        with pytest.raises(ExternalToolError) as exc_info:
            KubectlClient(runner=kubectl_runner).run("get", "x")
        assert len(exc_info.value.stderr) == 500

    def test_timeout(self, kubectl_runner):
        kubectl_runner.on("drain", raises=subprocess.TimeoutExpired(["kubectl"], 10))
        with pytest.raises(OperationTimeoutError):
            KubectlClient(runner=kubectl_runner).run("drain", "worker-1", timeout=10)

    def test_missing_binary(self, kubectl_runner):
        kubectl_runner.on("version", raises=FileNotFoundError("kubectl"))
        with pytest.raises(ConfigError) as exc_info:
            KubectlClient(runner=kubectl_runner).run("version")
        assert exc_info.value.exit_code == 2


class TestKubectlClientOperations:
    """Tests for the node and pod helpers."""

    def test_get_node(self, kubectl_runner):
        kubectl_runner.on_json("get", "node", "worker-1", payload=NODE_MANIFEST)
        node = KubectlClient(runner=kubectl_runner).get_node("worker-1")
        assert node["metadata"]["name"] == "worker-1"
        assert kubectl_runner.calls == [("get", "node", "worker-1", "-o", "json")]

    def test_invalid_json(self, kubectl_runner):
        kubectl_runner.on("get", stdout="not json")
        with pytest.raises(ExternalToolError):
            KubectlClient(runner=kubectl_runner).get_node("worker-1")

    @pytest.mark.parametrize(("stdout", "expected"), [("true", True), ("", False)])
    def test_is_unschedulable(self, kubectl_runner, stdout, expected):
        kubectl_runner.on("get", "node", stdout=stdout)
        assert KubectlClient(runner=kubectl_runner).is_unschedulable("worker-1") is expected

    def test_drain_flags(self, kubectl_runner):
        KubectlClient(runner=kubectl_runner).drain(
            "worker-1", drain_timeout=300, grace_period=30, timeout=330
        )
        assert kubectl_runner.calls == [
            (
                "drain",
                "worker-1",
                "--timeout=300s",
                "--grace-period=30",
                "--force",
                "--delete-emptydir-data",
                "--ignore-daemonsets",
            )
        ]
        assert kubectl_runner.timeouts == [330]

    def test_drain_without_optional_flags(self, kubectl_runner):
        KubectlClient(runner=kubectl_runner).drain(
            "worker-1", 60, 5, ignore_daemonsets=False, delete_emptydir_data=False
        )
        assert "--ignore-daemonsets" not in kubectl_runner.calls[0]
        assert "--delete-emptydir-data" not in kubectl_runner.calls[0]

    def test_pods_on_node(self, kubectl_runner):
        kubectl_runner.on_json(
            "get",
            "pods",
            payload=pod_list(
                pod_manifest("web-1"),
                pod_manifest("fluentd-x", namespace="logging", owner_kind="DaemonSet"),
            ),
        )

        pods = KubectlClient(runner=kubectl_runner).pods_on_node("worker-1")

        assert [pod.qualified_name for pod in pods] == ["default/web-1", "logging/fluentd-x"]
        assert [pod.is_daemonset_pod for pod in pods] == [False, True]
        assert "--field-selector=spec.nodeName=worker-1" in kubectl_runner.calls[0]

    def test_pending_pods(self, kubectl_runner):
        kubectl_runner.on_json(
            "get", "pods", payload=pod_list(pod_manifest("web-1", node=None, phase="Pending"))
        )
        items = KubectlClient(runner=kubectl_runner).pending_pods()
        assert len(items) == 1
        assert "--field-selector=status.phase=Pending" in kubectl_runner.calls[0]

    def test_server_version(self, kubectl_runner):
        kubectl_runner.on_json("version", payload={"serverVersion": {"gitVersion": "v1.29.2"}})
        assert KubectlClient(runner=kubectl_runner).server_version() == "v1.29.2"

    def test_server_version_missing(self, kubectl_runner):
        kubectl_runner.on_json("version", payload={"clientVersion": {}})
        assert KubectlClient(runner=kubectl_runner).server_version() == "unknown"

    def test_failed_pods(self, kubectl_runner):
        failed = pod_manifest("web-1", phase="Failed")
        kubectl_runner.on_json("get", "pods", payload=pod_list(failed))
        items = KubectlClient(runner=kubectl_runner).failed_pods(timeout=20)
        assert items[0]["metadata"]["name"] == "web-1"
        assert "--field-selector=status.phase=Failed" in kubectl_runner.calls[0]
        assert kubectl_runner.timeouts == [20]

    @pytest.mark.parametrize(
        ("method", "args"),
        [
            ("list_nodes", ("get", "nodes")),
            ("all_pods", ("get", "pods", "--all-namespaces")),
            ("jobs", ("get", "jobs", "--all-namespaces")),
            ("persistent_volumes", ("get", "pv")),
            ("persistent_volume_claims", ("get", "pvc", "--all-namespaces")),
            ("storage_classes", ("get", "storageclass")),
        ],
    )
    def test_list_queries(self, kubectl_runner, method, args):
        kubectl_runner.on_json(*args, payload={"items": [{"metadata": {"name": "x"}}]})
        items = getattr(KubectlClient(runner=kubectl_runner), method)()
        assert items == [{"metadata": {"name": "x"}}]
        assert kubectl_runner.calls == [(*args, "-o", "json")]

    def test_pods_in_namespace(self, kubectl_runner):
        kubectl_runner.on_json("get", "pods", payload=pod_list())
        assert KubectlClient(runner=kubectl_runner).pods_in_namespace("kube-system") == []
        assert kubectl_runner.calls == [("get", "pods", "-n", "kube-system", "-o", "json")]

    def test_top_nodes(self, kubectl_runner):
        kubectl_runner.on("top", "nodes", stdout="worker-1 250m 6% 2100Mi 27%\n")
        output = KubectlClient(runner=kubectl_runner).top_nodes()
        assert output.startswith("worker-1")
        assert kubectl_runner.calls == [("top", "nodes", "--no-headers")]

    def test_delete(self, kubectl_runner):
        KubectlClient(runner=kubectl_runner).delete("job", "report", "batch")
        assert kubectl_runner.calls == [("delete", "job", "report", "-n", "batch")]


class TestPodRef:
    """Tests for PodRef.from_manifest()."""

    def test_defaults_for_sparse_manifest(self):
        pod = PodRef.from_manifest({"metadata": {"name": "bare"}})
        assert pod.namespace == "default"
        assert pod.phase == "Unknown"
        assert pod.node is None
        assert pod.owner_kinds == ()
