"""Cluster-facing operations built on kubectl and the supervisor."""

from kubemaint.cluster.cleanup import Candidate, CleanupResult, CleanupTarget, ResourceCleaner
from kubemaint.cluster.health import HealthChecker, HealthReport, NodeUsage, ProblemPod, Severity
from kubemaint.cluster.kubectl import KubectlClient, KubectlResult, PodRef, classify_kubectl_failure
from kubemaint.cluster.nodes import (
    ActionOutcome,
    NodeCapacity,
    NodeDetails,
    NodeManager,
    PendingPod,
    validate_resource_name,
)
from kubemaint.cluster.prerequisites import PrerequisiteReport, check_prerequisites
from kubemaint.cluster.prompts import Prompter, confirm_action, confirm_critical_action

__all__ = [
    "ActionOutcome",
    "Candidate",
    "CleanupResult",
    "CleanupTarget",
    "HealthChecker",
    "HealthReport",
    "KubectlClient",
    "KubectlResult",
    "NodeCapacity",
    "NodeDetails",
    "NodeManager",
    "NodeUsage",
    "PendingPod",
    "PodRef",
    "PrerequisiteReport",
    "ProblemPod",
    "Prompter",
    "ResourceCleaner",
    "Severity",
    "check_prerequisites",
    "classify_kubectl_failure",
    "confirm_action",
    "confirm_critical_action",
    "validate_resource_name",
]
