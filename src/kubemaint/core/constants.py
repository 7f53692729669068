"""Global constants for kubemaint.

Centralizes magic numbers and well-known names used throughout the
codebase, making them discoverable, consistent, and easy to modify.
"""

# =============================================================================
# Well-known services guarded by circuit breakers
# =============================================================================

SERVICE_KUBECTL = "kubectl"
"""Any kubectl invocation against the cluster."""

SERVICE_API_SERVER = "api_server"
"""Cluster connectivity probes (``kubectl cluster-info``)."""

SERVICE_METRICS_SERVER = "metrics_server"
"""Resource usage queries (``kubectl top``)."""

SERVICE_STORAGE = "storage"
"""Persistent volume and storage class queries."""

WELL_KNOWN_SERVICES: tuple[str, ...] = (
    SERVICE_KUBECTL,
    SERVICE_API_SERVER,
    SERVICE_METRICS_SERVER,
    SERVICE_STORAGE,
)

# =============================================================================
# kubectl execution
# =============================================================================

KUBECTL_BINARY = "kubectl"
"""Default kubectl executable, resolved through PATH."""

DRAIN_TIMEOUT_GRACE_SECONDS = 30
"""Extra seconds the outer process timeout allows beyond kubectl's own drain timeout."""

TRUNCATE_STDERR_CHARS = 500
"""Maximum characters of kubectl stderr carried on an error."""

# =============================================================================
# Resource naming (RFC 1123 labels)
# =============================================================================

MAX_RESOURCE_NAME_LENGTH = 63
"""Maximum length of a node or namespace name."""

# =============================================================================
# Process lifecycle
# =============================================================================

TEMP_DIR_PREFIX = "kubemaint"
"""Prefix for temporary directories (``kubemaint-<pid>-*``)."""

PID_FILE_NAME = "kubemaint.pid"
"""PID file written into each run's scratch directory."""

SERVICE_ACCOUNT_TOKEN_ENV = "K8S_SERVICE_ACCOUNT_TOKEN"
"""Environment variable holding a bearer token to pass to kubectl."""

DEFAULT_CONFIG_PATHS: tuple[str, ...] = (
    "kubemaint.yaml",
    "configs/kubemaint.yaml",
)
"""Config files searched, in order, when no ``--config`` is given."""
