# kubemaint/cli/commands: Command modules for the kubemaint CLI.
#
# Each module in this package provides one or more CLI commands.

from .check import breakers, check
from .cleanup import cleanup
from .health import health
from .nodes import capacity, cordon, drain, node_info, pending_pods, uncordon
from .validate import validate

__all__ = [
    # check.py
    "check",
    "breakers",
    # cleanup.py
    "cleanup",
    # health.py
    "health",
    # nodes.py
    "drain",
    "cordon",
    "uncordon",
    "pending_pods",
    "node_info",
    "capacity",
    # validate.py
    "validate",
]
