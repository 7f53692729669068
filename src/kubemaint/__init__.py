"""kubemaint - resilient Kubernetes maintenance toolkit.

Wraps the ``kubectl`` CLI with a retry engine, per-service circuit breakers
and a rollback stack so that node maintenance operations either complete or
leave the cluster in the state they found it.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
