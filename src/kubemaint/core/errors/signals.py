"""Signal constants and helpers for process-wide interrupt handling.

- INTERRUPT_SIGNALS: Signals that trigger rollback and an interrupted exit
"""

import signal

# Signals that cancel the current command (SIGINT arrives as KeyboardInterrupt)
INTERRUPT_SIGNALS: tuple[int, ...] = (
    signal.SIGTERM,  # Termination request (kill, systemd, CI timeout)
    signal.SIGHUP,   # Terminal hangup
)


def get_signal_name(sig_num: int) -> str:
    """Get human-readable signal name.

    Args:
        sig_num: The signal number (e.g., signal.SIGTERM)

    Returns:
        Human-readable signal name (e.g., "SIGTERM") or "signal N" if unknown
    """
    try:
        return signal.Signals(sig_num).name
    except ValueError:
        return f"signal {sig_num}"
