"""Tracking of temporary files, PID files and in-memory secrets.

Everything registered here is removed by cleanup(), which runs on every
exit path of a command. cleanup() is idempotent and never raises.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from threading import Lock

from kubemaint.core.constants import TEMP_DIR_PREFIX
from kubemaint.core.logging import get_logger

_logger = get_logger("resources")


class TempResources:
    """Temporary resources owned by one kubemaint process."""

    def __init__(self) -> None:
        self._temp_dirs: list[Path] = []
        self._pid_files: list[Path] = []
        self._secrets: dict[str, str] = {}
        self._lock = Lock()

    def make_temp_dir(self) -> Path:
        """Create and register a ``kubemaint-<pid>-*`` temporary directory."""
        path = Path(tempfile.mkdtemp(prefix=f"{TEMP_DIR_PREFIX}-{os.getpid()}-"))
        self.register_temp_dir(path)
        return path

    def register_temp_dir(self, path: Path) -> None:
        with self._lock:
            self._temp_dirs.append(path)

    def write_pid_file(self, path: Path) -> Path:
        """Write this process's PID to ``path`` and register it for removal."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{os.getpid()}\n")
        with self._lock:
            self._pid_files.append(path)
        return path

    def hold_secret(self, name: str, value: str) -> None:
        """Keep a sensitive value in memory until cleanup()."""
        with self._lock:
            self._secrets[name] = value

    def secret(self, name: str) -> str | None:
        with self._lock:
            return self._secrets.get(name)

    @property
    def tracked(self) -> int:
        """Number of resources still awaiting cleanup."""
        with self._lock:
            return len(self._temp_dirs) + len(self._pid_files) + len(self._secrets)

    def cleanup(self) -> None:
        """Remove every registered resource and forget held secrets."""
        with self._lock:
            temp_dirs, self._temp_dirs = self._temp_dirs, []
            pid_files, self._pid_files = self._pid_files, []
            secret_count = len(self._secrets)
            self._secrets.clear()

        for directory in temp_dirs:
            shutil.rmtree(directory, ignore_errors=True)
        for pid_file in pid_files:
            try:
                pid_file.unlink(missing_ok=True)
            except OSError as e:
                _logger.warning("resources.pid_file_cleanup_failed", path=str(pid_file), error=str(e))

        if temp_dirs or pid_files or secret_count:
            _logger.debug(
                "resources.cleaned_up",
                temp_dirs=len(temp_dirs),
                pid_files=len(pid_files),
                secrets=secret_count,
            )
