"""NFS data connector backed by a kernel mount."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Optional

from agent.config import LoadSettings, get_load_settings
from common.utils import ensure_dir

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of a local command execution."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def run_command(cmd: list[str], timeout: int = 60) -> CommandResult:
    """Run a local command without raising on failure."""
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return CommandResult(exit_code=-1, stdout="", stderr=f"Command timed out after {timeout}s")
    except FileNotFoundError:
        return CommandResult(exit_code=-1, stdout="", stderr=f"Command not found: {cmd[0]}")
    return CommandResult(exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


class NfsFile:
    """Unbuffered file handle inside the mounted export."""

    def __init__(self, path: str, write: bool):
        self.path = path
        flags = os.O_WRONLY | os.O_CREAT | os.O_APPEND if write else os.O_RDONLY
        self._fd = os.open(path, flags, 0o744)

    def write(self, data: bytes) -> int:
        return os.write(self._fd, data)

    def read(self, size: int) -> bytes:
        return os.read(self._fd, size)

    def drop_cache(self) -> None:
        """Evict this file's pages so the next read goes to the server."""
        if hasattr(os, "posix_fadvise"):
            os.posix_fadvise(self._fd, 0, 0, os.POSIX_FADV_DONTNEED)

    def close(self) -> None:
        if self._fd < 0:
            return
        fd, self._fd = self._fd, -1
        os.close(fd)


class NfsReadHandle(NfsFile):
    """Read handle that drops cached pages once drained."""

    def __init__(self, path: str):
        super().__init__(path, write=False)

    def read(self, size: int) -> bytes:
        chunk = super().read(size)
        if not chunk:
            self.drop_cache()
        return chunk


class NfsConnection:
    """One worker's view of the mounted export."""

    def __init__(self, mount_point: str):
        self.mount_point = mount_point

    def _path(self, name: str) -> str:
        return os.path.join(self.mount_point, name.lstrip("/"))

    def open_for_write(self, name: str) -> NfsFile:
        return NfsFile(self._path(name), write=True)

    def open_for_read(self, name: str) -> NfsReadHandle:
        return NfsReadHandle(self._path(name))

    def close(self) -> None:
        pass


class NfsConnector:
    """Mount ``host:export`` once and hand out per-worker file handles."""

    protocol = "nfs"
    name_prefix = "filename"

    def __init__(self, host: str, export: str, settings: Optional[LoadSettings] = None):
        if not host or not export:
            raise ValueError("Must specify host and export")

        self.host = host
        self.export = export
        self.settings = settings or get_load_settings()
        self.write_size = self.settings.nfs_write_size
        self.read_size = self.settings.nfs_read_size
        self.mount_point: Optional[str] = None

    @property
    def source(self) -> str:
        return f"{self.host}:{self.export}"

    @property
    def is_mounted(self) -> bool:
        return self.mount_point is not None and os.path.ismount(self.mount_point)

    def verify_reachable(self) -> bool:
        """Mount the export and check that the mount took."""
        if self.is_mounted:
            return True

        root = ensure_dir(self.settings.mount_root)
        self.mount_point = tempfile.mkdtemp(prefix="nfs-", dir=str(root))

        cmd = [
            "mount", "-t", "nfs",
            "-o", self.settings.mount_options,
            self.source, self.mount_point,
        ]
        logger.info(f"Mounting NFS export {self.source} at {self.mount_point}")
        result = run_command(cmd, timeout=self.settings.mount_timeout)
        if not result.success:
            logger.error(f"Unable to mount {self.source}: {result.stderr.strip() or result.stdout.strip()}")
            self._remove_mount_point()
            return False

        if not os.path.ismount(self.mount_point):
            logger.error(f"Mount point verification failed for {self.mount_point}")
            self._remove_mount_point()
            return False

        return True

    def connect(self) -> NfsConnection:
        if not self.is_mounted:
            raise ConnectionError(f"NFS export {self.source} is not mounted")
        return NfsConnection(self.mount_point)

    def _remove_mount_point(self) -> None:
        if self.mount_point:
            try:
                os.rmdir(self.mount_point)
            except OSError as e:
                logger.warning(f"Unable to remove mount point {self.mount_point}: {e}")
        self.mount_point = None

    def close(self) -> None:
        """Unmount and remove the private mount point."""
        if self.mount_point is None:
            return

        if os.path.ismount(self.mount_point):
            result = run_command(["umount", self.mount_point], timeout=self.settings.mount_timeout)
            if not result.success:
                logger.warning(f"umount {self.mount_point} failed, falling back to lazy unmount")
                result = run_command(["umount", "-l", self.mount_point], timeout=self.settings.mount_timeout)
            if not result.success:
                logger.error(f"Unable to unmount {self.mount_point}: {result.stderr.strip()}")
                self.mount_point = None
                return

        self._remove_mount_point()
