"""Host Connector - Filesystem and process access to the target host.

Every action talks to the machine through a HostConnector instead of
calling os/subprocess directly. The connector is passed explicitly to
plan(), execute() and revert(), so tests can hand in a fake host and
assert on the resulting state without touching the real system.
"""

import logging
import os
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of a command execution."""

    argv: list[str]
    stdout: str
    stderr: str
    exit_code: int
    success: bool = field(init=False)

    def __post_init__(self) -> None:
        self.success = self.exit_code == 0

    @property
    def command(self) -> str:
        """Shell-quoted form of argv, for logs and error messages."""
        return format_argv(self.argv)


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class HostConnector(ABC):
    """Capability interface over the host's filesystem and processes.

    Query methods never raise for a missing path. Mutating methods raise
    OSError (or a subclass) on failure; callers translate that into their
    own error type.
    """

    @abstractmethod
    def run(self, argv: Sequence[str]) -> CommandResult:
        """Run a command to completion and capture its output.

        A non-zero exit status is reported in the result, not raised.
        """

    @abstractmethod
    def which(self, name: str) -> str | None:
        """Resolve an executable on PATH."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """True if path exists. A dangling symlink counts as existing."""

    @abstractmethod
    def is_dir(self, path: str) -> bool: ...

    @abstractmethod
    def is_symlink(self, path: str) -> bool: ...

    @abstractmethod
    def read_link(self, path: str) -> str: ...

    @abstractmethod
    def read_text(self, path: str) -> str: ...

    @abstractmethod
    def write_text(self, path: str, content: str) -> None: ...

    @abstractmethod
    def set_mode(self, path: str, mode: int) -> None: ...

    @abstractmethod
    def symlink(self, src: str, dest: str) -> None:
        """Create dest as a symlink pointing at src."""

    @abstractmethod
    def copy_file(self, src: str, dest: str) -> None: ...

    @abstractmethod
    def create_dir(self, path: str, mode: int | None = None) -> None:
        """Create a single directory. The parent must already exist."""

    @abstractmethod
    def remove_file(self, path: str) -> None:
        """Remove a regular file or a symlink (never follows the link)."""

    @abstractmethod
    def remove_dir(self, path: str) -> None:
        """Remove an empty directory."""

    @abstractmethod
    def remove_tree(self, path: str) -> None:
        """Remove a directory and everything below it."""


class LocalHost(HostConnector):
    """HostConnector for the machine the process is running on.

    Example:
        >>> host = LocalHost()
        >>> result = host.run(["systemctl", "is-active", "sshd.service"])
        >>> print(result.stdout)
    """

    def run(self, argv: Sequence[str]) -> CommandResult:
        argv_list = list(argv)
        logger.debug("CMD %s", format_argv(argv_list))

        try:
            proc = subprocess.run(
                argv_list,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            # Same convention as a shell: 127 for "could not be run".
            logger.debug("CMD %s could not be spawned: %s", format_argv(argv_list), e)
            return CommandResult(argv=argv_list, stdout="", stderr=str(e), exit_code=127)

        logger.debug("CMD %s exited %d", format_argv(argv_list), proc.returncode)
        if proc.stderr:
            logger.debug("STDERR %s", proc.stderr.strip())

        return CommandResult(
            argv=argv_list,
            stdout=proc.stdout,
            stderr=proc.stderr,
            exit_code=proc.returncode,
        )

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path: str) -> bool:
        return Path(path).is_dir()

    def is_symlink(self, path: str) -> bool:
        return Path(path).is_symlink()

    def read_link(self, path: str) -> str:
        return os.readlink(path)

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: str, content: str) -> None:
        Path(path).write_text(content, encoding="utf-8")

    def set_mode(self, path: str, mode: int) -> None:
        os.chmod(path, mode)

    def symlink(self, src: str, dest: str) -> None:
        os.symlink(src, dest)

    def copy_file(self, src: str, dest: str) -> None:
        shutil.copyfile(src, dest)

    def create_dir(self, path: str, mode: int | None = None) -> None:
        if mode is None:
            os.mkdir(path)
        else:
            os.mkdir(path, mode)
            # mkdir is subject to umask
            os.chmod(path, mode)

    def remove_file(self, path: str) -> None:
        os.unlink(path)

    def remove_dir(self, path: str) -> None:
        os.rmdir(path)

    def remove_tree(self, path: str) -> None:
        shutil.rmtree(path)
