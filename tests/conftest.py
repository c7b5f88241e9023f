"""Pytest configuration and fixtures for provisionkit tests."""

import errno
import posixpath
from dataclasses import dataclass
from typing import Sequence

import pytest

from provisionkit.connector.host import CommandResult, HostConnector
from provisionkit.model.settings import InstallSettings, ServiceLayout


@dataclass
class UnitState:
    active: bool = False
    enabled: bool = False


def _oserror(code: int, path: str) -> OSError:
    return OSError(code, errno.errorcode.get(code, "error"), path)


class FakeHost(HostConnector):
    """In-memory host: a tiny filesystem plus simulated supervisor tools.

    Filesystem calls behave like their os counterparts (parents must
    exist, rmdir refuses non-empty directories). Commands are recorded in
    `commands`; mutations in `events` so tests can check ordering.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.dirs: set[str] = {"/"}
        self.links: dict[str, str] = {}
        self.modes: dict[str, int] = {}
        self.binaries: set[str] = set()
        self.commands: list[list[str]] = []
        self.events: list[tuple[str, str]] = []
        self.failing: list[tuple[str, ...]] = []

        self.units: dict[str, UnitState] = {}
        self.openrc_started: set[str] = set()
        self.openrc_registered: set[str] = set()
        self.runit_running: set[str] = set()
        self.launchd_loaded: set[str] = set()
        self.launchd_disabled: set[str] = set()
        self.launchd_running: set[str] = set()

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def add_dir(self, path: str) -> None:
        path = posixpath.normpath(path)
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def add_file(self, path: str, content: str = "") -> None:
        path = posixpath.normpath(path)
        self.add_dir(posixpath.dirname(path))
        self.files[path] = content

    def add_link(self, src: str, dest: str) -> None:
        dest = posixpath.normpath(dest)
        self.add_dir(posixpath.dirname(dest))
        self.links[dest] = src

    def fail(self, *argv_prefix: str) -> None:
        """Make every command starting with argv_prefix exit 1."""
        self.failing.append(tuple(argv_prefix))

    def unit(self, name: str) -> UnitState:
        return self.units.setdefault(name, UnitState())

    def snapshot(self) -> tuple[dict[str, str], set[str], dict[str, str]]:
        return dict(self.files), set(self.dirs), dict(self.links)

    def ran(self, *argv: str) -> bool:
        return list(argv) in self.commands

    def index_of(self, kind: str, path: str) -> int:
        return self.events.index((kind, path))

    # ------------------------------------------------------------------
    # HostConnector
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> str:
        path = posixpath.normpath(path)
        seen = 0
        while path in self.links and seen < 10:
            path = posixpath.normpath(self.links[path])
            seen += 1
        return path

    def _has_children(self, path: str) -> bool:
        prefix = path.rstrip("/") + "/"
        return any(p.startswith(prefix) for p in (*self.files, *self.dirs, *self.links))

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if self._resolve(parent) not in self.dirs:
            raise _oserror(errno.ENOENT, parent)

    def exists(self, path: str) -> bool:
        path = posixpath.normpath(path)
        return path in self.files or path in self.dirs or path in self.links

    def is_dir(self, path: str) -> bool:
        return self._resolve(path) in self.dirs

    def is_symlink(self, path: str) -> bool:
        return posixpath.normpath(path) in self.links

    def read_link(self, path: str) -> str:
        path = posixpath.normpath(path)
        if path not in self.links:
            raise _oserror(errno.EINVAL, path)
        return self.links[path]

    def read_text(self, path: str) -> str:
        resolved = self._resolve(path)
        if resolved in self.dirs:
            raise _oserror(errno.EISDIR, path)
        if resolved not in self.files:
            raise _oserror(errno.ENOENT, path)
        return self.files[resolved]

    def write_text(self, path: str, content: str) -> None:
        resolved = self._resolve(path)
        if resolved in self.dirs:
            raise _oserror(errno.EISDIR, path)
        self._require_parent(resolved)
        self.files[resolved] = content
        self.events.append(("write", resolved))

    def set_mode(self, path: str, mode: int) -> None:
        if not self.exists(path):
            raise _oserror(errno.ENOENT, path)
        self.modes[posixpath.normpath(path)] = mode

    def symlink(self, src: str, dest: str) -> None:
        dest = posixpath.normpath(dest)
        if self.exists(dest):
            raise _oserror(errno.EEXIST, dest)
        self._require_parent(dest)
        self.links[dest] = src
        self.events.append(("symlink", dest))

    def copy_file(self, src: str, dest: str) -> None:
        self.write_text(dest, self.read_text(src))

    def create_dir(self, path: str, mode: int | None = None) -> None:
        path = posixpath.normpath(path)
        if self.exists(path):
            raise _oserror(errno.EEXIST, path)
        self._require_parent(path)
        self.dirs.add(path)
        if mode is not None:
            self.modes[path] = mode
        self.events.append(("mkdir", path))

    def remove_file(self, path: str) -> None:
        path = posixpath.normpath(path)
        if path in self.links:
            del self.links[path]
        elif path in self.files:
            del self.files[path]
        elif path in self.dirs:
            raise _oserror(errno.EISDIR, path)
        else:
            raise _oserror(errno.ENOENT, path)
        self.modes.pop(path, None)
        self.events.append(("remove", path))

    def remove_dir(self, path: str) -> None:
        path = posixpath.normpath(path)
        if path not in self.dirs:
            raise _oserror(errno.ENOENT, path)
        if self._has_children(path):
            raise _oserror(errno.ENOTEMPTY, path)
        self.dirs.discard(path)
        self.modes.pop(path, None)
        self.events.append(("rmdir", path))

    def remove_tree(self, path: str) -> None:
        path = posixpath.normpath(path)
        if path not in self.dirs:
            raise _oserror(errno.ENOENT, path)
        prefix = path + "/"
        self.files = {p: c for p, c in self.files.items() if not p.startswith(prefix)}
        self.links = {p: t for p, t in self.links.items() if not p.startswith(prefix)}
        self.dirs = {d for d in self.dirs if d != path and not d.startswith(prefix)}
        self.events.append(("rmtree", path))

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.binaries else None

    def run(self, argv: Sequence[str]) -> CommandResult:
        argv = list(argv)
        self.commands.append(argv)

        if argv[0] not in self.binaries:
            return CommandResult(argv, "", f"{argv[0]}: command not found", 127)
        for prefix in self.failing:
            if tuple(argv[: len(prefix)]) == prefix:
                return CommandResult(argv, "", "simulated failure", 1)

        handler = {
            "systemctl": self._systemctl,
            "rc-service": self._rc_service,
            "rc-update": self._rc_update,
            "sv": self._sv,
            "launchctl": self._launchctl,
        }.get(argv[0])
        if handler is None:
            return CommandResult(argv, "", "", 0)
        return handler(argv)

    # ------------------------------------------------------------------
    # Simulated tools
    # ------------------------------------------------------------------

    def _systemctl(self, argv: list[str]) -> CommandResult:
        verb = argv[1]
        now = "--now" in argv
        names = [posixpath.basename(a) for a in argv[2:] if not a.startswith("--")]

        if verb == "is-active":
            active = self.unit(names[0]).active
            return CommandResult(argv, "active\n" if active else "inactive\n", "", 0 if active else 3)
        if verb == "is-enabled":
            enabled = self.unit(names[0]).enabled
            return CommandResult(argv, "enabled\n" if enabled else "disabled\n", "", 0 if enabled else 1)
        for name in names:
            state = self.unit(name)
            if verb == "enable":
                state.enabled = True
                state.active = state.active or now
            elif verb == "disable":
                state.enabled = False
                state.active = state.active and not now
            elif verb == "stop":
                state.active = False
            elif verb == "start":
                state.active = True
        return CommandResult(argv, "", "", 0)

    def _rc_service(self, argv: list[str]) -> CommandResult:
        name, verb = argv[1], argv[2]
        if verb == "status":
            started = name in self.openrc_started
            return CommandResult(argv, " * status: started\n" if started else " * status: stopped\n", "", 0 if started else 3)
        if verb == "start":
            self.openrc_started.add(name)
        elif verb == "stop":
            self.openrc_started.discard(name)
        return CommandResult(argv, "", "", 0)

    def _rc_update(self, argv: list[str]) -> CommandResult:
        verb = argv[1]
        if verb == "show":
            lines = [f" {name} | default" for name in sorted(self.openrc_registered)]
            return CommandResult(argv, "\n".join(lines) + "\n", "", 0)
        if verb == "add":
            self.openrc_registered.add(argv[2])
        elif verb == "del":
            self.openrc_registered.discard(argv[2])
        return CommandResult(argv, "", "", 0)

    def _sv(self, argv: list[str]) -> CommandResult:
        verb, name = argv[1], argv[2]
        if verb == "status":
            if name in self.runit_running:
                return CommandResult(argv, f"run: /var/service/{name}: (pid 42) 10s\n", "", 0)
            return CommandResult(argv, f"down: /var/service/{name}: 10s\n", "", 0)
        if verb == "down":
            self.runit_running.discard(name)
        elif verb == "up":
            self.runit_running.add(name)
        return CommandResult(argv, "", "", 0)

    def _launchctl(self, argv: list[str]) -> CommandResult:
        verb = argv[1]
        if verb == "load":
            label = posixpath.basename(argv[-1]).removesuffix(".plist")
            self.launchd_loaded.add(label)
        elif verb == "unload":
            label = posixpath.basename(argv[-1]).removesuffix(".plist")
            self.launchd_loaded.discard(label)
            self.launchd_running.discard(label)
        elif verb == "print-disabled":
            lines = ["disabled services = {"]
            lines += [f'\t"{label}" => disabled' for label in sorted(self.launchd_disabled)]
            lines.append("}")
            return CommandResult(argv, "\n".join(lines) + "\n", "", 0)
        elif verb == "enable":
            self.launchd_disabled.discard(argv[2].split("/", 1)[1])
        elif verb == "kickstart":
            self.launchd_running.add(argv[-1].split("/", 1)[1])
        elif verb == "print":
            label = argv[2].split("/", 1)[1]
            if label not in self.launchd_loaded:
                return CommandResult(argv, "", f"Could not find service \"{label}\"", 113)
        return CommandResult(argv, "", "", 0)


@pytest.fixture
def layout():
    return ServiceLayout()


@pytest.fixture
def fake_host():
    """Empty host with only the root directory."""
    return FakeHost()


@pytest.fixture
def systemd_host(layout):
    """Host booted with systemd, with the distribution's profile in place."""
    host = FakeHost()
    host.add_dir("/run/systemd/system")
    host.add_dir("/etc/systemd/system")
    host.add_dir("/etc/tmpfiles.d")
    host.add_file(layout.service_src, "[Service]\n")
    host.add_file(layout.socket_src, "[Socket]\n")
    host.add_file(layout.tmpfiles_src, "d /opt/provisionkit/var 0755 root root\n")
    host.add_file(layout.daemon_bin, "")
    host.binaries |= {"systemctl", "systemd-tmpfiles"}
    return host


@pytest.fixture
def openrc_host(layout):
    host = FakeHost()
    host.add_dir("/run/openrc")
    host.add_dir("/etc/init.d")
    host.add_file(layout.daemon_bin, "")
    host.binaries |= {"rc-update", "rc-service"}
    return host


@pytest.fixture
def runit_host(layout):
    host = FakeHost()
    host.add_dir("/run/runit")
    host.add_dir("/etc/sv")
    host.add_dir("/var/service")
    host.add_file(layout.daemon_bin, "")
    host.binaries |= {"sv"}
    return host


@pytest.fixture
def launchd_host(layout):
    host = FakeHost()
    host.add_dir("/Library/LaunchDaemons")
    host.add_file(layout.launchd_src, "<plist/>\n")
    host.binaries |= {"launchctl"}
    return host


@pytest.fixture
def systemd_settings():
    return InstallSettings(init="systemd", start_daemon=False, daemon_config=["max-jobs = 4"])
