"""systemd backend - socket-activated daemon.

Goal state after execute():
- the service unit is NOT enabled (it is started by the socket)
- the socket unit is enabled
- the socket is active iff the start flag is set or it was already
  active before this run
"""

import logging

from provisionkit.actions.base import (
    ErrorCollector,
    execute_command,
    host_io,
    remove_path,
)
from provisionkit.actions.errors import CommandFailed, DestinationConflict
from provisionkit.actions.init_service.base import InitBackend, require_supervisor
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InitSystem, ServiceLayout

logger = logging.getLogger(__name__)

# https://www.freedesktop.org/software/systemd/man/sd_booted.html
SYSTEMD_SENTINEL = "/run/systemd/system"


def unit_conflicts(host: HostConnector, src: str, dest: str) -> list[DestinationConflict]:
    """Check a unit destination before symlinking src there.

    A symlink already pointing at src is fine. Anything else at dest, or a
    drop-in directory next to it, is a conflict.
    """
    conflicts: list[DestinationConflict] = []
    if host.exists(dest):
        if host.is_symlink(dest):
            with host_io("Read symlink", dest):
                target = host.read_link(dest)
            if target != src:
                conflicts.append(DestinationConflict(dest, f"symlink to `{target}`, expected `{src}`"))
        else:
            conflicts.append(DestinationConflict(dest, "not a symlink"))

    override = f"{dest}.d"
    if host.exists(override):
        conflicts.append(DestinationConflict(override, "drop-in override directory"))
    return conflicts


def _probe(host: HostConnector, argv: list[str]) -> str:
    result = host.run(argv)
    if result.exit_code == 127 and not result.stdout:
        raise CommandFailed.from_result(result)
    return result.stdout


def is_active(host: HostConnector, unit: str) -> bool:
    active = _probe(host, ["systemctl", "is-active", unit]).startswith("active")
    logger.debug("%s is %sactive", unit, "" if active else "not ")
    return active


def is_enabled(host: HostConnector, unit: str) -> bool:
    stdout = _probe(host, ["systemctl", "is-enabled", unit])
    enabled = stdout.startswith("enabled") or stdout.startswith("linked")
    logger.debug("%s is %senabled", unit, "" if enabled else "not ")
    return enabled


def enable(host: HostConnector, unit: str, now: bool) -> None:
    argv = ["systemctl", "enable", unit]
    if now:
        argv.append("--now")
    execute_command(host, argv)


def disable(host: HostConnector, unit: str, now: bool) -> None:
    argv = ["systemctl", "disable", unit]
    if now:
        argv.append("--now")
    execute_command(host, argv)


def stop(host: HostConnector, unit: str) -> None:
    execute_command(host, ["systemctl", "stop", unit])


class SystemdBackend(InitBackend):
    init = InitSystem.SYSTEMD
    tool = "systemd"

    def check_liveness(self, host: HostConnector) -> None:
        require_supervisor(host, self.init, SYSTEMD_SENTINEL, "systemctl")

    def find_conflicts(self, host: HostConnector, layout: ServiceLayout) -> list[DestinationConflict]:
        return unit_conflicts(host, layout.service_src, layout.service_dest) + unit_conflicts(
            host, layout.socket_src, layout.socket_dest
        )

    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None:
        socket, service = layout.socket_unit, layout.service_unit

        # Quiesce whatever a previous install left behind
        if is_enabled(host, socket):
            disable(host, socket, now=False)
        socket_was_active = False
        if is_active(host, socket):
            stop(host, socket)
            socket_was_active = True
        if is_enabled(host, service):
            disable(host, service, now=is_active(host, service))
        elif is_active(host, service):
            stop(host, service)

        if not host.exists(layout.tmpfiles_dest):
            logger.debug("Symlinking %s to %s", layout.tmpfiles_src, layout.tmpfiles_dest)
            with host_io("Symlink", layout.tmpfiles_dest):
                host.symlink(layout.tmpfiles_src, layout.tmpfiles_dest)
        execute_command(host, ["systemd-tmpfiles", "--create", f"--prefix={layout.tmpfiles_prefix}"])

        for src, dest in (
            (layout.service_src, layout.service_dest),
            (layout.socket_src, layout.socket_dest),
        ):
            # The host may have changed since plan(); only replace what was accepted there
            for conflict in unit_conflicts(host, src, dest):
                if conflict.path not in replace_paths:
                    raise conflict
                remove_path(host, conflict.path)
            if host.exists(dest):
                logger.debug("Removing %s", dest)
                with host_io("Remove", dest):
                    host.remove_file(dest)
            logger.debug("Symlinking %s to %s", src, dest)
            with host_io("Symlink", dest):
                host.symlink(src, dest)

        execute_command(host, ["systemctl", "daemon-reload"])
        enable(host, layout.socket_src, now=start_daemon or socket_was_active)

    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        socket, service = layout.socket_unit, layout.service_unit

        # Probes fail fast; stop/disable only what is actually active/enabled
        socket_is_active = is_active(host, socket)
        socket_is_enabled = is_enabled(host, socket)
        service_is_active = is_active(host, service)
        service_is_enabled = is_enabled(host, service)

        errors = ErrorCollector()
        if socket_is_active:
            with errors.attempt():
                stop(host, socket)
        if socket_is_enabled:
            with errors.attempt():
                disable(host, socket, now=False)
        if service_is_active:
            with errors.attempt():
                stop(host, service)
        if service_is_enabled:
            with errors.attempt():
                disable(host, service, now=False)

        for src, dest in (
            (layout.service_src, layout.service_dest),
            (layout.socket_src, layout.socket_dest),
        ):
            with errors.attempt(), host_io("Remove", dest):
                if host.is_symlink(dest) and host.read_link(dest) == src:
                    host.remove_file(dest)

        with errors.attempt():
            execute_command(host, ["systemd-tmpfiles", "--remove", f"--prefix={layout.tmpfiles_prefix}"])
        with errors.attempt():
            if host.exists(layout.tmpfiles_dest):
                with host_io("Remove", layout.tmpfiles_dest):
                    host.remove_file(layout.tmpfiles_dest)
        with errors.attempt():
            execute_command(host, ["systemctl", "daemon-reload"])

        errors.raise_any()

    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]:
        explanation = [
            f"Symlink `{layout.tmpfiles_src}` to `{layout.tmpfiles_dest}`",
            f"Run `systemd-tmpfiles --create --prefix={layout.tmpfiles_prefix}`",
            f"Symlink `{layout.service_src}` to `{layout.service_dest}`",
            f"Symlink `{layout.socket_src}` to `{layout.socket_dest}`",
            "Run `systemctl daemon-reload`",
        ]
        if start_daemon:
            explanation.append(f"Run `systemctl enable {layout.socket_src} --now`")
        else:
            explanation.append(f"Run `systemctl enable {layout.socket_src}`")
        return explanation

    def revert_explanation(self, layout: ServiceLayout) -> list[str]:
        return [
            f"Run `systemctl stop {layout.socket_unit}` if active",
            f"Run `systemctl disable {layout.socket_unit}` if enabled",
            f"Run `systemctl stop {layout.service_unit}` if active",
            f"Run `systemctl disable {layout.service_unit}` if enabled",
            f"Remove `{layout.service_dest}` and `{layout.socket_dest}`",
            f"Run `systemd-tmpfiles --remove --prefix={layout.tmpfiles_prefix}`",
            f"Remove `{layout.tmpfiles_dest}`",
            "Run `systemctl daemon-reload`",
        ]
