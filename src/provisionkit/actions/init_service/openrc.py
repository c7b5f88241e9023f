"""OpenRC backend - generated init script in the default runlevel."""

import logging

from provisionkit.actions.base import ErrorCollector, execute_command, host_io, remove_path
from provisionkit.actions.errors import DestinationConflict
from provisionkit.actions.init_service.base import InitBackend, require_supervisor
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InitSystem, ServiceLayout

logger = logging.getLogger(__name__)

OPENRC_SENTINEL = "/run/openrc"
RUNLEVEL = "default"


def render_init_script(layout: ServiceLayout) -> str:
    return "\n".join(
        [
            "#!/sbin/openrc-run",
            "name=$RC_SVCNAME",
            f'description="{layout.daemon_name}"',
            'supervisor="supervise-daemon"',
            f'command="{layout.daemon_bin}"',
            'command_args="--daemon"',
            "",
        ]
    )


def is_started(host: HostConnector, name: str) -> bool:
    return host.run(["rc-service", name, "status"]).success


def is_registered(host: HostConnector, name: str) -> bool:
    """True if `rc-update show` lists the service in the default runlevel."""
    result = host.run(["rc-update", "show", RUNLEVEL])
    for line in result.stdout.splitlines():
        service, _, runlevels = line.partition("|")
        if service.strip() == name and RUNLEVEL in runlevels.split():
            return True
    return False


class OpenRCBackend(InitBackend):
    init = InitSystem.OPENRC
    tool = "openrc"

    def check_liveness(self, host: HostConnector) -> None:
        require_supervisor(host, self.init, OPENRC_SENTINEL, "rc-update")

    def find_conflicts(self, host: HostConnector, layout: ServiceLayout) -> list[DestinationConflict]:
        if host.exists(layout.openrc_service):
            return [DestinationConflict(layout.openrc_service, "init script already exists")]
        return []

    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None:
        script = layout.openrc_service
        if script in replace_paths and host.exists(script):
            remove_path(host, script)

        with host_io("Write", script):
            host.write_text(script, render_init_script(layout))
        with host_io("Set mode 755 on", script):
            host.set_mode(script, 0o755)

        execute_command(host, ["rc-update", "add", layout.daemon_name, RUNLEVEL])
        if start_daemon:
            execute_command(host, ["rc-service", layout.daemon_name, "start"])

    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        name = layout.daemon_name
        started = is_started(host, name)
        registered = is_registered(host, name)

        errors = ErrorCollector()
        if started:
            with errors.attempt():
                execute_command(host, ["rc-service", name, "stop"])
        if registered:
            with errors.attempt():
                execute_command(host, ["rc-update", "del", name, RUNLEVEL])
        with errors.attempt():
            if host.exists(layout.openrc_service):
                with host_io("Remove", layout.openrc_service):
                    host.remove_file(layout.openrc_service)
        errors.raise_any()

    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]:
        explanation = [
            f"Create `{layout.openrc_service}`",
            f"Run `rc-update add {layout.daemon_name} {RUNLEVEL}`",
        ]
        if start_daemon:
            explanation.append(f"Run `rc-service {layout.daemon_name} start`")
        return explanation

    def revert_explanation(self, layout: ServiceLayout) -> list[str]:
        return [
            f"Run `rc-service {layout.daemon_name} stop` if started",
            f"Run `rc-update del {layout.daemon_name} {RUNLEVEL}` if registered",
            f"Remove `{layout.openrc_service}`",
        ]
