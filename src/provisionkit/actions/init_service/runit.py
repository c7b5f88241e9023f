"""runit backend - service directory linked into the supervision tree."""

import logging

from provisionkit.actions.base import ErrorCollector, execute_command, host_io, remove_path
from provisionkit.actions.errors import DestinationConflict
from provisionkit.actions.init_service.base import InitBackend, require_supervisor
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InitSystem, ServiceLayout

logger = logging.getLogger(__name__)

RUNIT_SENTINEL = "/run/runit"


def render_run_script(layout: ServiceLayout) -> str:
    return f"#!/bin/sh\nexec {layout.daemon_bin}\n"


def is_running(host: HostConnector, name: str) -> bool:
    return host.run(["sv", "status", name]).stdout.startswith("run:")


class RunitBackend(InitBackend):
    init = InitSystem.RUNIT
    tool = "runit"

    def check_liveness(self, host: HostConnector) -> None:
        require_supervisor(host, self.init, RUNIT_SENTINEL, "sv")

    def find_conflicts(self, host: HostConnector, layout: ServiceLayout) -> list[DestinationConflict]:
        if host.exists(layout.runit_service):
            return [DestinationConflict(layout.runit_service, "service directory already exists")]
        return []

    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None:
        service_dir = layout.runit_service
        if service_dir in replace_paths and host.exists(service_dir):
            remove_path(host, service_dir)

        with host_io("Create directory", service_dir):
            host.create_dir(service_dir, 0o755)

        # runsv will not start a service whose directory holds a `down` file
        if not start_daemon:
            with host_io("Write", layout.runit_down):
                host.write_text(layout.runit_down, "")

        with host_io("Write", layout.runit_run):
            host.write_text(layout.runit_run, render_run_script(layout))
        with host_io("Set mode 755 on", layout.runit_run):
            host.set_mode(layout.runit_run, 0o755)

        with host_io("Symlink", layout.runit_symlink):
            host.symlink(service_dir, layout.runit_symlink)

    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        running = is_running(host, layout.daemon_name)

        errors = ErrorCollector()
        if running:
            with errors.attempt():
                execute_command(host, ["sv", "down", layout.daemon_name])
        with errors.attempt():
            if host.is_symlink(layout.runit_symlink):
                with host_io("Remove", layout.runit_symlink):
                    host.remove_file(layout.runit_symlink)
        with errors.attempt():
            if host.exists(layout.runit_service):
                with host_io("Remove directory", layout.runit_service):
                    host.remove_tree(layout.runit_service)
        errors.raise_any()

    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]:
        explanation = [f"Create `{layout.runit_service}`"]
        if not start_daemon:
            explanation.append(f"Create `{layout.runit_down}`")
        explanation.append(f"Create `{layout.runit_run}`")
        explanation.append(f"Symlink `{layout.runit_service}` to `{layout.runit_symlink}`")
        return explanation

    def revert_explanation(self, layout: ServiceLayout) -> list[str]:
        return [
            f"Run `sv down {layout.daemon_name}` if running",
            f"Remove symlink `{layout.runit_symlink}`",
            f"Remove `{layout.runit_service}`",
        ]
