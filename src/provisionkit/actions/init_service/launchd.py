"""launchd backend - property list in /Library/LaunchDaemons."""

import logging
import re

from provisionkit.actions.base import ErrorCollector, execute_command, host_io
from provisionkit.actions.init_service.base import InitBackend
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InitSystem, ServiceLayout

logger = logging.getLogger(__name__)

DOMAIN = "system"


def service_is_disabled(host: HostConnector, label: str) -> bool:
    """Parse `launchctl print-disabled` for the label.

    Older releases print `"label" => true`, newer ones `"label" => disabled`.
    """
    result = execute_command(host, ["launchctl", "print-disabled", DOMAIN])
    pattern = re.compile(rf'"{re.escape(label)}"\s*=>\s*(true|disabled)\b')
    disabled = any(pattern.search(line) for line in result.stdout.splitlines())
    logger.debug("%s/%s is %sdisabled", DOMAIN, label, "" if disabled else "not ")
    return disabled


def service_is_loaded(host: HostConnector, label: str) -> bool:
    return host.run(["launchctl", "print", f"{DOMAIN}/{label}"]).success


class LaunchdBackend(InitBackend):
    """No liveness or conflict checks: the plist destination is always overwritten."""

    init = InitSystem.LAUNCHD
    tool = "launchctl"

    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None:
        with host_io(f"Copy `{layout.launchd_src}` to", layout.launchd_dest):
            host.copy_file(layout.launchd_src, layout.launchd_dest)

        execute_command(host, ["launchctl", "load", "-w", layout.launchd_dest])

        target = f"{DOMAIN}/{layout.launchd_label}"
        if service_is_disabled(host, layout.launchd_label):
            execute_command(host, ["launchctl", "enable", target])
        if start_daemon:
            execute_command(host, ["launchctl", "kickstart", "-k", target])

    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        loaded = service_is_loaded(host, layout.launchd_label)

        errors = ErrorCollector()
        if loaded:
            with errors.attempt():
                execute_command(host, ["launchctl", "unload", layout.launchd_dest])
        with errors.attempt():
            if host.exists(layout.launchd_dest):
                with host_io("Remove", layout.launchd_dest):
                    host.remove_file(layout.launchd_dest)
        errors.raise_any()

    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]:
        target = f"{DOMAIN}/{layout.launchd_label}"
        explanation = [
            f"Copy `{layout.launchd_src}` to `{layout.launchd_dest}`",
            f"Run `launchctl load -w {layout.launchd_dest}`",
            f"Run `launchctl enable {target}` if disabled",
        ]
        if start_daemon:
            explanation.append(f"Run `launchctl kickstart -k {target}`")
        return explanation

    def revert_explanation(self, layout: ServiceLayout) -> list[str]:
        return [
            f"Run `launchctl unload {layout.launchd_dest}` if loaded",
            f"Remove `{layout.launchd_dest}`",
        ]
