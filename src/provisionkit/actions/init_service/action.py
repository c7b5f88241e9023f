"""Configure Init Service Action - Register the daemon with the host's supervisor.

CONTRACT:
- mutates_host: True
- plan: fails if the supervisor is not live, or a destination exists in an
  unexpected form (unless the conflict policy accepts it)
- revert: best-effort, every cleanup step attempted, failures aggregated
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from provisionkit.actions.base import (
    Action,
    ConflictResolver,
    StatefulAction,
    accept_conflicts,
    register_action,
)
from provisionkit.actions.errors import ActionErrorKind
from provisionkit.actions.init_service.base import InitBackend, NoInitBackend
from provisionkit.actions.init_service.launchd import LaunchdBackend
from provisionkit.actions.init_service.openrc import OpenRCBackend
from provisionkit.actions.init_service.runit import RunitBackend
from provisionkit.actions.init_service.systemd import SystemdBackend
from provisionkit.connector.host import HostConnector
from provisionkit.model.description import ActionDescription
from provisionkit.model.settings import InitSystem, ServiceLayout

logger = logging.getLogger(__name__)

_BACKENDS: dict[InitSystem, InitBackend] = {
    InitSystem.SYSTEMD: SystemdBackend(),
    InitSystem.OPENRC: OpenRCBackend(),
    InitSystem.RUNIT: RunitBackend(),
    InitSystem.LAUNCHD: LaunchdBackend(),
    InitSystem.NONE: NoInitBackend(),
}


def get_backend(init: InitSystem) -> InitBackend:
    return _BACKENDS[InitSystem(init)]


@register_action
@dataclass
class ConfigureInitService(Action):
    """Register (and optionally start) the daemon with a service supervisor.

    Attributes:
        init: Supervisor selected before planning.
        start_daemon: Start or activate the daemon once registered.
        layout: Paths of every artifact the backends touch.
        replace_paths: Conflicting destinations the operator agreed to replace.
    """

    TAG = "configure_init_service"

    init: InitSystem
    start_daemon: bool
    layout: ServiceLayout = field(default_factory=ServiceLayout)
    replace_paths: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Coming back from a receipt these are plain JSON values
        self.init = InitSystem(self.init)
        if isinstance(self.layout, dict):
            self.layout = ServiceLayout(**self.layout)
        self.replace_paths = list(self.replace_paths)

    @classmethod
    def plan(
        cls,
        host: HostConnector,
        init: InitSystem,
        start_daemon: bool,
        layout: ServiceLayout | None = None,
        resolve_conflict: ConflictResolver | None = None,
    ) -> StatefulAction:
        layout = layout or ServiceLayout()
        backend = get_backend(init)
        try:
            backend.check_liveness(host)
            replace_paths = accept_conflicts(backend.find_conflicts(host, layout), resolve_conflict)
        except ActionErrorKind as e:
            raise cls.error(e) from e

        if replace_paths:
            logger.info("Will replace: %s", ", ".join(replace_paths))
        return StatefulAction(
            cls(init=init, start_daemon=start_daemon, layout=layout, replace_paths=replace_paths)
        )

    @property
    def backend(self) -> InitBackend:
        return get_backend(self.init)

    def tracing_synopsis(self) -> str:
        if self.init == InitSystem.NONE:
            return f"Leave `{self.layout.daemon_name}` unconfigured"
        return f"Configure `{self.layout.daemon_name}` with {self.backend.tool}"

    def execute_description(self) -> list[ActionDescription]:
        if self.init == InitSystem.NONE:
            return []
        explanation = [f"Remove conflicting `{path}`" for path in self.replace_paths]
        explanation += self.backend.execute_explanation(self.layout, self.start_daemon)
        return [ActionDescription(self.tracing_synopsis(), explanation)]

    def revert_description(self) -> list[ActionDescription]:
        if self.init == InitSystem.NONE:
            return []
        return [
            ActionDescription(
                f"Unconfigure `{self.layout.daemon_name}` with {self.backend.tool}",
                self.backend.revert_explanation(self.layout),
            )
        ]

    def execute(self, host: HostConnector) -> None:
        self.backend.execute(host, self.layout, self.start_daemon, self.replace_paths)

    def revert(self, host: HostConnector) -> None:
        self.backend.revert(host, self.layout)

    def to_params(self) -> dict[str, Any]:
        params = super().to_params()
        params["replace_paths"] = list(self.replace_paths)
        return params
