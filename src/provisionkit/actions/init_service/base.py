"""Init backend interface.

A backend knows how one service supervisor registers, starts and
forgets the daemon. ConfigureInitService picks the backend at runtime
from the selected InitSystem; backends hold no state of their own.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from provisionkit.actions.errors import DestinationConflict, SupervisorMissing
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InitSystem, ServiceLayout


class InitBackend(ABC):
    """Supervisor-specific half of the init-service registration."""

    init: ClassVar[InitSystem]
    tool: ClassVar[str]  # name shown in descriptions

    def check_liveness(self, host: HostConnector) -> None:
        """Raise SupervisorMissing unless the supervisor is running here."""

    def find_conflicts(self, host: HostConnector, layout: ServiceLayout) -> list[DestinationConflict]:
        """Destinations that already exist in an unexpected form."""
        return []

    @abstractmethod
    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None: ...

    @abstractmethod
    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        """Undo execute(), attempting every step before raising."""

    @abstractmethod
    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]: ...

    @abstractmethod
    def revert_explanation(self, layout: ServiceLayout) -> list[str]: ...


def require_supervisor(host: HostConnector, init: InitSystem, sentinel: str, binary: str) -> None:
    """Check that a supervisor's runtime sentinel exists and its tool is on PATH."""
    if not host.exists(sentinel):
        raise SupervisorMissing(init.value, f"`{sentinel}` does not exist")
    if host.which(binary) is None:
        raise SupervisorMissing(init.value, f"`{binary}` was not found on PATH")


class NoInitBackend(InitBackend):
    """No supervisor: the daemon is left for the operator to run."""

    init = InitSystem.NONE
    tool = "no init system"

    def execute(
        self,
        host: HostConnector,
        layout: ServiceLayout,
        start_daemon: bool,
        replace_paths: list[str],
    ) -> None:
        return None

    def revert(self, host: HostConnector, layout: ServiceLayout) -> None:
        return None

    def execute_explanation(self, layout: ServiceLayout, start_daemon: bool) -> list[str]:
        return []

    def revert_explanation(self, layout: ServiceLayout) -> list[str]:
        return []
