"""Install plan - Ordered actions with reverse-order rollback.

IMPORTANT: The plan is only as atomic as each action's revert. A failed
install walks back over every completed action, but a revert that itself
fails leaves that action's side effects on the host. Those actions stay
`completed` and are handed back as a partial receipt.
"""

import logging
from typing import Callable

from provisionkit.actions import ConfigureInitService, CreateDirectory, CreateFile, StatefulAction
from provisionkit.actions.base import conflict_resolver
from provisionkit.actions.errors import ProvisionError
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InstallSettings
from provisionkit.receipt import Receipt

logger = logging.getLogger(__name__)


class FailedRevertsError(ProvisionError):
    """Install failed and rolling back failed too.

    Attributes:
        original: The error that stopped the install.
        revert_errors: Every failure hit while rolling back.
        receipt: The actions that could not be reverted, for a later retry.
    """

    def __init__(
        self,
        original: ProvisionError,
        revert_errors: list[ProvisionError],
        receipt: Receipt,
    ) -> None:
        self.original = original
        self.revert_errors = revert_errors
        self.receipt = receipt
        super().__init__(f"{original} (and {len(revert_errors)} action(s) failed to revert)")


def render_daemon_config(settings: InstallSettings) -> str:
    if not settings.daemon_config:
        return ""
    return "\n".join(settings.daemon_config) + "\n"


class InstallPlan:
    """Sequence of planned actions for one install.

    Example:
        >>> plan = InstallPlan.new(settings, LocalHost())
        >>> print(plan.describe_execute())
        >>> receipt = plan.install(LocalHost())
    """

    def __init__(self, settings: InstallSettings, actions: list[StatefulAction]) -> None:
        self.settings = settings
        self.actions = actions
        self.failed_index: int | None = None

    @classmethod
    def new(
        cls,
        settings: InstallSettings,
        host: HostConnector,
        confirm: Callable[[str], bool] | None = None,
    ) -> "InstallPlan":
        """Plan every action. Nothing on the host changes here.

        Args:
            settings: Resolved install settings.
            host: Host to validate against.
            confirm: Question callback used by the `prompt` conflict policy.

        Raises:
            ActionError: An action refused to plan (conflict, missing supervisor).
        """
        layout = settings.layout
        resolve = conflict_resolver(settings.on_conflict, confirm)

        prefix = CreateDirectory.plan(host, layout.prefix)
        config_dir = CreateDirectory.plan(
            host,
            layout.config_dir,
            claimed=prefix.action.created,  # type: ignore[attr-defined]
        )
        actions = [
            prefix,
            config_dir,
            CreateFile.plan(
                host,
                layout.config_file,
                render_daemon_config(settings),
                resolve_conflict=resolve,
            ),
            ConfigureInitService.plan(
                host,
                settings.init,
                settings.start_daemon,
                layout=layout,
                resolve_conflict=resolve,
            ),
        ]
        logger.debug("Planned %d actions", len(actions))
        return cls(settings, actions)

    def describe_execute(self, explain: bool | None = None) -> str:
        explain = self.settings.explain if explain is None else explain
        return "\n".join(
            description.render(explain)
            for stateful in self.actions
            for description in stateful.describe_execute()
        )

    def describe_revert(self, explain: bool | None = None) -> str:
        explain = self.settings.explain if explain is None else explain
        return "\n".join(
            description.render(explain)
            for stateful in reversed(self.actions)
            for description in stateful.describe_revert()
        )

    def receipt(self) -> Receipt:
        return Receipt(self.settings, [s for s in self.actions if s.completed])

    def install(self, host: HostConnector) -> Receipt:
        """Execute every action in order.

        On the first failure, every earlier action is reverted, last first.
        If all of those reverts succeed the original error is re-raised
        unchanged; otherwise FailedRevertsError carries both.
        """
        self.failed_index = None
        for index, stateful in enumerate(self.actions):
            if stateful.completed:
                continue
            try:
                stateful.execute(host)
            except ProvisionError as original:
                self.failed_index = index
                logger.error("%s failed, rolling back: %s", stateful.tag, original)
                revert_errors = self._rollback(host, index)
                if not revert_errors:
                    raise
                raise FailedRevertsError(original, revert_errors, self.receipt()) from original

        logger.info("Install completed (%d actions)", len(self.actions))
        return self.receipt()

    def _rollback(self, host: HostConnector, failed_index: int) -> list[ProvisionError]:
        errors: list[ProvisionError] = []
        for stateful in reversed(self.actions[:failed_index]):
            if not stateful.completed:
                continue
            try:
                stateful.revert(host)
            except ProvisionError as e:
                logger.error("Failed to revert %s: %s", stateful.tag, e)
                errors.append(e)
        return errors
