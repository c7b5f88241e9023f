"""Create Directory Action - mkdir with an exact undo.

CONTRACT:
- mutates_host: True
- revert: removes only the directories this action created, deepest first;
  a directory that is no longer empty is left in place
- conflict: the path exists but is not a directory
"""

import errno
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Sequence

from provisionkit.actions.base import (
    Action,
    ErrorCollector,
    StatefulAction,
    host_io,
    register_action,
)
from provisionkit.actions.errors import DestinationConflict, HostIOError
from provisionkit.connector.host import HostConnector
from provisionkit.model.description import ActionDescription

logger = logging.getLogger(__name__)


def _missing_ancestors(host: HostConnector, path: str) -> list[str]:
    """Directories from the top-most missing ancestor down to path."""
    missing: list[str] = []
    current = posixpath.normpath(path)
    while current not in ("/", "") and not host.exists(current):
        missing.append(current)
        current = posixpath.dirname(current)
    missing.reverse()
    return missing


@register_action
@dataclass
class CreateDirectory(Action):
    """Create a directory and any missing parents.

    Attributes:
        path: Directory to create.
        mode: Permission bits for each created directory.
        created: Directories that did not exist at plan time, parents first.
            Empty when the directory was already present.
        force_prune_on_revert: Remove the directory with its contents on
            revert instead of only when empty.
    """

    TAG = "create_directory"

    path: str
    mode: int | None = 0o755
    created: list[str] = field(default_factory=list)
    force_prune_on_revert: bool = False

    @classmethod
    def plan(
        cls,
        host: HostConnector,
        path: str,
        mode: int | None = 0o755,
        force_prune_on_revert: bool = False,
        claimed: Sequence[str] = (),
    ) -> StatefulAction:
        """Plan creating `path`.

        `claimed` lists directories an earlier action in the same plan
        already creates; they are neither created nor removed here.
        """
        if host.exists(path) and (host.is_symlink(path) or not host.is_dir(path)):
            raise cls.error(DestinationConflict(path, "not a directory"))

        created = [d for d in _missing_ancestors(host, path) if d not in claimed]
        if not created:
            logger.debug("Directory %s already exists", path)

        return StatefulAction(
            cls(
                path=path,
                mode=mode,
                created=created,
                force_prune_on_revert=force_prune_on_revert,
            )
        )

    def tracing_synopsis(self) -> str:
        return f"Create directory `{self.path}`"

    def execute_description(self) -> list[ActionDescription]:
        if not self.created:
            return []
        return [ActionDescription(self.tracing_synopsis(), [f"mkdir `{p}`" for p in self.created])]

    def revert_description(self) -> list[ActionDescription]:
        if not self.created:
            return []
        return [
            ActionDescription(
                f"Remove directory `{self.path}`",
                [f"rmdir `{p}`" for p in reversed(self.created)],
            )
        ]

    def execute(self, host: HostConnector) -> None:
        for directory in self.created:
            if host.is_dir(directory):
                continue
            with host_io("Create directory", directory):
                host.create_dir(directory, self.mode)

    def revert(self, host: HostConnector) -> None:
        errors = ErrorCollector()
        for directory in reversed(self.created):
            if not host.exists(directory):
                continue
            with errors.attempt():
                if self.force_prune_on_revert and directory == self.path:
                    with host_io("Remove directory", directory):
                        host.remove_tree(directory)
                else:
                    self._remove_if_empty(host, directory)
        errors.raise_any()

    @staticmethod
    def _remove_if_empty(host: HostConnector, directory: str) -> None:
        try:
            host.remove_dir(directory)
        except OSError as e:
            if e.errno not in (errno.ENOTEMPTY, errno.EEXIST):
                raise HostIOError("Remove directory", directory, e) from e
            logger.warning("Not removing `%s` since it is not empty", directory)
