"""Create File Action - Write a file the distribution owns.

CONTRACT:
- mutates_host: True
- revert: removes the file unless it was already present with identical content
- conflict: the path exists with different content, or is not a regular file
"""

import logging
from dataclasses import dataclass

from provisionkit.actions.base import (
    Action,
    ConflictResolver,
    StatefulAction,
    accept_conflicts,
    host_io,
    register_action,
    remove_path,
)
from provisionkit.actions.errors import ActionErrorKind, DestinationConflict
from provisionkit.connector.host import HostConnector
from provisionkit.model.description import ActionDescription

logger = logging.getLogger(__name__)


@register_action
@dataclass
class CreateFile(Action):
    """Write `content` to `path` with `mode`."""

    TAG = "create_file"

    path: str
    content: str
    mode: int | None = 0o644
    replace: bool = False
    already_exists: bool = False

    @classmethod
    def plan(
        cls,
        host: HostConnector,
        path: str,
        content: str,
        mode: int | None = 0o644,
        resolve_conflict: ConflictResolver | None = None,
    ) -> StatefulAction:
        already_exists = False
        replace = False
        try:
            conflict: DestinationConflict | None = None
            if host.exists(path):
                if host.is_symlink(path) or host.is_dir(path):
                    conflict = DestinationConflict(path, "not a regular file")
                else:
                    with host_io("Read", path):
                        existing = host.read_text(path)
                    if existing == content:
                        already_exists = True
                    else:
                        conflict = DestinationConflict(path, "content differs")
            if conflict is not None:
                replace = bool(accept_conflicts([conflict], resolve_conflict))
        except ActionErrorKind as e:
            raise cls.error(e) from e

        return StatefulAction(
            cls(path=path, content=content, mode=mode, replace=replace, already_exists=already_exists)
        )

    def tracing_synopsis(self) -> str:
        return f"Create file `{self.path}`"

    def execute_description(self) -> list[ActionDescription]:
        if self.already_exists:
            return []
        explanation = []
        if self.replace:
            explanation.append(f"Remove the existing `{self.path}`")
        explanation.append(f"Write {len(self.content.splitlines())} line(s) to `{self.path}`")
        if self.mode is not None:
            explanation.append(f"Set mode {self.mode:o}")
        return [ActionDescription(self.tracing_synopsis(), explanation)]

    def revert_description(self) -> list[ActionDescription]:
        if self.already_exists:
            return []
        return [ActionDescription(f"Remove file `{self.path}`")]

    def execute(self, host: HostConnector) -> None:
        if self.already_exists:
            logger.debug("%s already has the expected content", self.path)
            return
        if self.replace and host.exists(self.path):
            remove_path(host, self.path)
        with host_io("Write", self.path):
            host.write_text(self.path, self.content)
        if self.mode is not None:
            with host_io(f"Set mode {self.mode:o} on", self.path):
                host.set_mode(self.path, self.mode)

    def revert(self, host: HostConnector) -> None:
        if self.already_exists or not host.exists(self.path):
            return
        with host_io("Remove", self.path):
            host.remove_file(self.path)
