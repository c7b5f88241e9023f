"""Action contract and the stateful wrapper around it.

Each action declares:
- plan: validate the host and refuse pre-existing conflicting state
- execute: perform the side effects
- revert: undo them, best-effort, collecting every failure
- descriptions: pure text for the confirmation prompt
- a stable tag used in errors and receipts
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, fields, is_dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Iterator, Sequence

from provisionkit.actions.errors import (
    ActionError,
    ActionErrorKind,
    ActionStateError,
    CommandFailed,
    DestinationConflict,
    HostIOError,
    collapse,
)
from provisionkit.connector.host import CommandResult, HostConnector, format_argv
from provisionkit.model.description import ActionDescription
from provisionkit.model.settings import ConflictPolicy

logger = logging.getLogger(__name__)

ConflictResolver = Callable[[DestinationConflict], bool]


class ActionState(str, Enum):
    """Completion state of a planned action."""

    UNCOMPLETED = "uncompleted"
    COMPLETED = "completed"


class Action(ABC):
    """A discrete, revertible change to the host.

    Concrete actions are dataclasses holding only the parameters they
    need. Their `plan` classmethod validates the host and returns a
    StatefulAction; nothing else should construct one for execution.
    """

    TAG: ClassVar[str]

    @classmethod
    def action_tag(cls) -> str:
        return cls.TAG

    @classmethod
    def error(cls, kind: ActionErrorKind) -> ActionError:
        return ActionError(cls.action_tag(), kind)

    @abstractmethod
    def tracing_synopsis(self) -> str:
        """One line describing the action, used in logs."""

    @abstractmethod
    def execute_description(self) -> list[ActionDescription]: ...

    @abstractmethod
    def revert_description(self) -> list[ActionDescription]: ...

    @abstractmethod
    def execute(self, host: HostConnector) -> None:
        """Perform the side effects. Raises ActionErrorKind on failure."""

    @abstractmethod
    def revert(self, host: HostConnector) -> None:
        """Undo the side effects, attempting every step before raising."""

    def to_params(self) -> dict[str, Any]:
        """Parameters needed to rebuild this action from a receipt."""
        params: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif is_dataclass(value):
                value = asdict(value)
            elif isinstance(value, tuple):
                value = list(value)
            params[f.name] = value
        return params

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "Action":
        return cls(**params)  # type: ignore[call-arg]


# Closed set of known actions, keyed by tag
_action_registry: dict[str, type[Action]] = {}


def register_action(action_class: type[Action]) -> type[Action]:
    """Decorator to register an action class under its tag."""
    tag = action_class.TAG
    if tag in _action_registry and _action_registry[tag] is not action_class:
        raise ValueError(f"Action tag `{tag}` is already registered")
    _action_registry[tag] = action_class
    return action_class


def get_action_class(tag: str) -> type[Action] | None:
    return _action_registry.get(tag)


def registered_tags() -> list[str]:
    return sorted(_action_registry)


class StatefulAction:
    """An action plus its completion state.

    Enforces the legal transitions:
        uncompleted --execute--> completed --revert--> uncompleted
    A failed execute or revert leaves the state where it was.
    """

    def __init__(self, action: Action, state: ActionState = ActionState.UNCOMPLETED) -> None:
        self.action = action
        self.state = state

    def __repr__(self) -> str:
        return f"StatefulAction({self.action!r}, state={self.state.value})"

    @property
    def tag(self) -> str:
        return self.action.action_tag()

    @property
    def completed(self) -> bool:
        return self.state == ActionState.COMPLETED

    def describe_execute(self) -> list[ActionDescription]:
        if self.completed:
            return []
        return self.action.execute_description()

    def describe_revert(self) -> list[ActionDescription]:
        if not self.completed:
            return []
        return self.action.revert_description()

    def execute(self, host: HostConnector) -> None:
        if self.state != ActionState.UNCOMPLETED:
            raise ActionStateError(self.tag, self.state.value, "execute")

        logger.debug("Executing: %s", self.action.tracing_synopsis())
        try:
            self.action.execute(host)
        except ActionErrorKind as e:
            logger.debug("Failed: %s", self.action.tracing_synopsis())
            raise ActionError(self.tag, e) from e

        self.state = ActionState.COMPLETED
        logger.debug("Completed: %s", self.action.tracing_synopsis())

    def revert(self, host: HostConnector) -> None:
        if self.state != ActionState.COMPLETED:
            raise ActionStateError(self.tag, self.state.value, "revert")

        logger.debug("Reverting: %s", self.action.tracing_synopsis())
        try:
            self.action.revert(host)
        except ActionErrorKind as e:
            logger.debug("Failed to revert: %s", self.action.tracing_synopsis())
            raise ActionError(self.tag, e) from e

        self.state = ActionState.UNCOMPLETED
        logger.debug("Reverted: %s", self.action.tracing_synopsis())


# =========================================================================
# Helpers shared by action implementations
# =========================================================================


def execute_command(host: HostConnector, argv: Sequence[str]) -> CommandResult:
    """Run a command, raising CommandFailed on a non-zero exit."""
    result = host.run(argv)
    if not result.success:
        raise CommandFailed.from_result(result)
    logger.debug("Ran `%s`", format_argv(argv))
    return result


@contextmanager
def host_io(operation: str, path: str) -> Iterator[None]:
    """Translate OSError raised inside the block into HostIOError."""
    try:
        yield
    except OSError as e:
        raise HostIOError(operation, path, e) from e


class ErrorCollector:
    """Runs independent cleanup steps, keeping every failure.

    Example:
        >>> errors = ErrorCollector()
        >>> with errors.attempt():
        ...     execute_command(host, ["systemctl", "stop", "x.socket"])
        >>> with errors.attempt():
        ...     execute_command(host, ["systemctl", "daemon-reload"])
        >>> errors.raise_any()
    """

    def __init__(self) -> None:
        self.errors: list[ActionErrorKind] = []

    @contextmanager
    def attempt(self) -> Iterator[None]:
        try:
            yield
        except ActionErrorKind as e:
            logger.debug("Continuing after failure: %s", e)
            self.errors.append(e)

    def raise_any(self) -> None:
        error = collapse(self.errors)
        if error is not None:
            raise error


def remove_path(host: HostConnector, path: str) -> None:
    """Remove whatever is at path: a symlink or file, or a whole directory."""
    if host.is_dir(path) and not host.is_symlink(path):
        with host_io("Remove directory", path):
            host.remove_tree(path)
    else:
        with host_io("Remove", path):
            host.remove_file(path)


def conflict_resolver(
    policy: ConflictPolicy,
    confirm: Callable[[str], bool] | None = None,
) -> ConflictResolver:
    """Build the callback planning uses to decide on a conflict.

    Args:
        policy: The configured conflict policy.
        confirm: Asked with a question when the policy is PROMPT. Without
            one, PROMPT behaves like FAIL.

    Returns:
        A callable returning True when the conflicting path may be replaced.
    """

    def resolve(conflict: DestinationConflict) -> bool:
        if policy == ConflictPolicy.FORCE:
            logger.warning("Replacing %s (on-conflict=force)", conflict)
            return True
        if policy == ConflictPolicy.PROMPT and confirm is not None:
            return confirm(f"{conflict}. Remove it and continue?")
        return False

    return resolve


def accept_conflicts(
    conflicts: Sequence[DestinationConflict],
    resolve: ConflictResolver | None,
) -> list[str]:
    """Return the paths of accepted conflicts, raising on the first refused one."""
    accepted: list[str] = []
    for conflict in conflicts:
        if resolve is None or not resolve(conflict):
            raise conflict
        accepted.append(conflict.path)
    return accepted
