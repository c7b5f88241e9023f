"""Error taxonomy for actions.

Action bodies raise ActionErrorKind subclasses. The stateful wrapper
re-raises them as ActionError, attaching the tag of the action that
failed, so every error reaching the plan knows where it came from.
"""

from typing import Sequence

from provisionkit.connector.host import CommandResult, format_argv


class ProvisionError(Exception):
    """Base class for every error surfaced to the operator."""


class ActionErrorKind(Exception):
    """Base class for the ways an action can fail."""


class DestinationConflict(ActionErrorKind):
    """A destination already exists in a form the action did not expect.

    Only replaced when the conflict policy accepts it: the path may hold
    configuration this tool does not own.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"`{path}` already exists ({reason})")


class SupervisorMissing(ActionErrorKind):
    """The requested service supervisor is not running on this host."""

    def __init__(self, init: str, detail: str) -> None:
        self.init = init
        self.detail = detail
        super().__init__(f"{init} is not available: {detail}")


class HostIOError(ActionErrorKind):
    """A filesystem operation failed."""

    def __init__(self, operation: str, path: str, cause: OSError) -> None:
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f"{operation} `{path}`: {cause}")


class CommandFailed(ActionErrorKind):
    """A command exited non-zero."""

    def __init__(self, argv: Sequence[str], exit_code: int, stdout: str = "", stderr: str = "") -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        message = f"`{format_argv(self.argv)}` exited with {exit_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @classmethod
    def from_result(cls, result: CommandResult) -> "CommandFailed":
        return cls(result.argv, result.exit_code, result.stdout, result.stderr)


class MultipleErrors(ActionErrorKind):
    """Two or more independent failures, in the order they happened."""

    def __init__(self, errors: Sequence[ActionErrorKind]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} errors: " + "; ".join(str(e) for e in self.errors))


def collapse(errors: Sequence[ActionErrorKind]) -> ActionErrorKind | None:
    """Fold collected errors into nothing, the single error, or MultipleErrors."""
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return MultipleErrors(errors)


class ActionError(ProvisionError):
    """An action failed. Carries the action's tag and the failure kind."""

    def __init__(self, tag: str, kind: ActionErrorKind) -> None:
        self.tag = tag
        self.kind = kind
        super().__init__(f"{tag}: {kind}")


class ActionStateError(ProvisionError):
    """execute()/revert() called from a state that does not allow it."""

    def __init__(self, tag: str, state: str, operation: str) -> None:
        self.tag = tag
        self.state = state
        self.operation = operation
        super().__init__(f"{tag}: cannot {operation} an action in state `{state}`")
