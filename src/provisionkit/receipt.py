"""Receipt - Durable record of a completed install.

The receipt is what makes a later, separate `revert` possible: it holds
the settings and every completed action's parameters, enough to drive
each action's revert() without re-planning against the live host.

On-disk format (JSON):

    {
      "version": 1,
      "settings": {...},
      "actions": [{"action": "<tag>", "state": "completed", "params": {...}}]
    }
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

# Registers every action tag
import provisionkit.actions  # noqa: F401
from provisionkit.actions.base import ActionState, StatefulAction, get_action_class
from provisionkit.actions.errors import ProvisionError
from provisionkit.connector.host import HostConnector
from provisionkit.model.settings import InstallSettings

logger = logging.getLogger(__name__)

RECEIPT_VERSION = 1


class ReceiptError(ProvisionError):
    """A receipt could not be read, parsed or written."""


class RevertFailedError(ProvisionError):
    """A standalone revert left some actions in place.

    Attributes:
        errors: Every revert failure, in the order they happened.
        remaining: Receipt of the actions that are still completed.
    """

    def __init__(self, errors: list[ProvisionError], remaining: "Receipt") -> None:
        self.errors = errors
        self.remaining = remaining
        super().__init__(f"{len(errors)} action(s) failed to revert")


class ActionReceiptModel(BaseModel):
    action: str = Field(..., description="Tag of the action")
    state: ActionState = Field(..., description="Completion state when recorded")
    params: dict[str, Any] = Field(default_factory=dict, description="Parameters to rebuild the action")


class ReceiptModel(BaseModel):
    version: Literal[1] = Field(RECEIPT_VERSION, description="Receipt schema version")
    settings: InstallSettings
    actions: list[ActionReceiptModel] = Field(default_factory=list)


class Receipt:
    """Settings plus the ordered stateful actions of an install."""

    def __init__(self, settings: InstallSettings, actions: list[StatefulAction]) -> None:
        self.settings = settings
        self.actions = actions

    def __len__(self) -> int:
        return len(self.actions)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_model(self) -> ReceiptModel:
        return ReceiptModel(
            settings=self.settings,
            actions=[
                ActionReceiptModel(action=s.tag, state=s.state, params=s.action.to_params())
                for s in self.actions
            ],
        )

    def to_json(self) -> str:
        return self.to_model().model_dump_json(indent=2)

    @classmethod
    def from_json(cls, text: str) -> "Receipt":
        try:
            model = ReceiptModel.model_validate_json(text)
        except ValidationError as e:
            raise ReceiptError(f"Invalid receipt: {e}") from e

        actions: list[StatefulAction] = []
        for index, entry in enumerate(model.actions):
            action_class = get_action_class(entry.action)
            if action_class is None:
                raise ReceiptError(f"Unknown action `{entry.action}` at position {index}")
            try:
                action = action_class.from_params(entry.params)
            except (TypeError, ValueError) as e:
                raise ReceiptError(f"Invalid parameters for `{entry.action}` at position {index}: {e}") from e
            actions.append(StatefulAction(action, entry.state))
        return cls(model.settings, actions)

    def write(self, path: str | Path) -> None:
        """Write the receipt, replacing any previous one atomically."""
        target = Path(path)
        tmp_name: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.to_json() + "\n")
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise ReceiptError(f"Could not write receipt to {target}: {e}") from e
        logger.info("Receipt written to %s (%d actions)", target, len(self.actions))

    @classmethod
    def load(cls, path: str | Path) -> "Receipt":
        source = Path(path)
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as e:
            raise ReceiptError(f"Could not read receipt {source}: {e}") from e
        return cls.from_json(text)

    # ------------------------------------------------------------------
    # Revert
    # ------------------------------------------------------------------

    def describe_revert(self, explain: bool | None = None) -> str:
        explain = self.settings.explain if explain is None else explain
        lines = [
            description.render(explain)
            for stateful in reversed(self.actions)
            for description in stateful.describe_revert()
        ]
        return "\n".join(lines)

    def revert(self, host: HostConnector) -> None:
        """Revert every completed action, last first.

        Each action is attempted even if an earlier one failed. Raises
        RevertFailedError carrying all failures and the receipt of what
        is left.
        """
        errors: list[ProvisionError] = []
        for stateful in reversed(self.actions):
            if not stateful.completed:
                continue
            try:
                stateful.revert(host)
            except ProvisionError as e:
                logger.error("Failed to revert %s: %s", stateful.tag, e)
                errors.append(e)

        if errors:
            raise RevertFailedError(errors, self.remaining())

    def remaining(self) -> "Receipt":
        """Receipt holding only the actions that are still completed."""
        return Receipt(self.settings, [s for s in self.actions if s.completed])
