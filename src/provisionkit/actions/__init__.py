"""Actions package - Revertible units of work.

Importing this package registers every action with the tag registry,
which receipts rely on to rebuild actions.
"""

from provisionkit.actions.base import (
    Action,
    ActionState,
    StatefulAction,
    get_action_class,
    register_action,
    registered_tags,
)
from provisionkit.actions.create_directory import CreateDirectory
from provisionkit.actions.create_file import CreateFile
from provisionkit.actions.errors import ActionError, ActionErrorKind, ProvisionError
from provisionkit.actions.init_service import ConfigureInitService

__all__ = [
    "Action",
    "ActionError",
    "ActionErrorKind",
    "ActionState",
    "ConfigureInitService",
    "CreateDirectory",
    "CreateFile",
    "ProvisionError",
    "StatefulAction",
    "get_action_class",
    "register_action",
    "registered_tags",
]
