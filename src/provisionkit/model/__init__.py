"""Model package - Core data structures for provisionkit."""

from provisionkit.model.description import ActionDescription
from provisionkit.model.settings import (
    ConflictPolicy,
    InitSystem,
    InstallSettings,
    ServiceLayout,
)

__all__ = [
    "ActionDescription",
    "ConflictPolicy",
    "InitSystem",
    "InstallSettings",
    "ServiceLayout",
]
