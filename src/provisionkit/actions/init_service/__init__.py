"""Init-service registration across service supervisors."""

from provisionkit.actions.init_service.action import ConfigureInitService, get_backend
from provisionkit.actions.init_service.base import InitBackend

__all__ = ["ConfigureInitService", "InitBackend", "get_backend"]
