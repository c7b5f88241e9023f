"""provisionkit - transactional, revertible host provisioning."""

__version__ = "0.1.0"
