"""Connector package - access to the host being provisioned."""

from provisionkit.connector.host import CommandResult, HostConnector, LocalHost, format_argv

__all__ = ["CommandResult", "HostConnector", "LocalHost", "format_argv"]
