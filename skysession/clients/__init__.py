"""Clients for external services."""

from .edgegap import EdgegapClient
from .public_ip import get_public_ip
from .teardown import AuthenticatedDeleteClient

__all__ = [
    "AuthenticatedDeleteClient",
    "EdgegapClient",
    "get_public_ip",
]
