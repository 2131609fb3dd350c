"""Join code and base58 codecs."""

from . import base58, join_code
from .join_code import HostPort

__all__ = ["HostPort", "base58", "join_code"]
