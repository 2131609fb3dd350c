"""Turn whatever a player typed into a host and port to connect to."""

from skysession.codec import HostPort, join_code
from skysession.errors import InvalidConfiguration
from skysession.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER_PORT = 7770


def _parse_port(text: str, raw: str) -> int:
    if not text.isdigit() or not 0 < int(text) <= join_code.MAX_PORT:
        raise InvalidConfiguration(f"Invalid port in {raw!r}")
    return int(text)


def parse_host_port(raw: str, default_port: int = DEFAULT_SERVER_PORT) -> HostPort:
    """Parse ``host``, ``host:port``, ``[v6]`` or ``[v6]:port``.

    Raises:
        InvalidConfiguration: If the host is empty or the port is not 1-65535.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidConfiguration("Address is empty")

    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or not host:
            raise InvalidConfiguration(f"Malformed IPv6 address {raw!r}")
        if not rest:
            return HostPort(host, default_port)
        if not rest.startswith(":"):
            raise InvalidConfiguration(f"Malformed IPv6 address {raw!r}")
        return HostPort(host, _parse_port(rest[1:], raw))

    # a bare IPv6 address has several colons and no port
    if text.count(":") > 1:
        return HostPort(text, default_port)

    host, sep, port_text = text.partition(":")
    if not host:
        raise InvalidConfiguration(f"Missing host in {raw!r}")
    if not sep:
        return HostPort(host, default_port)
    return HostPort(host, _parse_port(port_text, raw))


def resolve_endpoint(
    raw: str,
    default_port: int = DEFAULT_SERVER_PORT,
    domain: str = join_code.DEFAULT_DOMAIN,
) -> HostPort:
    """Resolve a join code, or fall back to ``host[:port]``."""
    text = (raw or "").strip()
    decoded = join_code.try_decode(text, domain)
    if decoded is not None:
        logger.info("join_code_resolved", host=decoded.host, port=decoded.port)
        return decoded
    return parse_host_port(text, default_port)
