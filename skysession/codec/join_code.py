"""Join codes: a deployment request id and port packed into a short base58 string.

Layout of the 8-byte payload::

    bytes 0-5   first 6 bytes of the request id
    bytes 6-7   external port, big-endian

The decoder rebuilds the host name as ``<12 hex chars>.<domain>``. This relies
on the platform naming every deployment after its request id under a fixed
DNS zone (``pr.edgegap.net`` as of the v1 status API). The payload carries no
version tag or checksum, so a change to that naming scheme makes old codes
decode to well-formed but wrong hosts.
"""

import binascii
from typing import NamedTuple

from skysession.codec import base58
from skysession.errors import CodecError, InvalidJoinCode, InvalidRequestId

DEFAULT_DOMAIN = "pr.edgegap.net"
REQUEST_ID_BYTES = 6
PORT_BYTES = 2
PAYLOAD_BYTES = REQUEST_ID_BYTES + PORT_BYTES
MAX_PORT = 0xFFFF


class HostPort(NamedTuple):
    host: str
    port: int


def request_id_to_bytes(request_id_hex: str) -> bytes:
    """Parse a hex request id (optional ``0x`` prefix, odd length allowed)."""
    text = (request_id_hex or "").strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text:
        raise InvalidRequestId("Request id is empty")
    if len(text) % 2 == 1:
        text = "0" + text
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestId(f"Request id is not valid hex: {request_id_hex!r}") from e


def encode(request_id_hex: str, port: int) -> str:
    """Build the join code for a deployment.

    Raises:
        InvalidRequestId: If the id is not hex or shorter than 6 bytes.
        InvalidJoinCode: If ``port`` is outside 0-65535.
    """
    rid = request_id_to_bytes(request_id_hex)
    if len(rid) < REQUEST_ID_BYTES:
        raise InvalidRequestId(
            f"Request id must be at least {REQUEST_ID_BYTES * 2} hex chars, got {request_id_hex!r}"
        )
    if not 0 <= port <= MAX_PORT:
        raise InvalidJoinCode(f"Port out of range: {port}")
    payload = rid[:REQUEST_ID_BYTES] + port.to_bytes(PORT_BYTES, "big")
    return base58.encode(payload)


def decode(code: str, domain: str = DEFAULT_DOMAIN) -> HostPort:
    """Recover host and port from a join code.

    Raises:
        InvalidCharacter: If the code has a symbol outside the base58 alphabet.
        InvalidJoinCode: If the code is blank or does not hold exactly 8 bytes.
    """
    text = (code or "").strip()
    if not text:
        raise InvalidJoinCode("Join code is empty")
    data = base58.decode(text)
    if len(data) != PAYLOAD_BYTES:
        raise InvalidJoinCode(f"Join code must decode to {PAYLOAD_BYTES} bytes, got {len(data)}")
    host = f"{data[:REQUEST_ID_BYTES].hex()}.{domain}"
    port = int.from_bytes(data[REQUEST_ID_BYTES:], "big")
    return HostPort(host, port)


def try_decode(code: str, domain: str = DEFAULT_DOMAIN) -> HostPort | None:
    """Like ``decode`` but returns None instead of raising on bad input."""
    try:
        return decode(code, domain)
    except CodecError:
        return None
