"""Base58 encoding for arbitrary big-endian byte strings.

Leading zero bytes map one-to-one onto leading ``'1'`` characters, so the
byte length survives a round trip.
"""

from skysession.errors import InvalidCharacter

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE = len(ALPHABET)

_INDEX = {char: i for i, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """Encode bytes as a base58 string."""
    zeros = len(data) - len(data.lstrip(b"\0"))
    value = int.from_bytes(data, "big")

    digits = []
    while value:
        value, remainder = divmod(value, BASE)
        digits.append(ALPHABET[remainder])

    return ALPHABET[0] * zeros + "".join(reversed(digits))


def decode(text: str) -> bytes:
    """Decode a base58 string into bytes.

    Raises:
        InvalidCharacter: If ``text`` contains a symbol outside the alphabet.
    """
    value = 0
    for position, char in enumerate(text):
        digit = _INDEX.get(char)
        if digit is None:
            raise InvalidCharacter(char, position)
        value = value * BASE + digit

    zeros = len(text) - len(text.lstrip(ALPHABET[0]))
    body = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return b"\0" * zeros + body
