"""Error taxonomy for the session lifecycle.

Messages are meant for people: each class name tells the caller which
corrective action applies (fix the input, check credentials, check capacity).
"""


class SkySessionError(Exception):
    """Base class for every session lifecycle failure."""


# === Configuration: local, no network attempted ===


class ConfigurationError(SkySessionError):
    """Required configuration is missing or blank."""


class InvalidConfiguration(ConfigurationError):
    pass


class NoPlacementStrategy(ConfigurationError):
    pass


class MissingCredentials(ConfigurationError):
    pass


# === Codec: malformed user input ===


class CodecError(SkySessionError, ValueError):
    """Input could not be encoded or decoded."""


class InvalidCharacter(CodecError):
    def __init__(self, char: str, position: int):
        super().__init__(f"Invalid base58 character {char!r} at position {position}")
        self.char = char
        self.position = position


class InvalidRequestId(CodecError):
    pass


class InvalidJoinCode(CodecError):
    pass


# === Transport: network failure or rejected request ===


class TransportError(SkySessionError):
    """The platform could not be reached or rejected the request."""


class CreateFailed(TransportError):
    def __init__(self, status_code: int, body: str, reason: str = "Deployment create failed"):
        super().__init__(f"{reason} ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class StatusFailed(TransportError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"Deployment status failed ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class PublicIpUnavailable(TransportError):
    pass


# === Protocol: platform reported a failure ===


class ProtocolError(SkySessionError):
    """The platform answered but reported an error or omitted a required field."""


class DeploymentError(ProtocolError):
    pass


class NoExternalPort(ProtocolError):
    pass


class PollTimeout(SkySessionError, TimeoutError):
    """Deployment never became ready within the polling budget."""


class DeploymentCancelled(SkySessionError):
    pass
