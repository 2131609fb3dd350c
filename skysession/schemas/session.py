"""Value objects handed between the session lifecycle and its callers."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DeployResult(BaseModel):
    """Outcome of a successful create-and-wait. Immutable."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(..., description="Deployment request identifier")
    fqdn: str = Field(..., description="Routable host name reported by the platform")
    external_port: int = Field(..., ge=0, le=65535, description="Selected external port")
    join_code: str = Field(..., description="Shareable base58 join code")


class AuthScheme(str, Enum):
    RAW = "raw"
    BEARER = "bearer"
    TOKEN = "token"


class DeleteOutcome(BaseModel):
    """Result of an authenticated delete."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    status_code: int
    attempts: int = Field(..., ge=1, le=3)
    scheme: AuthScheme = Field(..., description="Scheme of the last attempt")
    body: str = ""


class ConnectionState(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"


class ConnectionEvent(BaseModel):
    """Remote connection state change pushed by the transport layer."""

    model_config = ConfigDict(frozen=True)

    state: ConnectionState
    client_id: int | str | None = None
    is_local: bool = Field(default=False, description="Host-side loopback connection")
