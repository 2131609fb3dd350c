"""Pydantic schemas for the Edgegap deployment API.

These document the subset of the API the session lifecycle relies on.
Unknown fields are kept so diagnostics can log the full response.

API Documentation: https://docs.edgegap.com/api
"""

from pydantic import BaseModel, ConfigDict, Field


class DeploymentUserData(BaseModel):
    ip_address: str = Field(..., description="Public IP of the player or host")


class DeploymentUser(BaseModel):
    """Placement hint: the platform places the server near these users."""

    user_type: str = Field(default="ip_address", description="Kind of user data")
    user_data: DeploymentUserData


class CreateDeploymentRequest(BaseModel):
    """Body of POST /v2/deployments."""

    application: str = Field(..., min_length=1, description="Application name")
    version: str = Field(..., min_length=1, description="Application version name")
    users: list[DeploymentUser] = Field(default_factory=list)


class CreateDeploymentResponse(BaseModel):
    """Response of POST /v2/deployments."""

    model_config = ConfigDict(extra="allow")

    request_id: str | None = Field(None, description="Deployment request identifier")


class PortMapping(BaseModel):
    """One entry of the ``ports`` object in a status response."""

    model_config = ConfigDict(extra="allow")

    internal: int | None = Field(None, description="Container port")
    external: int | None = Field(None, description="Publicly reachable port")
    protocol: str | None = Field(None, description="Transport protocol, e.g. 'UDP'")


class DeploymentStatus(BaseModel):
    """Response of GET /v1/status/{request_id}."""

    model_config = ConfigDict(extra="allow")

    running: bool | None = Field(None, description="Deployment is routable")
    error: bool | None = Field(None, description="Deployment entered an error state")
    fqdn: str | None = Field(None, description="Routable host name")
    ports: dict[str, PortMapping] | None = Field(None, description="Port mappings by name")

    @property
    def is_ready(self) -> bool:
        """Running, with a host name and at least one port mapping."""
        return bool(self.running) and bool(self.ports) and bool((self.fqdn or "").strip())

    @property
    def is_error(self) -> bool:
        return bool(self.error)
