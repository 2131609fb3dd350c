"""Edgegap deployment API client."""

from typing import Any

import httpx
from pydantic import ValidationError

from skysession.clients.transport import REQUEST_ERRORS
from skysession.errors import CreateFailed, DeploymentError, StatusFailed, TransportError
from skysession.logging_config import get_logger
from skysession.schemas import (
    CreateDeploymentRequest,
    CreateDeploymentResponse,
    DeploymentStatus,
)

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.edgegap.com"


class EdgegapClient:
    """Client for the Edgegap deployment API.

    The ``httpx.AsyncClient`` is shared and may be reused by other clients;
    it is only closed here when this instance created it.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_API_URL,
        http: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "EdgegapClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        if not self._api_token:
            return {}
        return {"Authorization": f"token {self._api_token}"}

    async def create_deployment(self, request: CreateDeploymentRequest) -> str:
        """Create a deployment and return its request id.

        Raises:
            CreateFailed: On a non-2xx response or a response without request_id.
            TransportError: If the API could not be reached.
        """
        url = f"{self.base_url}/v2/deployments"
        try:
            resp = await self._http.post(url, json=request.model_dump(), headers=self._headers())
        except REQUEST_ERRORS as e:
            raise TransportError(f"Deployment create request failed: {e}") from e

        if not resp.is_success:
            logger.error(
                "edgegap_create_failed",
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise CreateFailed(resp.status_code, resp.text)

        try:
            result = CreateDeploymentResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise CreateFailed(resp.status_code, resp.text, "Deployment create returned invalid JSON") from e

        request_id = (result.request_id or "").strip()
        if not request_id:
            logger.error("edgegap_create_missing_request_id", response=resp.text[:500])
            raise CreateFailed(resp.status_code, resp.text, "Missing request_id in deploy response")

        logger.info(
            "edgegap_deployment_created",
            request_id=request_id,
            application=request.application,
            version=request.version,
        )
        return request_id

    async def get_status(self, request_id: str) -> DeploymentStatus:
        """Fetch the status of a deployment.

        Raises:
            StatusFailed: On a non-2xx response.
            DeploymentError: If the body is not a status object.
            TransportError: If the API could not be reached.
        """
        url = f"{self.base_url}/v1/status/{request_id}"
        try:
            resp = await self._http.get(url, headers=self._headers())
        except REQUEST_ERRORS as e:
            raise TransportError(f"Deployment status request failed: {e}") from e

        if not resp.is_success:
            logger.error(
                "edgegap_status_failed",
                request_id=request_id,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise StatusFailed(resp.status_code, resp.text)

        try:
            return DeploymentStatus.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise DeploymentError(f"Unreadable status for deployment {request_id}: {e}") from e
