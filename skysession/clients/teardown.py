"""Authenticated DELETE against a deployment teardown endpoint."""

import httpx

from skysession.clients.transport import REQUEST_ERRORS
from skysession.errors import MissingCredentials, TransportError
from skysession.logging_config import get_logger
from skysession.schemas import AuthScheme, DeleteOutcome

logger = get_logger(__name__)

# Tried in this order. Only a 401 advances to the next scheme.
AUTH_SCHEMES: tuple[AuthScheme, ...] = (AuthScheme.RAW, AuthScheme.BEARER, AuthScheme.TOKEN)


def auth_headers(scheme: AuthScheme, token: str) -> dict[str, str]:
    if scheme is AuthScheme.RAW:
        return {"authorization": token}
    if scheme is AuthScheme.BEARER:
        return {"Authorization": f"Bearer {token}"}
    return {"Authorization": f"token {token}"}


class AuthenticatedDeleteClient:
    """Issues a DELETE, probing auth header formats until one is accepted.

    The accepted format is not known in advance. A 401 means nothing was
    deleted, so the next scheme is tried; any other status is final.
    """

    def __init__(self, http: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def delete(self, url: str, token: str) -> DeleteOutcome:
        """Delete ``url`` authenticated with ``token``.

        Returns:
            Outcome of the last attempt; ``ok`` is True on a 2xx response.

        Raises:
            MissingCredentials: If url or token is blank.
            TransportError: If the request itself failed. No further schemes are tried.
        """
        if not (url or "").strip() or not (token or "").strip():
            raise MissingCredentials("Teardown URL or token is not configured")

        for attempt, scheme in enumerate(AUTH_SCHEMES, start=1):
            try:
                resp = await self._http.delete(url, headers=auth_headers(scheme, token))
            except REQUEST_ERRORS as e:
                logger.warning(
                    "teardown_request_error",
                    scheme=scheme.value,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise TransportError(f"Teardown request failed: {e}") from e

            if resp.status_code != httpx.codes.UNAUTHORIZED:
                break
            logger.warning("teardown_unauthorized", scheme=scheme.value, attempt=attempt)

        outcome = DeleteOutcome(
            ok=resp.is_success,
            status_code=resp.status_code,
            attempts=attempt,
            scheme=scheme,
            body=resp.text,
        )
        if outcome.ok:
            logger.info(
                "teardown_succeeded",
                status_code=outcome.status_code,
                scheme=outcome.scheme.value,
                attempts=outcome.attempts,
            )
        else:
            logger.warning(
                "teardown_failed",
                status_code=outcome.status_code,
                scheme=outcome.scheme.value,
                attempts=outcome.attempts,
                body=outcome.body[:300],
            )
        return outcome
