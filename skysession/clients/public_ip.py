"""Public IP discovery through plain-text lookup services."""

import httpx

from skysession.clients.transport import REQUEST_ERRORS
from skysession.errors import PublicIpUnavailable
from skysession.logging_config import get_logger

logger = get_logger(__name__)

IP_LOOKUP_URLS = (
    "https://api.ipify.org",
    "https://checkip.amazonaws.com",
)


async def get_public_ip(
    http: httpx.AsyncClient,
    urls: tuple[str, ...] = IP_LOOKUP_URLS,
) -> str:
    """Return this host's public IP, trying each lookup service in order.

    A non-2xx status, a blank body, or a transport error counts as a miss.

    Raises:
        PublicIpUnavailable: If every service missed.
    """
    for url in urls:
        try:
            resp = await http.get(url)
        except REQUEST_ERRORS as e:
            logger.warning("public_ip_lookup_error", url=url, error=str(e), error_type=type(e).__name__)
            continue

        ip = resp.text.strip() if resp.is_success else ""
        if ip:
            logger.info("public_ip_resolved", url=url, ip=ip)
            return ip

        logger.warning("public_ip_lookup_miss", url=url, status_code=resp.status_code)

    raise PublicIpUnavailable("Could not determine public IP")
