"""Create an on-demand game server deployment and wait until it is routable."""

import asyncio
from collections.abc import Callable, Mapping
from enum import Enum

import httpx
import structlog

from skysession.clients.edgegap import EdgegapClient
from skysession.clients.public_ip import get_public_ip
from skysession.clock import Clock, LoopClock
from skysession.codec import join_code
from skysession.config import DeployerSettings
from skysession.errors import (
    DeploymentCancelled,
    DeploymentError,
    InvalidConfiguration,
    NoExternalPort,
    NoPlacementStrategy,
    PollTimeout,
)
from skysession.logging_config import get_logger
from skysession.schemas import (
    CreateDeploymentRequest,
    DeploymentUser,
    DeploymentUserData,
    DeployResult,
    PortMapping,
)

logger = get_logger(__name__)


class DeploymentState(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    POLLING = "polling"
    READY = "ready"
    ERROR = "error"
    TIMED_OUT = "timed_out"


def select_external_port(
    ports: Mapping[str, PortMapping],
    preferred_name: str | None = None,
) -> int:
    """Pick the port players should connect to.

    Priority: the preferred name, then the first UDP mapping, then the first
    mapping of any kind. Only mappings with an external port qualify.

    Raises:
        NoExternalPort: If no mapping carries an external port.
    """
    if preferred_name:
        preferred = ports.get(preferred_name)
        if preferred is not None and preferred.external is not None:
            return preferred.external

    for mapping in ports.values():
        if mapping.external is not None and "UDP" in (mapping.protocol or "").upper():
            return mapping.external

    for mapping in ports.values():
        if mapping.external is not None:
            return mapping.external

    raise NoExternalPort(f"No external port found among {sorted(ports)}")


class DeploymentOrchestrator:
    """Runs one deployment from creation to a routable address.

    Transitions: idle -> creating -> polling -> ready | error | timed_out.
    Nothing is retried: a failed create is never resubmitted, since that
    could start a second paid deployment.
    """

    def __init__(
        self,
        settings: DeployerSettings,
        http: httpx.AsyncClient,
        clock: Clock | None = None,
        api: EdgegapClient | None = None,
        on_state_change: Callable[["DeploymentState"], None] | None = None,
    ):
        self.settings = settings
        self._http = http
        self._clock = clock or LoopClock()
        self._api = api or EdgegapClient(settings.api_token, settings.api_url, http=http)
        self._on_state_change = on_state_change
        self.state = DeploymentState.IDLE

    def _set_state(self, state: DeploymentState) -> None:
        self.state = state
        logger.debug("deployment_state_changed", state=state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _validate_settings(self) -> None:
        if not self.settings.app_name.strip():
            raise InvalidConfiguration("Edgegap app name is empty")
        if not self.settings.version_name.strip():
            raise InvalidConfiguration("Edgegap version name is empty")
        if not self.settings.use_public_ip_placement:
            raise NoPlacementStrategy("No placement strategy configured")

    async def _placement_users(self) -> list[DeploymentUser]:
        ip = await get_public_ip(self._http)
        return [DeploymentUser(user_type="ip_address", user_data=DeploymentUserData(ip_address=ip))]

    async def create_and_wait(self, cancel: asyncio.Event | None = None) -> DeployResult:
        """Create a deployment and poll until it is ready.

        Args:
            cancel: Optional event; setting it aborts polling with DeploymentCancelled.

        Raises:
            InvalidConfiguration / NoPlacementStrategy: Before any network call.
            TransportError: Create, status or IP lookup failed.
            DeploymentError: The platform reported an error state.
            NoExternalPort: Ready, but no usable port mapping.
            PollTimeout: Not ready within ``max_poll_seconds``.
        """
        self._validate_settings()

        self._set_state(DeploymentState.CREATING)
        try:
            users = await self._placement_users()
            request = CreateDeploymentRequest(
                application=self.settings.app_name.strip(),
                version=self.settings.version_name.strip(),
                users=users,
            )
            request_id = await self._api.create_deployment(request)
        except Exception:
            self._set_state(DeploymentState.ERROR)
            raise

        # status and port-selection logs for this deployment carry its request id
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            return await self._poll_until_ready(request_id, cancel)

    async def _sleep(self, seconds: float, cancel: asyncio.Event | None) -> None:
        """Sleep on the clock, returning early once ``cancel`` is set."""
        if cancel is None:
            await self._clock.sleep(seconds)
            return

        sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()

    async def _poll_until_ready(self, request_id: str, cancel: asyncio.Event | None) -> DeployResult:
        self._set_state(DeploymentState.POLLING)
        interval = self.settings.poll_interval_seconds
        budget = self.settings.max_poll_seconds
        deadline = self._clock.now() + budget
        polls = 0

        try:
            while True:
                remaining = deadline - self._clock.now()
                if remaining <= 0:
                    logger.warning(
                        "deployment_poll_timeout",
                        request_id=request_id,
                        budget_seconds=budget,
                        polls=polls,
                    )
                    self._set_state(DeploymentState.TIMED_OUT)
                    raise PollTimeout(
                        f"Deployment {request_id} did not become ready within {budget}s"
                    )

                await self._sleep(min(interval, remaining), cancel)
                if cancel is not None and cancel.is_set():
                    raise DeploymentCancelled(f"Deployment {request_id} wait was cancelled")

                status = await self._api.get_status(request_id)
                polls += 1
                logger.debug(
                    "deployment_poll",
                    request_id=request_id,
                    poll=polls,
                    running=status.running,
                    error=status.error,
                )

                if status.is_ready:
                    port = select_external_port(status.ports or {}, self.settings.preferred_port_name)
                    result = DeployResult(
                        request_id=request_id,
                        fqdn=(status.fqdn or "").strip(),
                        external_port=port,
                        join_code=join_code.encode(request_id, port),
                    )
                    self._set_state(DeploymentState.READY)
                    logger.info(
                        "deployment_ready",
                        request_id=request_id,
                        fqdn=result.fqdn,
                        external_port=port,
                        join_code=result.join_code,
                        polls=polls,
                    )
                    return result

                if status.is_error:
                    raise DeploymentError(f"Deployment {request_id} entered error state")
        except Exception:
            if self.state not in (DeploymentState.READY, DeploymentState.TIMED_OUT):
                self._set_state(DeploymentState.ERROR)
            raise
