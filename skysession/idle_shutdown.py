"""Tear a deployment down once it has had no remote players for a while.

The transport layer pushes ``ConnectionEvent``s into ``IdleShutdownMonitor.events``;
``run()`` drains them and checks occupancy on every tick. Teardown happens at
most once per process, whatever its outcome: deleting a possibly already
deleted deployment again is not safe.
"""

import asyncio
from collections.abc import Callable
from enum import Enum

from skysession.clients.teardown import AuthenticatedDeleteClient
from skysession.clock import Clock, LoopClock
from skysession.config import IdleSettings, TeardownSettings, get_idle_settings
from skysession.errors import SkySessionError
from skysession.logging_config import get_logger, token_preview
from skysession.schemas import ConnectionEvent, ConnectionState, DeleteOutcome

logger = get_logger(__name__)


class IdlePhase(str, Enum):
    IDLE = "idle"
    COUNTDOWN_STARTED = "countdown_started"
    SHUTDOWN_REQUESTED = "shutdown_requested"
    SHUTDOWN_ATTEMPTED = "shutdown_attempted"


_TRANSITIONS: dict[IdlePhase, frozenset[IdlePhase]] = {
    IdlePhase.IDLE: frozenset({IdlePhase.COUNTDOWN_STARTED}),
    IdlePhase.COUNTDOWN_STARTED: frozenset({IdlePhase.IDLE, IdlePhase.SHUTDOWN_REQUESTED}),
    IdlePhase.SHUTDOWN_REQUESTED: frozenset({IdlePhase.SHUTDOWN_ATTEMPTED}),
    IdlePhase.SHUTDOWN_ATTEMPTED: frozenset(),
}


class IdleShutdownMonitor:
    """Counts remote connections and fires a one-shot teardown when idle.

    Args:
        delete_client: Client used for the teardown DELETE.
        idle_seconds: How long the server must stay empty before teardown.
        clock: Time source; defaults to the event loop clock.
        teardown_settings: Factory read at teardown time, not at construction.
        count_local_connections: Count host-side loopback connections too.
        tick_interval: Delay between idle checks in ``run()``.
    """

    def __init__(
        self,
        delete_client: AuthenticatedDeleteClient,
        idle_seconds: float = 30.0,
        clock: Clock | None = None,
        teardown_settings: Callable[[], TeardownSettings] = TeardownSettings,
        count_local_connections: bool = False,
        tick_interval: float = 0.5,
    ):
        self._delete_client = delete_client
        self.idle_seconds = idle_seconds
        self._clock = clock or LoopClock()
        self._teardown_settings = teardown_settings
        self.count_local_connections = count_local_connections
        self.tick_interval = tick_interval

        self.events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self.active_clients = 0
        self.ever_had_client = False
        self.empty_since: float | None = None
        self.phase = IdlePhase.IDLE
        self._teardown_task: asyncio.Task[DeleteOutcome | None] | None = None

    @classmethod
    def from_settings(
        cls,
        delete_client: AuthenticatedDeleteClient,
        settings: IdleSettings | None = None,
        clock: Clock | None = None,
    ) -> "IdleShutdownMonitor":
        settings = settings or get_idle_settings()
        return cls(
            delete_client,
            idle_seconds=settings.window_seconds,
            clock=clock,
            count_local_connections=settings.count_local_connections,
            tick_interval=settings.tick_interval_seconds,
        )

    @property
    def stop_requested(self) -> bool:
        return self.phase in (IdlePhase.SHUTDOWN_REQUESTED, IdlePhase.SHUTDOWN_ATTEMPTED)

    @property
    def stop_attempted(self) -> bool:
        return self.phase is IdlePhase.SHUTDOWN_ATTEMPTED

    def _transition(self, target: IdlePhase) -> None:
        if target not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal idle transition {self.phase.value} -> {target.value}")
        logger.debug("idle_phase_changed", source=self.phase.value, target=target.value)
        self.phase = target

    def log_environment(self) -> None:
        """Log whether teardown configuration is present (token is previewed only)."""
        settings = self._teardown_settings()
        logger.info(
            "idle_shutdown_env_check",
            delete_url="present" if settings.delete_url.strip() else "missing",
            delete_token=token_preview(settings.delete_token),
        )

    def handle_event(self, event: ConnectionEvent) -> None:
        if event.is_local and not self.count_local_connections:
            return

        if event.state is ConnectionState.STARTED:
            self.active_clients += 1
            self.ever_had_client = True
        elif event.state is ConnectionState.STOPPED:
            self.active_clients = max(0, self.active_clients - 1)

        logger.debug(
            "idle_connection_event",
            state=event.state.value,
            client_id=event.client_id,
            active_clients=self.active_clients,
        )

    def tick(self) -> asyncio.Task[DeleteOutcome | None] | None:
        """Run one idle check.

        Returns:
            The teardown task when this tick started it, else None.
        """
        if self.stop_requested or not self.ever_had_client:
            return None

        now = self._clock.now()
        if self.active_clients > 0:
            if self.phase is IdlePhase.COUNTDOWN_STARTED:
                logger.info("idle_countdown_reset", active_clients=self.active_clients)
                self._transition(IdlePhase.IDLE)
            self.empty_since = None
            return None

        if self.empty_since is None:
            self.empty_since = now
            self._transition(IdlePhase.COUNTDOWN_STARTED)
            logger.info("idle_countdown_started", idle_seconds=self.idle_seconds)
            return None

        if now - self.empty_since < self.idle_seconds:
            return None

        # latched before the task starts so an overlapping tick cannot fire again
        self._transition(IdlePhase.SHUTDOWN_REQUESTED)
        logger.info("idle_shutdown_requested", empty_for_seconds=round(now - self.empty_since, 3))
        self._teardown_task = asyncio.create_task(self._stop_deployment())
        return self._teardown_task

    async def _stop_deployment(self) -> DeleteOutcome | None:
        settings = self._teardown_settings()
        try:
            return await self._delete_client.delete(settings.delete_url, settings.delete_token)
        except SkySessionError as e:
            logger.warning(
                "idle_shutdown_teardown_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        finally:
            self._transition(IdlePhase.SHUTDOWN_ATTEMPTED)

    def _drain_events(self) -> None:
        while True:
            try:
                event = self.events.get_nowait()
            except asyncio.QueueEmpty:
                return
            self.handle_event(event)

    async def run(self, stop: asyncio.Event | None = None) -> DeleteOutcome | None:
        """Consume connection events and tick until teardown was attempted or ``stop`` is set."""
        logger.info(
            "idle_shutdown_monitor_started",
            idle_seconds=self.idle_seconds,
            tick_interval=self.tick_interval,
        )
        self.log_environment()

        while not self.stop_attempted and not (stop is not None and stop.is_set()):
            self._drain_events()
            self.tick()
            if self._teardown_task is not None:
                return await self._teardown_task
            await self._clock.sleep(self.tick_interval)

        logger.info("idle_shutdown_monitor_stopped", phase=self.phase.value)
        return None
