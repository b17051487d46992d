"""Frame-driven loop tying providers, coordinator and resolver together.

The scene calls `tick()` once per frame (or `run()` drives it). Commands
issued from anywhere go through `submit()` and are launched on the next
tick. Provider polls run as a background task too, at most one at a time,
so a frame never awaits the network itself.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from stelbridge.config import Settings
from stelbridge.coordinator import ModeCoordinator
from stelbridge.models import ActiveLight, Mode, SkyState
from stelbridge.resolver import resolve, unknown_light
from stelbridge.session import RemoteSession

_log = logging.getLogger(__name__)

CommandFactory = Callable[[], Awaitable[Any]]

MAX_OVEREXPOSURE = 8.0
DEFAULT_SOLAR_LONGITUDE = 0.0
DEFAULT_SOLAR_ALTITUDE = 30.0
NO_TIME = "time unknown"


class Bridge:
    """Owns the command channel, the polling cadence and the latest ActiveLight.

    Args:
        coordinator: Selects the active provider.
        session: Refreshed before each live poll; its failures feed the
            coordinator's health check.
        settings: Poll intervals and the site's north angle.
        clock: Monotonic time source used when `tick()` gets no timestamp.
    """

    def __init__(
        self,
        coordinator: ModeCoordinator,
        session: RemoteSession,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or Settings()
        self.coordinator = coordinator
        self._session = session
        self._intervals = {
            Mode.LIVE: settings.light_poll_interval,
            Mode.SNAPSHOT: settings.snapshot_poll_interval,
        }
        self._north_angle = settings.site.north_angle
        self._clock = clock
        self._commands: asyncio.Queue[CommandFactory] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._poll_task: asyncio.Task | None = None
        self._last_poll: dict[Mode, float] = {}
        self.light: ActiveLight = unknown_light()
        self.intensity = 1.0

    def submit(self, factory: CommandFactory) -> None:
        """Queue a command, e.g. ``bridge.submit(lambda: dispatcher.step_time(1))``."""
        self._commands.put_nowait(factory)

    @property
    def pending_commands(self) -> int:
        return self._commands.qsize()

    @property
    def running_commands(self) -> int:
        return len(self._tasks)

    def _drain(self) -> int:
        launched = 0
        while not self._commands.empty():
            factory = self._commands.get_nowait()
            task = asyncio.ensure_future(factory())
            self._tasks.add(task)
            task.add_done_callback(self._finished)
            launched += 1
        return launched

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            _log.warning("Command failed: %r", task.exception())

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def _due(self, mode: Mode, now: float) -> bool:
        last = self._last_poll.get(mode)
        return last is None or now - last >= self._intervals[mode]

    async def _poll(self, mode: Mode) -> None:
        if mode is Mode.LIVE:
            await self._session.refresh()
            self.coordinator.check_health()
        await self.coordinator.provider.refresh()
        self._resolve()

    def _poll_finished(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            _log.warning("Sky state poll failed: %r", task.exception())

    def _resolve(self) -> ActiveLight:
        light = resolve(self.state, self.coordinator.mode, self._north_angle)
        self.light = replace(light, intensity=self.intensity)
        return self.light

    async def tick(self, now: float | None = None) -> ActiveLight:
        """Advance one frame without waiting for the network.

        Launches queued commands, starts a poll of the active provider when
        its interval has elapsed and no poll is running, then resolves the
        light from the provider's current state. A finished poll resolves
        again, so `light` is updated as soon as new data arrives.
        """
        if now is None:
            now = self._clock()
        self._drain()

        mode = self.coordinator.mode
        if not self.polling and self._due(mode, now):
            self._last_poll[mode] = now
            self._poll_task = asyncio.ensure_future(self._poll(mode))
            self._poll_task.add_done_callback(self._poll_finished)

        return self._resolve()

    async def idle(self) -> None:
        """Wait until the running poll and all launched commands are done."""
        pending = list(self._tasks)
        if self._poll_task is not None:
            pending.append(self._poll_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def run(self, stop: asyncio.Event, frame_interval: float = 1.0 / 30.0) -> None:
        """Tick until `stop` is set, then wait for running work."""
        while not stop.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=frame_interval)
            except asyncio.TimeoutError:
                pass
        await self.idle()

    @property
    def state(self) -> SkyState:
        return self.coordinator.provider.current()

    def overexpose(self, factor: float) -> float:
        """Scale the light's intensity to make lunar or Venus shadows easier to see.

        The clamped factor is carried on `light.intensity` from now on.
        """
        self.intensity = min(max(factor, 0.0), MAX_OVEREXPOSURE)
        self.light = replace(self.light, intensity=self.intensity)
        return self.intensity

    def solar_longitude(self) -> float:
        """Ecliptic longitude of the Sun in degrees, for season-dependent scene effects."""
        sun = self.state.sun
        if sun is None or sun.elongation is None:
            _log.warning("Solar longitude requested without sun data")
            return DEFAULT_SOLAR_LONGITUDE
        return sun.elongation

    def solar_altitude(self) -> float:
        sun = self.state.sun
        if sun is None:
            _log.warning("Solar altitude requested without sun data")
            return DEFAULT_SOLAR_ALTITUDE
        return sun.altitude

    def time_string(self) -> str:
        """Local simulation time, preferring the live mirror over the provider's state."""
        local = self._session.local_time
        if local:
            return local
        state_time = self.state.time
        if state_time is not None and state_time.local:
            return state_time.local
        return NO_TIME
