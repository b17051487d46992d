"""Command dispatcher: fire-and-forget commands to the remote simulator.

Every command is a single request/response exchange. Nothing is retried:
a failed command is logged and the caller simply issues it again on the
next user input or poll. Commands are silent no-ops while the session has
no valid mirror (remote unreachable or resyncing).
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from stelbridge.client import StelClient
from stelbridge.config import SiteSettings
from stelbridge.errors import HttpStatusError, UnreachableError
from stelbridge.models import Planet
from stelbridge.session import RemoteSession
from stelbridge.timescale import julian_day

_log = logging.getLogger(__name__)

OBJECT_INFO = "object_info"
VIEW = "view"

SCRIPT_PATH = "/scripts/run"
TIME_PATH = "/main/time"
FOV_PATH = "/main/fov"
VIEW_PATH = "/main/view"
LOCATION_PATH = "/location/setlocationfields"
ACTION_PATH = "/stelaction/do"
PROPERTY_PATH = "/stelproperty/set"
OBJECT_INFO_PATH = "/objects/info"


class InFlightGuard:
    """Single-slot limiter: at most one outstanding request per command family.

    A call that finds the guard held is dropped, never queued, so polling at
    frame rate cannot pile up requests against a slow remote.
    """

    def __init__(self, family: str):
        self.family = family
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


def _is_ok(body: str) -> bool:
    return body == "ok"


def _starts_ok(body: str) -> bool:
    return body.startswith("ok")


def _action_ok(body: str) -> bool:
    return body in ("true", "false", "ok")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class CommandDispatcher:
    """Sends commands on behalf of the scene and refreshes the session on success.

    Args:
        client: Transport to the remote process.
        session: Session whose reachability gates every command and which is
            asked for a delta refresh after a successful command.
        skybox_script: Script run by `update_skybox`.
        http_error_pause: Seconds a command is held back after an HTTP error.
        object_info_error_pause: Same, for object-info queries.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        client: StelClient,
        session: RemoteSession,
        skybox_script: str = "skybox.ssc",
        http_error_pause: float = 0.25,
        object_info_error_pause: float = 2.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._session = session
        self._skybox_script = skybox_script
        self._http_error_pause = http_error_pause
        self._object_info_error_pause = object_info_error_pause
        self._clock = clock
        self._guards = {OBJECT_INFO: InFlightGuard(OBJECT_INFO), VIEW: InFlightGuard(VIEW)}
        self._cooldown_until: dict[str, float] = {}
        # Follows the coordinator's mode: view/FoV commands only make sense
        # while the remote renders the scene background directly.
        self.direct_view = False

    def guard(self, family: str) -> InFlightGuard:
        return self._guards[family]

    def _cooling_down(self, key: str) -> bool:
        return self._clock() < self._cooldown_until.get(key, 0.0)

    def _pause(self, key: str, seconds: float) -> None:
        self._cooldown_until[key] = self._clock() + seconds

    async def _send(
        self,
        what: str,
        path: str,
        data: dict[str, str],
        accept: Callable[[str], bool] = _is_ok,
        refresh: bool = True,
        guard: InFlightGuard | None = None,
    ) -> bool:
        if not self._session.reachable:
            _log.debug("%s skipped: remote not reachable", what)
            return False
        if self._cooling_down(path):
            _log.debug("%s skipped: backing off after HTTP error", what)
            return False
        if guard is not None and not guard.try_acquire():
            _log.debug("%s dropped: previous %s request still running", what, guard.family)
            return False

        try:
            body = await self._client.post(path, data)
        except HttpStatusError as e:
            _log.warning("%s: problem with answer (%s); waiting before next attempt", what, e)
            self._pause(path, self._http_error_pause)
            return False
        except UnreachableError as e:
            _log.warning("%s failed: %s", what, e)
            return False
        finally:
            if guard is not None:
                guard.release()

        if not accept(body):
            _log.warning("%s: remote refused: %r", what, body)
            return False
        if refresh:
            await self._session.refresh()
        return True

    async def set_location_id(self, location_id: str, refresh: bool = True) -> bool:
        """Set the observer location by a named location id (e.g. "Vienna, Austria")."""
        return await self._send(
            f"set_location_id({location_id})",
            LOCATION_PATH,
            {"id": location_id},
            refresh=refresh,
        )

    async def set_location(
        self,
        latitude: float,
        longitude: float,
        altitude: float,
        name: str,
        country: str,
        planet: Planet = Planet.EARTH,
        refresh: bool = True,
    ) -> bool:
        """Set the observer location by coordinates.

        Args:
            latitude: Degrees, positive north.
            longitude: Degrees, positive east.
            altitude: Metres above mean sea level.
            name: Location name shown by the simulator.
            country: Country name shown by the simulator.
            planet: Body the observer stands on.
            refresh: Request a delta refresh on success.
        """
        data = {
            "latitude": _format_value(latitude),
            "longitude": _format_value(longitude),
            "altitude": _format_value(altitude),
            "name": name,
            "country": country,
            "planet": planet.value,
        }
        return await self._send(
            f"set_location({name})", LOCATION_PATH, data, accept=_starts_ok, refresh=refresh
        )

    async def set_time(self, jday: float, timerate: float = 0.0, refresh: bool = True) -> bool:
        """Jump to a Julian day. The default time rate 0 freezes the clock there."""
        data = {"time": _format_value(jday), "timerate": _format_value(timerate)}
        return await self._send(f"set_time({jday})", TIME_PATH, data, refresh=refresh)

    async def set_datetime(self, dt: datetime, timerate: float = 0.0, refresh: bool = True) -> bool:
        """`set_time` for a datetime (naive datetimes are taken as UTC)."""
        return await self.set_time(julian_day(dt), timerate, refresh=refresh)

    async def step_time(self, hours: float, refresh: bool = True) -> bool:
        """Move the simulation clock by `hours` relative to the mirrored time and stop it."""
        jday = self._session.jday
        if jday is None:
            if self._session.reachable:
                _log.warning("step_time(%s): cannot read JD from remote state", hours)
            return False
        return await self.set_time(jday + hours / 24.0, 0.0, refresh=refresh)

    async def set_timerate(self, timerate: float, refresh: bool = True) -> bool:
        """Set the clock speed in Julian days per real second (1/86400 is real time)."""
        return await self._send(
            f"set_timerate({timerate})",
            TIME_PATH,
            {"timerate": _format_value(timerate)},
            refresh=refresh,
        )

    async def set_property(self, name: str, value: Any, refresh: bool = True) -> bool:
        return await self._send(
            f"set_property({name})",
            PROPERTY_PATH,
            {"id": name, "value": _format_value(value)},
            refresh=refresh,
        )

    async def toggle_property(self, name: str, refresh: bool = True) -> bool:
        """Flip a boolean property using its cached value. Unknown values become True."""
        current = self._session.property_flag(name)
        return await self.set_property(name, not current, refresh=refresh)

    async def do_action(self, name: str, refresh: bool = True) -> bool:
        """Trigger a named action, e.g. ``actionShow_Atmosphere``."""
        return await self._send(
            f"do_action({name})", ACTION_PATH, {"id": name}, accept=_action_ok, refresh=refresh
        )

    async def run_script(self, name: str, refresh: bool = True) -> bool:
        return await self._send(f"run_script({name})", SCRIPT_PATH, {"id": name}, refresh=refresh)

    async def update_skybox(self, refresh: bool = True) -> bool:
        """Ask the simulator to re-render the skybox tiles and snapshot data file."""
        return await self.run_script(self._skybox_script, refresh=refresh)

    async def set_view_direction(self, az: float, alt: float) -> bool:
        """Point the remote view. Radians. Dropped while a previous call is in flight."""
        if not self.direct_view:
            return False
        return await self._send(
            "set_view_direction",
            VIEW_PATH,
            {"az": _format_value(az), "alt": _format_value(alt)},
            refresh=False,
            guard=self._guards[VIEW],
        )

    async def set_fov(self, fov: float) -> bool:
        """Set the remote field of view in degrees (direct view only)."""
        if not self.direct_view:
            return False
        return await self._send(
            f"set_fov({fov})", FOV_PATH, {"fov": _format_value(fov)}, refresh=False
        )

    async def query_object_info(self, name: str) -> dict[str, Any] | None:
        """Fetch the info map of a sky object ("Sun", "Moon", "Venus", ...).

        Returns:
            The decoded map, or None when skipped, dropped by the in-flight
            guard, or failed.
        """
        what = f"query_object_info({name})"
        if not self._session.reachable:
            _log.debug("%s skipped: remote not reachable", what)
            return None
        if self._cooling_down(OBJECT_INFO_PATH):
            _log.debug("%s skipped: backing off after HTTP error", what)
            return None
        guard = self._guards[OBJECT_INFO]
        if not guard.try_acquire():
            _log.debug("%s dropped: a query is already running", what)
            return None

        try:
            resp = await self._client.get(
                OBJECT_INFO_PATH, params={"name": name, "format": "map"}
            )
        except HttpStatusError as e:
            _log.warning("%s: problem with answer (%s); waiting before retrying", what, e)
            self._pause(OBJECT_INFO_PATH, self._object_info_error_pause)
            return None
        except UnreachableError as e:
            _log.warning("%s failed: %s", what, e)
            return None
        finally:
            guard.release()

        try:
            info = resp.json()
        except ValueError:
            info = None
        if not isinstance(info, dict):
            _log.warning("%s: answer is not a JSON object", what)
            return None
        return info

    async def configure_site(self, site: SiteSettings) -> bool:
        """Push projection, location and atmosphere once after connecting.

        Only the last command requests a refresh, so the burst causes one
        delta fetch rather than one per setting.
        """
        results = [
            await self.set_property(
                "StelCore.currentProjectionTypeKey", "ProjectionPerspective", refresh=False
            ),
            await self.set_property(
                "StelMovementMgr.viewportVerticalOffsetTarget", 0.0, refresh=False
            ),
            await self.set_location(
                site.latitude,
                site.longitude,
                site.altitude,
                site.location_name,
                site.country,
                site.planet,
                refresh=False,
            ),
            await self.set_property(
                "StelSkyDrawer.extinctionCoefficient", site.extinction_coefficient, refresh=False
            ),
            await self.set_property(
                "StelSkyDrawer.atmosphereTemperature", site.atmosphere_temperature, refresh=False
            ),
            await self.set_property(
                "StelSkyDrawer.atmospherePressure", site.atmosphere_pressure, refresh=False
            ),
            await self.set_property("StelSkyDrawer.bortleScaleIndex", site.bortle.value),
        ]
        return all(results)
