"""Runtime configuration read from the environment (and a local .env file)."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from stelbridge.models import Bortle, Planet

_ROOT = Path(__file__).parent.parent.parent


@dataclass(frozen=True)
class SiteSettings:
    """Observer site pushed to the simulator once a connection is established."""

    location_name: str = "Unity3D"
    country: str = "UnityLand"
    planet: Planet = Planet.EARTH
    latitude: float = 48.2  # Degrees, positive north
    longitude: float = 16.25  # Degrees, positive east
    altitude: float = 280.0  # Metres above mean sea level
    atmosphere_temperature: float = 10.0  # Degrees C, for refraction
    atmosphere_pressure: float = 1013.0  # mbar, for refraction
    extinction_coefficient: float = 0.2  # mag/airmass
    bortle: Bortle = Bortle.TRULY_DARK
    # Azimuth of true north in the scene's grid coordinates (meridian convergence).
    north_angle: float = 0.0


@dataclass(frozen=True)
class Settings:
    host: str = "localhost"
    port: int = 8090
    timeout: float = 5.0  # Seconds, per request
    live: bool = False  # Request live (direct view) mode once connected
    connect: bool = True  # Try to reach a running simulator at all
    skybox_script: str = "skybox.ssc"
    snapshot_base: str = str(_ROOT / "resources" / "skyboxes")
    sky_name: str = "live"
    light_poll_interval: float = 0.25  # Seconds between object-info polls (live)
    snapshot_poll_interval: float = 1.0  # Seconds between snapshot file checks
    failure_threshold: int = 3  # Consecutive sync failures before falling back
    site: SiteSettings = field(default_factory=SiteSettings)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}/api"


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def _load_site(env: Mapping[str, str]) -> SiteSettings:
    defaults = SiteSettings()
    planet_raw = env.get("STEL_PLANET") or defaults.planet.value
    try:
        planet = Planet(planet_raw.capitalize())
    except ValueError:
        raise ValueError(f"STEL_PLANET: unknown planet {planet_raw!r}") from None
    bortle_raw = _get_int(env, "STEL_BORTLE", defaults.bortle.value)
    try:
        bortle = Bortle(bortle_raw)
    except ValueError:
        raise ValueError(f"STEL_BORTLE must be 1..9, got {bortle_raw}") from None

    return SiteSettings(
        location_name=env.get("STEL_LOCATION_NAME", defaults.location_name),
        country=env.get("STEL_COUNTRY", defaults.country),
        planet=planet,
        latitude=_get_float(env, "STEL_LATITUDE", defaults.latitude),
        longitude=_get_float(env, "STEL_LONGITUDE", defaults.longitude),
        altitude=_get_float(env, "STEL_ALTITUDE", defaults.altitude),
        atmosphere_temperature=_get_float(
            env, "STEL_ATMOSPHERE_TEMPERATURE", defaults.atmosphere_temperature
        ),
        atmosphere_pressure=_get_float(
            env, "STEL_ATMOSPHERE_PRESSURE", defaults.atmosphere_pressure
        ),
        extinction_coefficient=_get_float(
            env, "STEL_EXTINCTION", defaults.extinction_coefficient
        ),
        bortle=bortle,
        north_angle=_get_float(env, "STEL_NORTH_ANGLE", defaults.north_angle),
    )


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from `STEL_*` variables.

    Args:
        env: Variables to read. When None, a `.env` file is loaded into the
            process environment first and `os.environ` is used.

    Returns:
        Settings with defaults for every unset variable.

    Raises:
        ValueError: When a variable is set to a value of the wrong type.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    defaults = Settings()
    return Settings(
        host=env.get("STEL_HOST", defaults.host),
        port=_get_int(env, "STEL_PORT", defaults.port),
        timeout=_get_float(env, "STEL_TIMEOUT", defaults.timeout),
        live=_get_bool(env, "STEL_LIVE", defaults.live),
        connect=_get_bool(env, "STEL_CONNECT", defaults.connect),
        skybox_script=env.get("STEL_SKYBOX_SCRIPT", defaults.skybox_script),
        snapshot_base=env.get("STEL_SNAPSHOT_BASE", defaults.snapshot_base),
        sky_name=env.get("STEL_SKY_NAME", defaults.sky_name),
        light_poll_interval=_get_float(
            env, "STEL_LIGHT_POLL_INTERVAL", defaults.light_poll_interval
        ),
        snapshot_poll_interval=_get_float(
            env, "STEL_SNAPSHOT_POLL_INTERVAL", defaults.snapshot_poll_interval
        ),
        failure_threshold=_get_int(
            env, "STEL_FAILURE_THRESHOLD", defaults.failure_threshold
        ),
        site=_load_site(env),
    )
