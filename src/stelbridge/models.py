"""Data model definitions: explicit boundaries between sync, resolve, and render layers."""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from stelbridge.timescale import datetime_from_julian_day


class LightSource(str, Enum):
    """Celestial body acting as the scene's directional light."""

    SUN = "Sun"
    MOON = "Moon"
    VENUS = "Venus"
    NONE = "None"


class ShadowHardness(str, Enum):
    SOFT = "Soft"
    HARD = "Hard"
    NONE = "None"


class Mode(str, Enum):
    """Operating mode of the bridge."""

    SNAPSHOT = "snapshot"  # pre-baked skybox + data file, no outbound commands
    LIVE = "live"  # remote simulator drives a direct view


class Background(str, Enum):
    """The two mutually exclusive render-background paths."""

    SKYBOX = "skybox"
    DIRECT_VIEW = "direct_view"


class Planet(str, Enum):
    """Values accepted by the remote location `planet` field."""

    SUN = "Sun"
    MERCURY = "Mercury"
    VENUS = "Venus"
    EARTH = "Earth"
    MOON = "Moon"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"
    IO = "Io"
    EUROPA = "Europa"
    GANYMEDE = "Ganymede"
    CALLISTO = "Callisto"


class Bortle(int, Enum):
    """Bortle dark-sky scale (1 = excellent natural sky, 9 = inner city)."""

    EXCELLENT = 1
    TRULY_DARK = 2
    RURAL = 3
    RURAL_SUBURBAN_TRANSITION = 4
    SUBURBAN = 5
    BRIGHT_SUBURBAN = 6
    SUBURBAN_URBAN_TRANSITION = 7
    CITY = 8
    INNER_CITY = 9


@dataclass(frozen=True)
class BodyInfo:
    """Position and brightness of one candidate light source."""

    name: str  # "Sun", "Moon" or "Venus"
    altitude: float  # Degrees above horizon (signed)
    azimuth: float  # Degrees, 0=N, 90=E
    vmag: float  # Apparent magnitude
    vmag_extincted: float  # Apparent magnitude after atmospheric extinction
    diameter: float  # Angular diameter (degrees); 0 for point sources
    ambient_int: float  # Landscape/ambient brightness reported with this body
    illumination: float | None = None  # Moon only, fraction [0, 1]
    elongation: float | None = None  # Sun only, ecliptic longitude (degrees)

    @property
    def extinction_delta(self) -> float:
        """Magnitudes lost to the atmosphere; grows towards the horizon."""
        return self.vmag_extincted - self.vmag


@dataclass(frozen=True)
class SkyTime:
    """Simulation clock as reported by the remote `time` section or a snapshot."""

    jday: float  # Julian day (UT)
    utc: str  # ISO 8601 string in UTC
    local: str  # ISO 8601 string in the simulator's local zone
    is_time_now: bool = False  # Simulation time equals real-world time
    timerate: float = 0.0  # Julian days per real second; 0 = paused

    def utc_datetime(self) -> datetime:
        """Julian day as a timezone-aware UTC datetime."""
        return datetime_from_julian_day(self.jday)


@dataclass(frozen=True)
class SkyState:
    """One instant's sky. Either fully populated or explicitly invalid."""

    sun: BodyInfo | None
    moon: BodyInfo | None
    venus: BodyInfo | None
    time: SkyTime | None
    valid: bool = True

    def __post_init__(self) -> None:
        populated = None not in (self.sun, self.moon, self.venus, self.time)
        if self.valid and not populated:
            raise ValueError("a valid SkyState needs sun, moon, venus and time")

    @classmethod
    def invalid(cls) -> "SkyState":
        return cls(sun=None, moon=None, venus=None, time=None, valid=False)

    @property
    def ambient_int(self) -> float:
        """Scene-global ambient brightness. Always taken from the Sun record."""
        return self.sun.ambient_int if self.sun is not None else 0.0


@dataclass(frozen=True)
class Color:
    """Linear RGB. Components are >= 0 and not clamped to 1."""

    r: float
    g: float
    b: float

    def clamped(self) -> "Color":
        """Display-time clamp to [0, 1]."""
        return Color(*(min(max(c, 0.0), 1.0) for c in (self.r, self.g, self.b)))

    def to_hex(self) -> str:
        c = self.clamped()
        return "#{:02x}{:02x}{:02x}".format(
            round(c.r * 255), round(c.g * 255), round(c.b * 255)
        )


BLACK = Color(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class ActiveLight:
    """The sole input to scene lighting. Fully resolved, never partially updated."""

    source: LightSource
    altitude: float  # Radians
    azimuth: float  # Radians, north angle already applied
    color: Color  # Direct light color
    ambient_color: Color
    fog_color: Color
    ambient_int: float
    shadows: ShadowHardness
    enabled: bool  # Directional light switched on
    diameter: float = 0.0  # Angular diameter of the source (degrees)
    impostor_visible: bool = False  # Show a solar disc sphere (snapshot mode only)
    intensity: float = 1.0  # Scene-side multiplier on `color`, see Bridge.overexpose

    @property
    def direction_vector(self) -> tuple[float, float, float]:
        """Unit vector towards the light in scene space (x=east, y=up, z=north)."""
        cos_alt = math.cos(self.altitude)
        return (
            cos_alt * math.sin(self.azimuth),
            math.sin(self.altitude),
            cos_alt * math.cos(self.azimuth),
        )
