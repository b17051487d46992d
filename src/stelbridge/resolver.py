"""Light resolver: picks the dominant celestial light and derives its rendering parameters.

Pure functions only. Same SkyState and mode in, same ActiveLight out.
"""

import logging
import math

from stelbridge.errors import UnknownStateError
from stelbridge.models import (
    BLACK,
    ActiveLight,
    BodyInfo,
    Color,
    LightSource,
    Mode,
    ShadowHardness,
    SkyState,
)

_log = logging.getLogger(__name__)

SUN_ALTITUDE_LIMIT = -3.0  # Degrees; twilight still lit by the Sun below the horizon
MOON_ALTITUDE_LIMIT = 0.0
VENUS_ALTITUDE_LIMIT = 0.0

SUN_INTENSITY = 1.4
AMBIENT_TINT = (0.8, 0.9, 1.0)
AMBIENT_CAP = 0.3
FOG_FACTOR = 0.7
DARK_AMBIENT = Color(0.15, 0.15, 0.15)
DARK_FOG = Color(0.1, 0.1, 0.1)

FLARE_MIN_FOV = 10.0  # Degrees; narrower means we look into the source on purpose
IMPOSTOR_DISTANCE = 250.0  # Scene units; keeps the solar disc outside the terrain
IMPOSTOR_MAX_BLUE = 0.9

_SHADOWS = {
    LightSource.SUN: ShadowHardness.SOFT,
    LightSource.MOON: ShadowHardness.SOFT,
    LightSource.VENUS: ShadowHardness.HARD,
    LightSource.NONE: ShadowHardness.NONE,
}


def select_source(state: SkyState) -> tuple[LightSource, BodyInfo | None]:
    """Priority rule: Sun (down to civil-twilight depth), then Moon, then Venus.

    Raises:
        UnknownStateError: The state is the invalid sentinel.
    """
    if not state.valid:
        raise UnknownStateError("cannot select a light source without a sky state")
    if state.sun.altitude > SUN_ALTITUDE_LIMIT:
        return LightSource.SUN, state.sun
    if state.moon.altitude > MOON_ALTITUDE_LIMIT:
        return LightSource.MOON, state.moon
    if state.venus.altitude > VENUS_ALTITUDE_LIMIT:
        return LightSource.VENUS, state.venus
    return LightSource.NONE, None


def _night_color(power: float, delta: float) -> Color:
    # Dimming and reddening towards the horizon.
    return Color(
        power,
        power * 0.85 ** (0.6 * delta),
        power * 0.6 ** (0.5 * delta),
    )


def light_color(source: LightSource, body: BodyInfo | None) -> Color:
    """Direct light color for the selected body. Unclamped linear RGB."""
    if source is LightSource.NONE or body is None:
        return BLACK
    delta = body.extinction_delta
    if source is LightSource.SUN:
        return Color(
            SUN_INTENSITY,
            SUN_INTENSITY * 0.75**delta,
            SUN_INTENSITY * 0.42 ** (0.9 * delta),
        )
    if source is LightSource.MOON:
        # Peaks at 25% for a full Moon, much less in the other phases.
        power = body.illumination or 0.0
        return _night_color(0.25 * power * power, delta)
    # Venus: brighter than natural, to make its shadows discernible.
    return _night_color(-0.01 * body.vmag, delta)


def ambient_color(ambient_int: float) -> Color:
    level = min(ambient_int, AMBIENT_CAP)
    r, g, b = AMBIENT_TINT
    return Color(r * level, g * level, b * level)


def fog_color(ambient_int: float) -> Color:
    gray = FOG_FACTOR * ambient_int
    return Color(gray, gray, gray)


def unknown_light() -> ActiveLight:
    """Light used while no valid SkyState exists: no direct light, dim gray ambient."""
    return ActiveLight(
        source=LightSource.NONE,
        altitude=0.0,
        azimuth=0.0,
        color=BLACK,
        ambient_color=DARK_AMBIENT,
        fog_color=DARK_FOG,
        ambient_int=0.0,
        shadows=ShadowHardness.NONE,
        enabled=False,
    )


def resolve(state: SkyState, mode: Mode, north_angle: float = 0.0) -> ActiveLight:
    """Resolve the scene's active light from one sky state.

    Args:
        state: Latest sky state; `SkyState.invalid()` yields the dark default.
        mode: Current operating mode. The Sun impostor disc is only shown in
            snapshot mode, since a live direct view already draws the Sun.
        north_angle: Degrees added to every azimuth (grid north correction).

    Returns:
        A fully populated ActiveLight.
    """
    try:
        source, body = select_source(state)
    except UnknownStateError as e:
        _log.warning("%s; using dark ambient light", e)
        return unknown_light()

    ambient = state.ambient_int
    if body is None:
        return ActiveLight(
            source=LightSource.NONE,
            altitude=0.0,
            azimuth=0.0,
            color=BLACK,
            ambient_color=ambient_color(ambient),
            fog_color=fog_color(ambient),
            ambient_int=ambient,
            shadows=ShadowHardness.NONE,
            enabled=False,
        )

    return ActiveLight(
        source=source,
        altitude=math.radians(body.altitude),
        azimuth=math.radians(body.azimuth + north_angle),
        color=light_color(source, body),
        ambient_color=ambient_color(ambient),
        fog_color=fog_color(ambient),
        ambient_int=ambient,
        shadows=_SHADOWS[source],
        enabled=True,
        diameter=body.diameter,
        impostor_visible=source is LightSource.SUN and mode is Mode.SNAPSHOT,
    )


def flare_visible(light: ActiveLight, fov: float, occluded: bool = False) -> bool:
    """Whether the lens flare of the light should be drawn.

    Args:
        light: Resolved light.
        fov: Current camera field of view (degrees).
        occluded: Result of the scene's ray test towards
            `light.direction_vector`.
    """
    if light.source is LightSource.NONE:
        return False
    if fov < FLARE_MIN_FOV:
        return False
    return not occluded


def impostor_scale(light: ActiveLight, distance: float = IMPOSTOR_DISTANCE) -> float:
    """Diameter of a sphere at `distance` that subtends the body's angular diameter."""
    return math.tan(math.radians(0.5 * light.diameter)) * 2.0 * distance


def impostor_emission(light: ActiveLight) -> Color:
    """Emission color of the impostor disc: the light color with blue capped."""
    c = light.color
    return Color(c.r, c.g, min(c.b, IMPOSTOR_MAX_BLUE))
