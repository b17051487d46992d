"""Camera gaze forwarding for the direct-view (live) background."""

import logging
import math
from collections.abc import Sequence

from stelbridge.dispatcher import CommandDispatcher

_log = logging.getLogger(__name__)

ZENITH_NUDGE = 1e-5  # Radians; the simulator blacks out when looking exactly at the zenith


def forward_to_view(forward: Sequence[float], north_angle: float = 0.0) -> tuple[float, float]:
    """Convert a scene forward vector into the simulator's view direction.

    Args:
        forward: Unit vector (x, y, z) with y up.
        north_angle: Azimuth of true north in grid coordinates (degrees).

    Returns:
        (azimuth, altitude) in radians.
    """
    x, y, z = forward
    az = math.pi + math.atan2(z, x) + math.radians(north_angle)
    alt = math.asin(max(-1.0, min(1.0, y)))
    if alt >= math.pi / 2:
        alt -= ZENITH_NUDGE
    return az, alt


class ViewTracker:
    """Sends gaze and field of view to the simulator, but only when they changed."""

    def __init__(self, dispatcher: CommandDispatcher, north_angle: float = 0.0):
        self._dispatcher = dispatcher
        self._north_angle = north_angle
        self._forward: tuple[float, float, float] | None = None
        self._fov: float | None = None

    async def update(self, forward: Sequence[float], fov: float | None = None) -> int:
        """Forward the camera state.

        Returns:
            Number of commands that were accepted by the simulator.
        """
        if not self._dispatcher.direct_view:
            return 0

        sent = 0
        current = (float(forward[0]), float(forward[1]), float(forward[2]))
        if current != self._forward:
            az, alt = forward_to_view(current, self._north_angle)
            if await self._dispatcher.set_view_direction(az, alt):
                self._forward = current
                sent += 1
        if fov is not None and fov != self._fov:
            if await self._dispatcher.set_fov(fov):
                self._fov = fov
                sent += 1
        return sent

    def reset(self) -> None:
        """Forget what was sent, e.g. after switching back into live mode."""
        self._forward = None
        self._fov = None
