"""Sky state providers: the live network source and the common protocol.

The snapshot source lives in `stelbridge.snapshot`; both satisfy
`SkyStateProvider` and are interchangeable from the coordinator's view.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from stelbridge.dispatcher import CommandDispatcher
from stelbridge.errors import MissingFieldError, ParseError
from stelbridge.models import BodyInfo, Mode, SkyState
from stelbridge.session import RemoteSession

_log = logging.getLogger(__name__)

BODIES = ("Sun", "Moon", "Venus")


class SkyStateProvider(Protocol):
    mode: Mode

    async def refresh(self) -> bool: ...

    def current(self) -> SkyState: ...


def _field(info: Mapping[str, Any], key: str) -> float:
    if key not in info:
        raise MissingFieldError(key)
    value = info[key]
    if isinstance(value, bool):
        raise ParseError(f"{key}: not a number: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ParseError(f"{key}: not a number: {value!r}") from None


def body_from_info(name: str, info: Mapping[str, Any]) -> BodyInfo:
    """Build a BodyInfo from an object-info map.

    Moon illumination arrives in percent and is stored as a fraction.

    Raises:
        MissingFieldError: A required key is absent.
        ParseError: A field is not numeric.
    """
    illumination = _field(info, "illumination") / 100.0 if name == "Moon" else None
    elongation = _field(info, "elong") if name == "Sun" else None
    return BodyInfo(
        name=name,
        altitude=_field(info, "altitude"),
        azimuth=_field(info, "azimuth"),
        vmag=_field(info, "vmag"),
        vmag_extincted=_field(info, "vmage"),
        diameter=_field(info, "diameter") if "diameter" in info else 0.0,
        ambient_int=_field(info, "ambientInt"),
        illumination=illumination,
        elongation=elongation,
    )


class NetworkProvider:
    """SkyStateProvider fed by object-info queries against the live simulator.

    Queries run one after another (they share one in-flight guard). The
    state is only replaced when all three bodies parsed and the mirror
    carries time data; otherwise the previous state stays current.
    """

    mode = Mode.LIVE

    def __init__(self, session: RemoteSession, dispatcher: CommandDispatcher):
        self._session = session
        self._dispatcher = dispatcher
        self._state = SkyState.invalid()
        self.last_error: ParseError | None = None

    def current(self) -> SkyState:
        return self._state

    async def refresh(self) -> bool:
        bodies: dict[str, BodyInfo] = {}
        for name in BODIES:
            info = await self._dispatcher.query_object_info(name)
            if info is None:
                return False
            try:
                bodies[name] = body_from_info(name, info)
            except ParseError as e:
                self.last_error = e
                _log.warning("Object info for %s unusable: %s", name, e)
                return False

        time = self._session.time
        if time is None:
            _log.debug("No time data in remote state yet; keeping previous sky state")
            return False

        self._state = SkyState(
            sun=bodies["Sun"], moon=bodies["Moon"], venus=bodies["Venus"], time=time
        )
        self.last_error = None
        return True
