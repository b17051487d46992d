"""Snapshot source: pre-baked `key:value` sky description written by the skybox script.

File format: one ``key:value`` pair per line; the first colon separates key
from value (dates keep their own colons). Produced next to the six skybox
tiles in ``<base>/<sky name>/unityData.txt``. The base may be a local
directory or an http(s) URL.
"""

import logging
from collections.abc import Mapping
from pathlib import Path

import httpx

from stelbridge.errors import MissingFieldError, ParseError
from stelbridge.models import BodyInfo, Mode, SkyState, SkyTime

_log = logging.getLogger(__name__)

DATA_FILE = "unityData.txt"

_DEFAULT_DIAMETER = 0.5  # Degrees, Sun/Moon when the file omits a size
_DEFAULT_AMBIENT = 0.05  # Older skybox scripts do not write Landscape Brightness
_UNREADABLE = -1.0  # mtime marker for a file that could not be read


def parse_pairs(text: str) -> dict[str, str]:
    """Split snapshot text into a key → value dict. Lines without a colon are skipped."""
    pairs: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        pairs[key.strip()] = value.strip()
    return pairs


def _require(pairs: Mapping[str, str], key: str) -> str:
    if key not in pairs:
        raise MissingFieldError(key)
    return pairs[key]


def _number(pairs: Mapping[str, str], key: str, default: float | None = None) -> float:
    if key not in pairs and default is not None:
        return default
    raw = _require(pairs, key)
    try:
        return float(raw)
    except ValueError:
        raise ParseError(f"{key}: not a number: {raw!r}") from None


def parse_snapshot(text: str) -> SkyState:
    """Parse snapshot text into a fully populated SkyState.

    Args:
        text: Contents of a ``unityData.txt`` file.

    Returns:
        SkyState for the captured instant. Moon illumination is converted
        from percent to a [0, 1] fraction; Venus is treated as a point source.

    Raises:
        MissingFieldError: A required key is absent.
        ParseError: A numeric field does not hold a number.
    """
    pairs = parse_pairs(text)
    ambient = _number(pairs, "Landscape Brightness", _DEFAULT_AMBIENT)

    sun = BodyInfo(
        name="Sun",
        altitude=_number(pairs, "Sun Altitude"),
        azimuth=_number(pairs, "Sun Azimuth"),
        vmag=_number(pairs, "Sun Magnitude"),
        vmag_extincted=_number(pairs, "Sun Magnitude (after extinction)"),
        diameter=_number(pairs, "Sun Size", _DEFAULT_DIAMETER),
        ambient_int=ambient,
        elongation=_number(pairs, "Sun Longitude"),
    )
    moon = BodyInfo(
        name="Moon",
        altitude=_number(pairs, "Moon Altitude"),
        azimuth=_number(pairs, "Moon Azimuth"),
        vmag=_number(pairs, "Moon Magnitude"),
        vmag_extincted=_number(pairs, "Moon Magnitude (after extinction)"),
        diameter=_number(pairs, "Moon Size", _DEFAULT_DIAMETER),
        ambient_int=ambient,
        illumination=_number(pairs, "Moon illumination") / 100.0,
    )
    venus = BodyInfo(
        name="Venus",
        altitude=_number(pairs, "Venus Altitude"),
        azimuth=_number(pairs, "Venus Azimuth"),
        vmag=_number(pairs, "Venus Magnitude"),
        vmag_extincted=_number(pairs, "Venus Magnitude (after extinction)"),
        diameter=0.0,
        ambient_int=ambient,
    )
    # A static skybox never runs its clock.
    time = SkyTime(
        jday=_number(pairs, "JD"),
        utc=_require(pairs, "Date (UTC)"),
        local=_require(pairs, "Date"),
        is_time_now=False,
        timerate=0.0,
    )
    return SkyState(sun=sun, moon=moon, venus=venus, time=time)


def _is_url(location: str) -> bool:
    return "://" in location


class SnapshotProvider:
    """SkyStateProvider backed by a snapshot data file.

    A failed read or parse keeps the last good SkyState; before the first
    good parse ``current()`` is ``SkyState.invalid()``. Local files are only
    re-parsed when their modification time changes, so a skybox directory
    rewritten by the simulator is picked up automatically.
    """

    mode = Mode.SNAPSHOT

    def __init__(
        self,
        base: str,
        sky_name: str = "live",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base = base
        self._sky_name = sky_name
        self._timeout = timeout
        self._transport = transport
        self._state = SkyState.invalid()
        self._mtime: float | None = None
        self.last_error: ParseError | None = None

    @property
    def sky_name(self) -> str:
        return self._sky_name

    @sky_name.setter
    def sky_name(self, value: str) -> None:
        """Switch to another prepared sky (subdirectory); reloads on next refresh."""
        self._sky_name = value
        self._mtime = None

    @property
    def data_location(self) -> str:
        if _is_url(self._base):
            return f"{self._base.rstrip('/')}/{self._sky_name}/{DATA_FILE}"
        return str(Path(self._base) / self._sky_name / DATA_FILE)

    def current(self) -> SkyState:
        return self._state

    async def refresh(self) -> bool:
        """Re-read the data file if needed.

        Returns:
            True when a new SkyState replaced the previous one.
        """
        try:
            text = await self._read_changed_text()
        except ParseError as e:
            self._fail(e)
            return False
        if text is None:
            return False

        try:
            state = parse_snapshot(text)
        except ParseError as e:
            self._fail(e)
            return False

        self._state = state
        self.last_error = None
        return True

    def _fail(self, error: ParseError) -> None:
        self.last_error = error
        _log.warning(
            "Snapshot %s unusable, keeping previous sky state: %s",
            self.data_location,
            error,
        )

    async def _read_changed_text(self) -> str | None:
        """Return file text, or None when a local file is unchanged since the last read."""
        location = self.data_location
        if _is_url(location):
            try:
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport
                ) as client:
                    resp = await client.get(location)
                    resp.raise_for_status()
            except httpx.HTTPError as e:
                raise ParseError(f"cannot fetch {location}: {e}") from e
            return resp.text

        path = Path(location)
        try:
            mtime = path.stat().st_mtime
            if mtime == self._mtime:
                return None
            self._mtime = mtime
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            # Retried only once the file changes again, like any other bad content.
            raise ParseError(f"{location} is not UTF-8 text: {e}") from e
        except OSError as e:
            # Report a missing file once, not on every poll.
            if self._mtime == _UNREADABLE:
                return None
            self._mtime = _UNREADABLE
            raise ParseError(f"cannot read {location}: {e}") from e
