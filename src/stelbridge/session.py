"""Remote session: keeps a RemoteMirror current via full and delta status fetches."""

import json
import logging
from typing import Any

import httpx

from stelbridge.client import StelClient
from stelbridge.errors import MalformedDeltaError, SyncError
from stelbridge.mirror import FULL_STATE_ID, RemoteMirror, apply_delta
from stelbridge.models import SkyTime

_log = logging.getLogger(__name__)

STATUS_PATH = "/main/status"
NULL = "null"  # read_property sentinel: value unknown


def _decode(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        raise MalformedDeltaError("status response is not JSON") from None


class RemoteSession:
    """Owner of the mirror of the remote process's state tree.

    The mirror is created by `initialize_full`, then advanced by
    `fetch_delta`. A malformed delta discards it; until the next successful
    full fetch the session reports itself unreachable, which disables
    outbound commands.
    """

    def __init__(self, client: StelClient, mirror: RemoteMirror | None = None):
        self._client = client
        self._mirror = mirror
        self.needs_full_fetch = mirror is None
        self.consecutive_failures = 0
        self.last_error: SyncError | None = None

    @property
    def mirror(self) -> RemoteMirror | None:
        return self._mirror

    @property
    def reachable(self) -> bool:
        """True while a valid mirror is held, i.e. commands may be sent."""
        return self._mirror is not None and not self.needs_full_fetch

    async def initialize_full(self) -> RemoteMirror:
        """Fetch the complete remote state and replace the mirror with it.

        Raises:
            UnreachableError: No answer from the remote process.
            HttpStatusError: Non-2xx answer.
            MalformedDeltaError: Answer lacks the change-set sections.
        """
        resp = await self._client.get(
            STATUS_PATH, params={"propId": FULL_STATE_ID, "actionId": FULL_STATE_ID}
        )
        mirror = RemoteMirror.from_full(_decode(resp))
        self._mirror = mirror
        self.needs_full_fetch = False
        _log.info(
            "Remote state initialized: actionId=%d propId=%d",
            mirror.action_id,
            mirror.property_id,
        )
        return mirror

    async def fetch_delta(self) -> RemoteMirror:
        """Fetch changes since the mirror's ids and merge them.

        Returns:
            The mirror after the merge (unchanged for a stale delta).

        Raises:
            UnreachableError, HttpStatusError: Transport failures; mirror kept.
            MalformedDeltaError: Unusable delta, or no mirror to merge into;
                the mirror is discarded and a full fetch is required.
        """
        if self._mirror is None:
            self.needs_full_fetch = True
            raise MalformedDeltaError("no mirror to merge into")

        params = {"actionId": self._mirror.action_id, "propId": self._mirror.property_id}
        resp = await self._client.get(STATUS_PATH, params=params)

        # Another request may have replaced or discarded the mirror meanwhile;
        # merge into whatever is current and let the change ids sort out order.
        current = self._mirror
        if current is None:
            raise MalformedDeltaError("mirror discarded while delta was in flight")
        try:
            merged = apply_delta(current, _decode(resp))
        except MalformedDeltaError:
            self._discard()
            raise
        self._mirror = merged
        return merged

    async def refresh(self) -> bool:
        """Bring the mirror up to date without raising.

        Runs a full fetch when one is required, a delta fetch otherwise.
        Failures are logged and counted in `consecutive_failures`.
        """
        try:
            if self.needs_full_fetch:
                await self.initialize_full()
            else:
                await self.fetch_delta()
        except SyncError as e:
            self.consecutive_failures += 1
            self.last_error = e
            _log.warning(
                "State refresh failed (%s, %d in a row): %s",
                e.kind.value,
                self.consecutive_failures,
                e,
            )
            return False
        self.consecutive_failures = 0
        self.last_error = None
        return True

    def _discard(self) -> None:
        _log.warning("Remote state mirror invalid; discarding it until a full fetch succeeds")
        self._mirror = None
        self.needs_full_fetch = True

    def read_property(self, name: str) -> str:
        """Cached property value as a string, or the sentinel ``"null"``.

        Strings are returned verbatim; booleans and numbers as JSON literals
        (``"true"``, ``"0.2"``). Callers must treat ``"null"`` as unknown.
        """
        if self._mirror is None:
            return NULL
        properties = self._mirror.properties
        if name not in properties:
            return NULL
        value = properties[name]
        return value if isinstance(value, str) else json.dumps(value)

    def property_flag(self, name: str) -> bool | None:
        """Boolean property value, None when unknown or not a boolean."""
        raw = self.read_property(name).lower()
        if raw == "true":
            return True
        if raw == "false":
            return False
        return None

    @property
    def time(self) -> SkyTime | None:
        if self._mirror is None or self._mirror.time is None:
            return None
        section = self._mirror.time
        jday = section.get("jday")
        if isinstance(jday, bool) or not isinstance(jday, (int, float)):
            _log.warning("Remote time section has no usable jday: %r", jday)
            return None
        timerate = section.get("timerate", 0.0)
        return SkyTime(
            jday=float(jday),
            utc=str(section.get("utc", "")),
            local=str(section.get("local", "")),
            is_time_now=bool(section.get("isTimeNow", False)),
            timerate=float(timerate) if isinstance(timerate, (int, float)) else 0.0,
        )

    @property
    def jday(self) -> float | None:
        time = self.time
        return time.jday if time is not None else None

    @property
    def local_time(self) -> str | None:
        time = self.time
        return time.local if time is not None else None
