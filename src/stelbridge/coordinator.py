"""Mode coordinator: Snapshot/Live state machine and the render-background switch."""

import logging
from collections.abc import Callable

from stelbridge.config import SiteSettings
from stelbridge.dispatcher import CommandDispatcher
from stelbridge.errors import SyncError, SyncErrorKind
from stelbridge.models import Background, Mode
from stelbridge.providers import NetworkProvider, SkyStateProvider
from stelbridge.session import RemoteSession
from stelbridge.snapshot import SnapshotProvider

_log = logging.getLogger(__name__)


class ModeCoordinator:
    """Decides whether the live simulator or the snapshot file feeds the scene.

    Snapshot is the initial state and the fallback whenever the remote stops
    answering. Exactly one `Background` is active at any time: the skybox in
    snapshot mode, the simulator's direct view in live mode.

    Args:
        session: Remote session (its failure counter drives the fallback).
        dispatcher: Command dispatcher; its direct-view flag follows the mode.
        network: Provider used in live mode.
        snapshot: Provider used in snapshot mode.
        site: Site pushed to the simulator after connecting.
        live_requested: Enter live mode as soon as a connection succeeds.
        failure_threshold: Consecutive sync failures that force snapshot mode.
        on_background_change: Called with the new Background on every switch.
    """

    def __init__(
        self,
        session: RemoteSession,
        dispatcher: CommandDispatcher,
        network: NetworkProvider,
        snapshot: SnapshotProvider,
        site: SiteSettings | None = None,
        live_requested: bool = False,
        failure_threshold: int = 3,
        on_background_change: Callable[[Background], None] | None = None,
    ):
        self._session = session
        self._dispatcher = dispatcher
        self._network = network
        self._snapshot = snapshot
        self._site = site or SiteSettings()
        self.live_requested = live_requested
        self.failure_threshold = failure_threshold
        self._on_background_change = on_background_change
        self._mode = Mode.SNAPSHOT
        self._background = Background.SKYBOX
        self._dispatcher.direct_view = False

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def background(self) -> Background:
        return self._background

    @property
    def provider(self) -> SkyStateProvider:
        return self._network if self._mode is Mode.LIVE else self._snapshot

    async def connect(self) -> bool:
        """Initialise the remote session and push the site.

        Returns:
            True when the remote answered. On failure the coordinator stays
            in snapshot mode and nothing is retried.
        """
        try:
            await self._session.initialize_full()
        except SyncError as e:
            self._session.last_error = e
            _log.warning(
                "Cannot reach simulator (%s), staying in snapshot mode: %s", e.kind.value, e
            )
            return False
        await self._dispatcher.configure_site(self._site)
        if self.live_requested:
            self.set_live(True)
        return True

    def set_live(self, live: bool) -> bool:
        """Request live (True) or snapshot (False) mode.

        Returns:
            True when the coordinator is in the requested mode afterwards.
            Live mode needs a reachable session; snapshot mode is always
            granted.
        """
        if live and not self._session.reachable:
            _log.warning("Live mode requested but simulator is not reachable")
            return False
        self._enter(Mode.LIVE if live else Mode.SNAPSHOT)
        return True

    def toggle(self) -> bool:
        return self.set_live(self._mode is not Mode.LIVE)

    def check_health(self) -> None:
        """Fall back to snapshot mode after repeated sync failures.

        A malformed delta means the mirror was discarded; that falls back
        at once instead of waiting for the threshold.
        """
        if self._mode is not Mode.LIVE:
            return
        error = self._session.last_error
        if error is not None and error.kind is SyncErrorKind.MALFORMED_DELTA:
            _log.warning("Simulator sent an unusable state delta, falling back to snapshot mode")
            self._enter(Mode.SNAPSHOT)
            return
        if self._session.consecutive_failures >= self.failure_threshold:
            _log.warning(
                "Simulator failed %d times in a row, falling back to snapshot mode",
                self._session.consecutive_failures,
            )
            self._enter(Mode.SNAPSHOT)

    def _enter(self, mode: Mode) -> None:
        if mode is self._mode:
            return
        _log.info("Mode %s -> %s", self._mode.value, mode.value)
        self._mode = mode
        self._configure_background()

    def _configure_background(self) -> None:
        background = Background.DIRECT_VIEW if self._mode is Mode.LIVE else Background.SKYBOX
        self._background = background
        self._dispatcher.direct_view = background is Background.DIRECT_VIEW
        if self._on_background_change is not None:
            self._on_background_change(background)
