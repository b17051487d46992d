import asyncio
import math
import os

import httpx
import pytest

from stelbridge.bridge import DEFAULT_SOLAR_ALTITUDE, DEFAULT_SOLAR_LONGITUDE, NO_TIME, Bridge
from stelbridge.client import StelClient
from stelbridge.config import Settings, SiteSettings
from stelbridge.coordinator import ModeCoordinator
from stelbridge.dispatcher import CommandDispatcher
from stelbridge.errors import MissingFieldError
from stelbridge.models import LightSource, Mode
from stelbridge.providers import NetworkProvider
from stelbridge.session import RemoteSession
from stelbridge.snapshot import DATA_FILE, SnapshotProvider


def _write_snapshot(tmp_path, text, mtime):
    directory = tmp_path / "live"
    directory.mkdir(exist_ok=True)
    path = directory / DATA_FILE
    path.write_text(text, encoding="utf-8")
    os.utime(path, (mtime, mtime))


def _offline_bridge(tmp_path, north_angle=0.0):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = StelClient(transport=httpx.MockTransport(handler))
    session = RemoteSession(client)
    dispatcher = CommandDispatcher(client, session)
    settings = Settings(snapshot_poll_interval=1.0, site=SiteSettings(north_angle=north_angle))
    coordinator = ModeCoordinator(
        session,
        dispatcher,
        NetworkProvider(session, dispatcher),
        SnapshotProvider(str(tmp_path)),
    )
    return Bridge(coordinator, session, settings, clock=lambda: 0.0)


def _step(bridge, now):
    async def scenario():
        await bridge.tick(now=now)
        await bridge.idle()
        return bridge.light

    return asyncio.run(scenario())


def test_tick_resolves_snapshot(tmp_path, snapshot_text):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    bridge = _offline_bridge(tmp_path)

    light = _step(bridge, 0.0)

    assert light.source is LightSource.SUN
    assert light.impostor_visible
    assert bridge.light is light
    assert bridge.solar_longitude() == 161.6
    assert bridge.solar_altitude() == 24.5
    assert bridge.time_string() == "2017-09-04T12:00:00"


def test_missing_key_keeps_previous_light(tmp_path, snapshot_text, caplog):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    bridge = _offline_bridge(tmp_path)
    before = _step(bridge, 0.0)

    broken = "\n".join(l for l in snapshot_text.splitlines() if not l.startswith("Moon Azimuth"))
    _write_snapshot(tmp_path, broken, 2000.0)
    with caplog.at_level("WARNING", logger="stelbridge.snapshot"):
        after = _step(bridge, 1.5)
        _step(bridge, 3.0)

    assert after == before
    assert isinstance(bridge.coordinator.provider.last_error, MissingFieldError)
    assert len([r for r in caplog.records if r.name == "stelbridge.snapshot"]) == 1


def test_polls_at_interval(tmp_path, snapshot_text):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    bridge = _offline_bridge(tmp_path)
    _step(bridge, 0.0)

    _write_snapshot(tmp_path, snapshot_text.replace("Sun Altitude: 24.5", "Sun Altitude: -20.0"), 2000.0)
    assert _step(bridge, 0.5).source is LightSource.SUN
    assert _step(bridge, 1.0).source is not LightSource.SUN


def test_no_state_defaults(tmp_path):
    bridge = _offline_bridge(tmp_path)
    light = _step(bridge, 0.0)
    assert light.source is LightSource.NONE
    assert bridge.solar_longitude() == DEFAULT_SOLAR_LONGITUDE
    assert bridge.solar_altitude() == DEFAULT_SOLAR_ALTITUDE
    assert bridge.time_string() == NO_TIME


def test_north_angle_applied(tmp_path, snapshot_text):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    light = _step(_offline_bridge(tmp_path, north_angle=-0.25), 0.0)
    assert light.azimuth == pytest.approx(math.radians(130.0))


def test_commands_drained_once_per_tick(tmp_path):
    bridge = _offline_bridge(tmp_path)
    ran = []

    async def command(n):
        ran.append(n)
        return True

    async def scenario():
        bridge.submit(lambda: command(1))
        bridge.submit(lambda: command(2))
        assert bridge.pending_commands == 2
        await bridge.tick(now=0.0)
        assert bridge.pending_commands == 0
        await asyncio.sleep(0)
        bridge.submit(lambda: command(3))
        await asyncio.sleep(0)
        assert ran == [1, 2]
        await bridge.tick(now=0.1)
        await bridge.idle()

    asyncio.run(scenario())
    assert ran == [1, 2, 3]
    assert bridge.running_commands == 0


def test_overexpose_clamps(tmp_path):
    bridge = _offline_bridge(tmp_path)
    assert bridge.overexpose(3.0) == 3.0
    assert bridge.overexpose(12.0) == 8.0
    assert bridge.overexpose(-1.0) == 0.0
    assert bridge.light.intensity == 0.0


def test_overexposure_carried_on_resolved_light(tmp_path, snapshot_text):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    bridge = _offline_bridge(tmp_path)
    bridge.overexpose(4.0)
    light = _step(bridge, 0.0)
    assert light.source is LightSource.SUN
    assert light.intensity == 4.0


def test_live_failures_fall_back_to_snapshot(tmp_path, snapshot_text, full_state, object_info):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    remote = {"up": True}

    def handler(request: httpx.Request) -> httpx.Response:
        if not remote["up"]:
            raise httpx.ConnectError("connection refused", request=request)
        if request.method == "POST":
            return httpx.Response(200, text="ok")
        if request.url.path == "/api/objects/info":
            return httpx.Response(200, json=object_info[request.url.params["name"]])
        return httpx.Response(200, json=full_state)

    client = StelClient(transport=httpx.MockTransport(handler))
    session = RemoteSession(client)
    dispatcher = CommandDispatcher(client, session)
    coordinator = ModeCoordinator(
        session,
        dispatcher,
        NetworkProvider(session, dispatcher),
        SnapshotProvider(str(tmp_path)),
        live_requested=True,
        failure_threshold=3,
    )
    bridge = Bridge(coordinator, session, Settings(light_poll_interval=0.25))

    async def scenario():
        await coordinator.connect()
        await bridge.tick(now=0.0)
        await bridge.idle()
        light = bridge.light
        assert coordinator.mode is Mode.LIVE
        assert light.source is LightSource.SUN
        assert not light.impostor_visible
        assert bridge.time_string() == "2017-09-04T02:00:00"

        remote["up"] = False
        for step in range(1, 4):
            await bridge.tick(now=step * 0.25)
            await bridge.idle()
        await bridge.tick(now=1.0)
        await bridge.idle()
        return bridge.light

    light = asyncio.run(scenario())
    assert coordinator.mode is Mode.SNAPSHOT
    assert light.source is LightSource.SUN
    assert light.impostor_visible


def _live_bridge(tmp_path, handler, **settings):
    client = StelClient(transport=httpx.MockTransport(handler))
    session = RemoteSession(client)
    dispatcher = CommandDispatcher(client, session)
    coordinator = ModeCoordinator(
        session,
        dispatcher,
        NetworkProvider(session, dispatcher),
        SnapshotProvider(str(tmp_path)),
        live_requested=True,
    )
    return Bridge(coordinator, session, Settings(**settings))


def test_malformed_delta_switches_to_snapshot_on_next_poll(
    tmp_path, snapshot_text, full_state, object_info
):
    _write_snapshot(tmp_path, snapshot_text, 1000.0)
    # Full fetch, the refresh after site setup, then an empty delta.
    answers = [full_state, full_state, {}]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, text="ok")
        if request.url.path == "/api/objects/info":
            return httpx.Response(200, json=object_info[request.url.params["name"]])
        return httpx.Response(200, json=answers.pop(0) if answers else full_state)

    bridge = _live_bridge(tmp_path, handler, light_poll_interval=0.25)
    coordinator = bridge.coordinator

    async def scenario():
        await coordinator.connect()
        assert coordinator.mode is Mode.LIVE
        await bridge.tick(now=0.0)
        await bridge.idle()
        return bridge.light

    light = asyncio.run(scenario())
    assert coordinator.mode is Mode.SNAPSHOT
    assert light.impostor_visible


def test_tick_does_not_wait_for_a_slow_remote(tmp_path, full_state, object_info):
    status_requests = []

    async def scenario():
        gate = asyncio.Event()
        gate.set()
        arrived = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, text="ok")
            if request.url.path == "/api/objects/info":
                return httpx.Response(200, json=object_info[request.url.params["name"]])
            status_requests.append(request)
            arrived.set()
            await gate.wait()
            return httpx.Response(200, json=full_state)

        bridge = _live_bridge(tmp_path, handler, light_poll_interval=0.25)
        await bridge.coordinator.connect()
        assert bridge.coordinator.mode is Mode.LIVE
        before = len(status_requests)

        gate.clear()
        arrived.clear()
        first = await asyncio.wait_for(bridge.tick(now=0.0), timeout=1.0)
        await asyncio.wait_for(arrived.wait(), timeout=1.0)
        assert bridge.polling

        # Due again, but the held poll is not duplicated.
        await asyncio.wait_for(bridge.tick(now=0.5), timeout=1.0)
        assert len(status_requests) == before + 1

        gate.set()
        await bridge.idle()
        assert not bridge.polling
        return first, bridge.light

    first, settled = asyncio.run(scenario())
    assert first.source is LightSource.NONE
    assert settled.source is LightSource.SUN
