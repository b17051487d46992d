import asyncio
import math

import httpx
import pytest

from stelbridge.client import StelClient
from stelbridge.dispatcher import CommandDispatcher
from stelbridge.gaze import ZENITH_NUDGE, ViewTracker, forward_to_view
from stelbridge.mirror import RemoteMirror
from stelbridge.session import RemoteSession


def test_forward_along_x():
    az, alt = forward_to_view((1.0, 0.0, 0.0))
    assert az == pytest.approx(math.pi)
    assert alt == pytest.approx(0.0)


def test_north_angle_rotates_azimuth():
    az, _ = forward_to_view((0.0, 0.0, 1.0), north_angle=10.0)
    assert az == pytest.approx(math.pi + math.pi / 2 + math.radians(10.0))


def test_zenith_is_nudged():
    _, alt = forward_to_view((0.0, 1.0, 0.0))
    assert alt == pytest.approx(math.pi / 2 - ZENITH_NUDGE)
    assert alt < math.pi / 2


def test_tracker_forwards_only_changes(full_state):
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, text="ok")

    client = StelClient(transport=httpx.MockTransport(handler))
    session = RemoteSession(client, RemoteMirror.from_full(full_state))
    dispatcher = CommandDispatcher(client, session)
    tracker = ViewTracker(dispatcher)

    async def scenario():
        counts = [await tracker.update((1.0, 0.0, 0.0), 60.0)]
        dispatcher.direct_view = True
        counts.append(await tracker.update((1.0, 0.0, 0.0), 60.0))
        counts.append(await tracker.update((1.0, 0.0, 0.0), 60.0))
        counts.append(await tracker.update((0.0, 0.0, 1.0), 60.0))
        counts.append(await tracker.update((0.0, 0.0, 1.0), 45.0))
        return counts

    assert asyncio.run(scenario()) == [0, 2, 0, 1, 1]
    assert paths == ["/api/main/view", "/api/main/fov", "/api/main/view", "/api/main/fov"]
