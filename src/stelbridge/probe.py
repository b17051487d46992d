"""CLI probe: connect once, sync, resolve the scene light and print it.

Usage:
    stelbridge-probe                  # settings from the environment / .env
    stelbridge-probe --live -v        # request live mode, debug logging
    stelbridge-probe --snapshot-only --sky-name winter
"""

import argparse
import asyncio
import logging
import math
import sys
from dataclasses import replace

from dotenv import load_dotenv

from stelbridge.bridge import Bridge
from stelbridge.client import StelClient
from stelbridge.config import Settings, load_settings
from stelbridge.coordinator import ModeCoordinator
from stelbridge.dispatcher import CommandDispatcher
from stelbridge.models import ActiveLight
from stelbridge.providers import NetworkProvider
from stelbridge.resolver import impostor_scale
from stelbridge.session import RemoteSession
from stelbridge.snapshot import SnapshotProvider

_log = logging.getLogger("stelbridge.probe")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stelbridge-probe", description="Resolve the current scene light once."
    )
    parser.add_argument("--host", help="simulator host (STEL_HOST)")
    parser.add_argument("--port", type=int, help="RemoteControl port (STEL_PORT)")
    parser.add_argument("--live", action="store_true", help="request live mode")
    parser.add_argument(
        "--snapshot-only", action="store_true", help="do not contact the simulator"
    )
    parser.add_argument("--sky-name", help="snapshot sky directory (STEL_SKY_NAME)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    changes: dict[str, object] = {}
    if args.host:
        changes["host"] = args.host
    if args.port:
        changes["port"] = args.port
    if args.live:
        changes["live"] = True
    if args.snapshot_only:
        changes["connect"] = False
    if args.sky_name:
        changes["sky_name"] = args.sky_name
    return replace(settings, **changes)


def format_light(light: ActiveLight) -> str:
    lines = [f"source        {light.source.value}"]
    if light.enabled:
        lines += [
            f"altitude      {math.degrees(light.altitude):8.3f} deg",
            f"azimuth       {math.degrees(light.azimuth):8.3f} deg",
            f"color         {light.color.r:.4f} {light.color.g:.4f} {light.color.b:.4f}",
            f"shadows       {light.shadows.value}",
        ]
        if light.impostor_visible:
            lines.append(f"impostor      {impostor_scale(light):.3f}")
    lines += [
        f"ambient       {light.ambient_color.r:.4f} {light.ambient_color.g:.4f} "
        f"{light.ambient_color.b:.4f}",
        f"fog           {light.fog_color.r:.4f}",
    ]
    return "\n".join(lines)


async def probe(settings: Settings) -> tuple[Bridge, ActiveLight]:
    async with StelClient.from_settings(settings) as client:
        session = RemoteSession(client)
        dispatcher = CommandDispatcher(client, session, skybox_script=settings.skybox_script)
        coordinator = ModeCoordinator(
            session,
            dispatcher,
            NetworkProvider(session, dispatcher),
            SnapshotProvider(settings.snapshot_base, settings.sky_name, timeout=settings.timeout),
            site=settings.site,
            live_requested=settings.live,
            failure_threshold=settings.failure_threshold,
        )
        if settings.connect:
            await coordinator.connect()
        bridge = Bridge(coordinator, session, settings)
        await bridge.tick()
        await bridge.idle()
        return bridge, bridge.light


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    try:
        settings = _apply_args(load_settings(), args)
    except ValueError as e:
        _log.error("Invalid configuration: %s", e)
        return 2

    bridge, light = asyncio.run(probe(settings))
    print(f"mode          {bridge.coordinator.mode.value}")
    print(f"time          {bridge.time_string()}")
    print(format_light(light))
    return 0 if bridge.state.valid else 1


if __name__ == "__main__":
    sys.exit(main())
