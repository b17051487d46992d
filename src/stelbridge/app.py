"""stelbridge: Streamlit dashboard for the simulator link and the resolved scene light."""

import asyncio
import datetime
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

from stelbridge.client import StelClient  # noqa: E402
from stelbridge.config import load_settings  # noqa: E402
from stelbridge.coordinator import ModeCoordinator  # noqa: E402
from stelbridge.dispatcher import CommandDispatcher  # noqa: E402
from stelbridge.errors import SyncError  # noqa: E402
from stelbridge.mirror import RemoteMirror  # noqa: E402
from stelbridge.models import ActiveLight, Mode, SkyState  # noqa: E402
from stelbridge.providers import NetworkProvider  # noqa: E402
from stelbridge.renderers.plotly_2d import render_sky_dome  # noqa: E402
from stelbridge.resolver import flare_visible, impostor_scale, resolve  # noqa: E402
from stelbridge.session import RemoteSession  # noqa: E402
from stelbridge.snapshot import SnapshotProvider  # noqa: E402

Action = Callable[[CommandDispatcher], Awaitable[bool]]

settings = load_settings()

st.set_page_config(
    page_title="stelbridge",
    page_icon="✦",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# --- Dark theme CSS ---
st.markdown(
    """
    <style>
    html, body, [data-testid="stAppViewContainer"], [data-testid="stMain"] {
        background-color: #050a1a !important;
    }
    [data-testid="stHeader"], [data-testid="stToolbar"] {
        display: none !important;
    }
    [data-testid="stButton"] button {
        background-color: rgba(126, 200, 227, 0.2) !important;
        color: #7ec8e3 !important;
        border: 1px solid #7ec8e3 !important;
        border-radius: 6px !important;
        font-weight: 600;
    }
    label, [data-testid="stWidgetLabel"] p, [data-testid="stMetricLabel"] p {
        color: #aaaaaa !important;
        font-size: 0.85rem !important;
    }
    [data-testid="stMetricValue"] { color: #d0d8e8 !important; }
    .overlay-box {
        background: rgba(0, 0, 0, 0.65);
        border-radius: 12px;
        padding: 1.2rem 1.6rem;
        color: #e8e8e8;
        margin-bottom: 0.5rem;
    }
    .swatch {
        display: inline-block; width: 1.2rem; height: 1.2rem;
        border-radius: 50%; vertical-align: middle; margin-right: 0.5rem;
        border: 1px solid rgba(255,255,255,0.2);
    }
    </style>
    """,
    unsafe_allow_html=True,
)

# --- Session state initialization ---
# The simulator mirror survives reruns; HTTP clients do not (each rerun runs
# its own event loop).
if "mirror" not in st.session_state:
    st.session_state.mirror = None
if "sky_state" not in st.session_state:
    st.session_state.sky_state = SkyState.invalid()
if "live" not in st.session_state:
    st.session_state.live = settings.live
if "sky_name" not in st.session_state:
    st.session_state.sky_name = settings.sky_name
if "error_msg" not in st.session_state:
    st.session_state.error_msg = None


@dataclass(frozen=True)
class _SyncResult:
    mirror: RemoteMirror | None
    state: SkyState
    mode: Mode
    time_string: str | None
    error: SyncError | None


async def _sync(
    mirror: RemoteMirror | None, live: bool, sky_name: str, action: Action | None = None
) -> _SyncResult:
    async with StelClient.from_settings(settings) as client:
        session = RemoteSession(client, mirror)
        dispatcher = CommandDispatcher(client, session, skybox_script=settings.skybox_script)
        snapshot = SnapshotProvider(settings.snapshot_base, sky_name, timeout=settings.timeout)
        coordinator = ModeCoordinator(
            session,
            dispatcher,
            NetworkProvider(session, dispatcher),
            snapshot,
            site=settings.site,
            live_requested=live,
            failure_threshold=settings.failure_threshold,
        )
        if settings.connect:
            if session.mirror is None:
                await coordinator.connect()
            elif await session.refresh() and live:
                coordinator.set_live(True)
        if action is not None:
            await action(dispatcher)
        await coordinator.provider.refresh()
        return _SyncResult(
            mirror=session.mirror,
            state=coordinator.provider.current(),
            mode=coordinator.mode,
            time_string=session.local_time,
            error=session.last_error or snapshot.last_error,
        )


def _run(action: Action | None = None) -> _SyncResult:
    result = asyncio.run(
        _sync(
            st.session_state.mirror,
            st.session_state.live,
            st.session_state.sky_name,
            action,
        )
    )
    st.session_state.mirror = result.mirror
    st.session_state.sky_state = result.state
    st.session_state.error_msg = str(result.error) if result.error is not None else None
    return result


# --- Controls ---
col1, col2, col3, col4, col5, col6 = st.columns([2, 1, 1, 1, 1, 1])
with col1:
    sky_name = st.text_input("Snapshot sky", value=st.session_state.sky_name)
with col2:
    live = st.toggle("Live view", value=st.session_state.live)
with col3:
    back = st.button("◂ 1 h", use_container_width=True)
with col4:
    forward = st.button("1 h ▸", use_container_width=True)
with col5:
    now = st.button("Now", use_container_width=True)
with col6:
    skybox = st.button("Render skybox", use_container_width=True)

st.session_state.sky_name = sky_name
st.session_state.live = live

action: Action | None = None
if back:
    action = lambda d: d.step_time(-1.0)  # noqa: E731
elif forward:
    action = lambda d: d.step_time(1.0)  # noqa: E731
elif now:
    action = lambda d: d.set_datetime(  # noqa: E731
        datetime.datetime.now(datetime.timezone.utc), timerate=1.0 / 86400.0
    )
elif skybox:
    action = lambda d: d.update_skybox()  # noqa: E731

with st.spinner("Talking to the simulator..."):
    result = _run(action)

state: SkyState = st.session_state.sky_state
light: ActiveLight = resolve(state, result.mode, settings.site.north_angle)

# --- Chart area ---
chart_col, info_col = st.columns([3, 2])
with chart_col:
    fig = render_sky_dome(state, light)
    st.plotly_chart(fig, use_container_width=True, config={"scrollZoom": True, "displayModeBar": False})

with info_col:
    st.markdown(
        f"<div class='overlay-box'>"
        f"<span class='swatch' style='background:{light.color.to_hex()}'></span>"
        f"<b>{light.source.value}</b> &middot; {result.mode.value} mode"
        f"<br><small>{result.time_string or (state.time.local if state.time else 'time unknown')}</small>"
        f"</div>",
        unsafe_allow_html=True,
    )
    m1, m2 = st.columns(2)
    m1.metric("Altitude", f"{math.degrees(light.altitude):.2f}°")
    m2.metric("Azimuth", f"{math.degrees(light.azimuth):.2f}°")
    m3, m4 = st.columns(2)
    m3.metric("Shadows", light.shadows.value)
    m4.metric("Ambient", f"{light.ambient_int:.3f}")
    m5, m6 = st.columns(2)
    m5.metric("Flare (60° FoV)", "on" if flare_visible(light, 60.0) else "off")
    m6.metric(
        "Sun disc",
        f"{impostor_scale(light):.2f} m" if light.impostor_visible else "hidden",
    )

# --- Error message ---
if st.session_state.error_msg:
    st.markdown(
        f"<div class='overlay-box' style='border:1px solid #ff6b6b; color:#ff9999;'>"
        f"{st.session_state.error_msg}</div>",
        unsafe_allow_html=True,
    )
