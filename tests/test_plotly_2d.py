import numpy as np
import plotly.graph_objects as go
import pytest

from stelbridge.models import Mode, SkyState
from stelbridge.renderers.plotly_2d import dome_xy, render_sky_dome
from stelbridge.resolver import resolve
from stelbridge.snapshot import parse_snapshot


def test_dome_projection():
    x, y = dome_xy(np.array([90.0, 0.0, 0.0]), np.array([0.0, 0.0, 90.0]))
    assert (x[0], y[0]) == pytest.approx((0.0, 0.0))
    assert (x[1], y[1]) == pytest.approx((0.0, 1.0))
    # East is drawn on the left.
    assert (x[2], y[2]) == pytest.approx((-1.0, 0.0), abs=1e-12)


def test_render_highlights_active_light(snapshot_text):
    state = parse_snapshot(snapshot_text)
    light = resolve(state, Mode.SNAPSHOT)

    fig = render_sky_dome(state, light)

    assert isinstance(fig, go.Figure)
    bodies = fig.data[-1]
    assert list(bodies.text) == ["Sun", "Moon", "Venus"]
    assert bodies.marker.color[0] == light.color.to_hex()
    assert bodies.marker.color[1] != light.color.to_hex()


def test_render_invalid_state_draws_only_grid():
    state = SkyState.invalid()
    fig = render_sky_dome(state, resolve(state, Mode.SNAPSHOT))
    assert all(trace.mode == "lines" for trace in fig.data)
    assert any(a.text == "no direct light" for a in fig.layout.annotations)
