"""Plotly 2D sky-dome chart of the candidate light sources.

Zenithal equidistant projection: zenith at the centre, horizon on the unit
circle, north up and east to the left (as seen looking up). Bodies below the
horizon are drawn outside the circle down to -20 degrees so twilight
positions stay visible.
"""

import numpy as np
import plotly.graph_objects as go

from stelbridge.models import ActiveLight, BodyInfo, LightSource, SkyState

_BG = "#050a1a"
_HORIZON_COLOR = "#334466"
_INACTIVE_COLOR = "#8899bb"
_LABEL_COLOR = "#c8d4f0"
_MIN_ALT = -20.0

_BODY_SIZES = {"Sun": 18, "Moon": 14, "Venus": 8}


def dome_xy(alt_deg: np.ndarray, az_deg: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Project altitude/azimuth (degrees) onto the chart plane.

    Returns:
        (x, y) arrays; radius 0 at the zenith, 1 on the horizon.
    """
    alt = np.clip(np.asarray(alt_deg, dtype=float), _MIN_ALT, 90.0)
    az = np.radians(np.asarray(az_deg, dtype=float))
    r = (90.0 - alt) / 90.0
    return -r * np.sin(az), r * np.cos(az)


def _circle(alt_deg: float, color: str, dash: str = "solid") -> go.Scatter:
    az = np.linspace(0.0, 360.0, 181)
    x, y = dome_xy(np.full_like(az, alt_deg), az)
    return go.Scatter(
        x=x,
        y=y,
        mode="lines",
        line=dict(color=color, width=1, dash=dash),
        hoverinfo="skip",
        showlegend=False,
    )


def render_sky_dome(state: SkyState, light: ActiveLight) -> go.Figure:
    """Render Sun, Moon and Venus and highlight the active light.

    Args:
        state: Sky state to draw; an invalid state yields an empty dome.
        light: Resolved light; its source is drawn in its own (clamped) color.

    Returns:
        Plotly Figure object.
    """
    traces: list[go.Scatter] = [
        _circle(0.0, _HORIZON_COLOR),
        _circle(-3.0, _HORIZON_COLOR, dash="dot"),  # Sun selection limit
        _circle(30.0, _HORIZON_COLOR, dash="dot"),
        _circle(60.0, _HORIZON_COLOR, dash="dot"),
    ]

    bodies: list[BodyInfo] = [b for b in (state.sun, state.moon, state.venus) if b is not None]
    if bodies:
        alts = np.array([b.altitude for b in bodies])
        azs = np.array([b.azimuth for b in bodies])
        x, y = dome_xy(alts, azs)
        colors = [
            light.color.to_hex() if light.source.value == b.name else _INACTIVE_COLOR
            for b in bodies
        ]
        traces.append(
            go.Scatter(
                x=x,
                y=y,
                mode="markers+text",
                marker=dict(
                    size=[_BODY_SIZES.get(b.name, 8) for b in bodies],
                    color=colors,
                    line=dict(width=0),
                ),
                text=[b.name for b in bodies],
                textposition="top center",
                textfont=dict(color=_LABEL_COLOR),
                customdata=np.stack([alts, azs], axis=-1),
                hovertemplate="%{text}<br>alt %{customdata[0]:.2f}°"
                "<br>az %{customdata[1]:.2f}°<extra></extra>",
                showlegend=False,
            )
        )

    fig = go.Figure(data=traces)

    annotations = [
        dict(x=0.0, y=1.12, text="N", showarrow=False, font=dict(color=_LABEL_COLOR)),
        dict(x=-1.12, y=0.0, text="E", showarrow=False, font=dict(color=_LABEL_COLOR)),
        dict(x=0.0, y=-1.12, text="S", showarrow=False, font=dict(color=_LABEL_COLOR)),
        dict(x=1.12, y=0.0, text="W", showarrow=False, font=dict(color=_LABEL_COLOR)),
    ]
    if light.source is LightSource.NONE:
        annotations.append(
            dict(x=0.0, y=0.0, text="no direct light", showarrow=False,
                 font=dict(color=_INACTIVE_COLOR))
        )

    limit = (90.0 - _MIN_ALT) / 90.0
    fig.update_layout(
        paper_bgcolor=_BG,
        plot_bgcolor=_BG,
        showlegend=False,
        margin=dict(l=0, r=0, t=0, b=0),
        width=500,
        height=500,
        dragmode="pan",
        xaxis=dict(visible=False, range=[-limit, limit], autorange=False),
        yaxis=dict(
            visible=False, range=[-limit, limit], autorange=False, scaleanchor="x"
        ),
        annotations=annotations,
    )
    fig._config = {"scrollZoom": True, "displayModeBar": False}  # type: ignore[attr-defined]
    return fig
