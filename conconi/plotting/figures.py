from __future__ import annotations

from typing import Optional

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from ..config import DEFAULT_TEXT_SIZE, GGPLOT_PT_PER_MM
from ..metrics.breakpoint import fit
from ..models.types import FitResult
from ..processing.aggregate import aggregate

FIT_LINE_COLOR = "red"
POINT_COLOR = "black"
WINDOW_COLOR = "rgba(31, 119, 180, 0.12)"


def font_size_pt(text_size: float) -> float:
    """Convert a ggplot-style text size (mm) into a font size in points."""
    return float(text_size) * GGPLOT_PT_PER_MM


def render_fit(result: FitResult, text_size: float = DEFAULT_TEXT_SIZE, title: str = "") -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=result.pairs["speed"],
            y=result.pairs["heart_rate"],
            mode="markers",
            name="Heart rate",
            marker=dict(color=POINT_COLOR, size=7),
        )
    )
    fig.add_trace(
        go.Scatter(
            x=result.segment_points["speed"],
            y=result.segment_points["heart_rate"],
            mode="lines",
            name="Two-segment fit",
            line=dict(color=FIT_LINE_COLOR, width=3),
        )
    )
    pw = result.piecewise
    if pw.ci_low is not None and pw.ci_high is not None:
        fig.add_vrect(x0=pw.ci_low, x1=pw.ci_high, fillcolor=FIT_LINE_COLOR, opacity=0.1, line_width=0)

    # Labels stacked in the bottom-right corner, speed lowest
    size = font_size_pt(text_size)
    for i, label in enumerate(result.labels):
        fig.add_annotation(
            text=label,
            xref="paper",
            yref="paper",
            x=0.99,
            y=0.02,
            xanchor="right",
            yanchor="bottom",
            yshift=i * size * 1.5,
            showarrow=False,
            font=dict(size=size),
        )

    fig.update_layout(
        title=title or None,
        xaxis_title="Speed (km/h)",
        yaxis_title="Heart rate (bpm)",
        template="plotly_white",
        showlegend=False,
        margin=dict(l=60, r=20, t=60 if title else 30, b=50),
    )
    return fig


def fit_and_render(
    table: pd.DataFrame,
    alldata: bool = False,
    text_size: float = DEFAULT_TEXT_SIZE,
    title: str = "",
) -> go.Figure:
    """Aggregate a prepared table, fit the breakpoint and plot it with speed, pace and heart-rate labels."""
    result = fit(aggregate(table, alldata=alldata))
    return render_fit(result, text_size=text_size, title=title)


def render_overview(
    table: pd.DataFrame,
    start_minutes: Optional[float] = None,
    end_minutes: Optional[float] = None,
) -> go.Figure:
    """Speed, cadence and heart rate against minutes; the selected window is shaded.

    Used to find the start and end of the step protocol before fitting.
    """
    panels = [("speed", "Speed (km/h)"), ("cadence", "Cadence"), ("heart_rate", "Heart rate (bpm)")]
    fig = make_subplots(rows=len(panels), cols=1, shared_xaxes=True, vertical_spacing=0.04)
    for row, (col, label) in enumerate(panels, start=1):
        if col in table.columns and table[col].notna().any():
            fig.add_trace(
                go.Scatter(x=table["minutes"], y=table[col], mode="markers", marker=dict(size=3), name=label),
                row=row,
                col=1,
            )
        fig.update_yaxes(title_text=label, row=row, col=1)
    fig.update_xaxes(title_text="Minutes", row=len(panels), col=1)

    if start_minutes is not None and end_minutes is not None and not table.empty:
        x0 = max(float(start_minutes), float(table["minutes"].min()))
        x1 = min(float(end_minutes), float(table["minutes"].max()))
        if x1 > x0:
            fig.add_vrect(x0=x0, x1=x1, fillcolor=WINDOW_COLOR, line_width=0, row="all", col=1)

    fig.update_layout(template="plotly_white", showlegend=False, height=600, margin=dict(l=60, r=20, t=30, b=50))
    return fig


def render_message(text: str) -> go.Figure:
    """Blank figure carrying a message in place of a plot."""
    fig = go.Figure()
    fig.add_annotation(
        text=text,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
        showarrow=False,
        font=dict(size=16, color="#b00020"),
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(template="plotly_white")
    return fig
