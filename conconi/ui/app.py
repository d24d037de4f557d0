from __future__ import annotations

import argparse
import base64
import io
import logging
import math
from typing import Optional, Tuple

import dash
import dash_bootstrap_components as dbc
import plotly.graph_objects as go
from dash import Dash, dcc, html, Input, Output, State

from ..config import (
    DEFAULT_TEXT_SIZE,
    END_MINUTES,
    SPEED_MIN_KMH,
    SPEED_STEP_KMH,
    START_MINUTES,
    TIME_STEP_MIN,
    UI_HOST,
    UI_PORT,
)
from ..errors import ActivityFileError, ConconiError
from ..io.activity_loader import load_activity
from ..metrics.breakpoint import describe, fit
from ..plotting.figures import render_fit, render_message, render_overview
from ..processing.aggregate import aggregate
from ..processing.prepare import prepare, timeline, window_bounds

logger = logging.getLogger(__name__)

UPLOAD_PROMPT = "Upload a TCX, FIT or CSV file to start."


def decode_upload(contents: str) -> bytes:
    """Decode a dcc.Upload data URL ("data:<mime>;base64,<payload>") into raw bytes."""
    try:
        _header, payload = contents.split(",", 1)
        return base64.b64decode(payload)
    except ValueError as e:
        raise ActivityFileError(f"Could not decode uploaded file: {e}") from e


def _or_default(value, default: float) -> float:
    return default if value is None else float(value)


def run_analysis(
    contents: Optional[str],
    filename: Optional[str],
    start_minutes=START_MINUTES,
    end_minutes=END_MINUTES,
    speed_min=SPEED_MIN_KMH,
    speed_step=SPEED_STEP_KMH,
    time_step=TIME_STEP_MIN,
    alldata: bool = False,
    use_device_speed: bool = False,
    text_size=DEFAULT_TEXT_SIZE,
    title: Optional[str] = "",
) -> Tuple[go.Figure, go.Figure, str]:
    """Full pipeline for one form state: (fit figure, overview figure, status line).

    Errors never escape; they are rendered as a message figure so the page stays usable.
    """
    if not contents:
        return render_message(UPLOAD_PROMPT), render_message(""), UPLOAD_PROMPT

    start = _or_default(start_minutes, START_MINUTES)
    end = _or_default(end_minutes, END_MINUTES)
    overview = render_message("")
    try:
        samples = load_activity(io.BytesIO(decode_upload(contents)), filename=filename or "")
        overview = render_overview(timeline(samples), start, end)
        prepared = prepare(
            samples,
            start_minutes=start,
            end_minutes=end,
            speed_min=_or_default(speed_min, SPEED_MIN_KMH),
            speed_step=_or_default(speed_step, SPEED_STEP_KMH),
            time_step=_or_default(time_step, TIME_STEP_MIN),
            use_device_speed=bool(use_device_speed),
        )
        result = fit(aggregate(prepared, alldata=bool(alldata)))
    except (ConconiError, ValueError) as e:
        logger.warning("Analysis of %s failed: %s", filename, e)
        return render_message(str(e)), overview, f"❌ {e}"
    except Exception as e:
        logger.exception("Unexpected error analysing %s", filename)
        return render_message(f"Unexpected error: {e}"), overview, f"❌ Unexpected error: {e}"

    figure = render_fit(result, text_size=_or_default(text_size, DEFAULT_TEXT_SIZE), title=title or "")
    status = f"✅ {filename}: {describe(result)} (minutes {start:g}-{prepared.attrs['end_minutes']:.1f})"
    return figure, overview, status


def upload_bounds(contents: Optional[str], filename: Optional[str]) -> Optional[float]:
    """Last minute of the uploaded activity, or None when there is nothing readable."""
    if not contents:
        return None
    try:
        _, end = window_bounds(io.BytesIO(decode_upload(contents)), filename=filename or "")
    except (ConconiError, ValueError) as e:
        logger.debug("No window bounds for %s: %s", filename, e)
        return None
    return math.ceil(end * 10) / 10


def _number_field(field_id: str, label: str, value: float, step: float) -> dbc.Row:
    return dbc.Row(
        [
            dbc.Label(label, html_for=field_id, width=6),
            dbc.Col(dbc.Input(id=field_id, type="number", value=value, step=step, debounce=True), width=6),
        ],
        className="mb-2",
    )


def build_layout() -> dbc.Container:
    controls = dbc.Card(
        dbc.CardBody(
            [
                _number_field("start-minutes", "Start at minute", START_MINUTES, 0.1),
                _number_field("end-minutes", "End at minute", END_MINUTES, 0.1),
                _number_field("speed-min", "Starting speed (km/h)", SPEED_MIN_KMH, 0.5),
                _number_field("speed-step", "Speed step (km/h)", SPEED_STEP_KMH, 0.1),
                _number_field("time-step", "Time step (min)", TIME_STEP_MIN, 0.25),
                dbc.Checkbox(
                    id="alldata",
                    label="Use all heart-rate samples (otherwise the mean of the last 5 in each step)",
                    value=False,
                    className="mb-2",
                ),
                dbc.Checkbox(
                    id="use-device-speed",
                    label="Use speed recorded by the device (overrides starting speed and speed step)",
                    value=False,
                    className="mb-3",
                ),
                dbc.Label("Text size for model results", html_for="text-size"),
                dcc.Slider(id="text-size", min=1, max=10, step=1, value=DEFAULT_TEXT_SIZE),
                dbc.Label("Plot title", html_for="plot-title", className="mt-3"),
                dbc.Input(id="plot-title", type="text", value="", debounce=True),
            ]
        )
    )

    return dbc.Container(
        [
            html.H2("Conconi Anaerobic Threshold Calculator", className="my-3"),
            dcc.Upload(
                id="upload",
                children=html.Div(["Drag and drop or ", html.A("choose a TCX, FIT or CSV file")]),
                accept=".tcx,.fit,.csv",
                multiple=False,
                style={
                    "borderWidth": "1px",
                    "borderStyle": "dashed",
                    "borderRadius": "5px",
                    "textAlign": "center",
                    "padding": "20px",
                    "marginBottom": "15px",
                },
            ),
            html.Div(id="status", children=UPLOAD_PROMPT, style={"fontFamily": "monospace", "marginBottom": 10}),
            dbc.Row(
                [
                    dbc.Col(controls, md=4),
                    dbc.Col(
                        [
                            dcc.Graph(id="fit-graph", figure=render_message(UPLOAD_PROMPT)),
                            html.H5("Protocol overview", className="mt-3"),
                            html.P(
                                "Use these plots to set the start and end minute of the step protocol.",
                                className="text-muted",
                            ),
                            dcc.Graph(id="overview-graph", figure=render_message("")),
                        ],
                        md=8,
                    ),
                ]
            ),
        ],
        fluid=True,
    )


def build_app() -> Dash:
    app: Dash = dash.Dash(__name__, external_stylesheets=[dbc.themes.BOOTSTRAP], title="Conconi Threshold")
    app.layout = build_layout()

    # Upload contents live in the browser, so each session recomputes from its own file
    @app.callback(
        Output("end-minutes", "max"),
        Input("upload", "contents"),
        State("upload", "filename"),
    )
    def limit_window(contents, filename):
        return upload_bounds(contents, filename)

    @app.callback(
        Output("fit-graph", "figure"),
        Output("overview-graph", "figure"),
        Output("status", "children"),
        Input("upload", "contents"),
        Input("start-minutes", "value"),
        Input("end-minutes", "value"),
        Input("speed-min", "value"),
        Input("speed-step", "value"),
        Input("time-step", "value"),
        Input("alldata", "value"),
        Input("use-device-speed", "value"),
        Input("text-size", "value"),
        Input("plot-title", "value"),
        State("upload", "filename"),
    )
    def update(contents, start, end, speed_min, speed_step, time_step, alldata, use_device_speed, text_size, title, filename):
        return run_analysis(
            contents,
            filename,
            start_minutes=start,
            end_minutes=end,
            speed_min=speed_min,
            speed_step=speed_step,
            time_step=time_step,
            alldata=alldata,
            use_device_speed=use_device_speed,
            text_size=text_size,
            title=title,
        )

    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Conconi step-test breakpoint calculator (web UI)")
    parser.add_argument("--host", default=UI_HOST)
    parser.add_argument("--port", type=int, default=UI_PORT)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    app = build_app()
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
