import plotly.graph_objects as go
import pytest

from conconi.errors import FitNotFoundError
from conconi.plotting.figures import fit_and_render, font_size_pt, render_message, render_overview
from conconi.processing.prepare import prepare, timeline


def test_fit_and_render_draws_points_line_and_labels(step_test):
    table = prepare(step_test, start_minutes=2)
    fig = fit_and_render(table, title="Treadmill 2023-09-15")
    assert isinstance(fig, go.Figure)
    assert [t.mode for t in fig.data] == ["markers", "lines"]
    assert len(fig.data[0].x) == 10
    texts = [a.text for a in fig.layout.annotations]
    assert texts == ["11.5 km/h", "5.2 min/km", "150.0 bpm"]
    assert fig.layout.title.text == "Treadmill 2023-09-15"
    assert fig.data[1].line.color == "red"


def test_alldata_plots_every_sample(step_test):
    table = prepare(step_test, start_minutes=2)
    fig = fit_and_render(table, alldata=True)
    assert len(fig.data[0].x) == len(table)


def test_text_size_scales_annotation_font(step_test):
    table = prepare(step_test, start_minutes=2)
    fig = fit_and_render(table, text_size=8)
    assert fig.layout.annotations[0].font.size == pytest.approx(font_size_pt(8))
    assert font_size_pt(5) == pytest.approx(14.225)


def test_fit_failure_propagates(step_test):
    table = prepare(step_test, start_minutes=2, end_minutes=4)
    with pytest.raises(FitNotFoundError):
        fit_and_render(table)


def test_overview_has_three_panels_and_window(step_test):
    fig = render_overview(timeline(step_test), start_minutes=2, end_minutes=10)
    assert len(fig.data) == 3
    assert {t.yaxis for t in fig.data} == {"y", "y2", "y3"}
    assert len(fig.layout.shapes) >= 1


def test_overview_skips_empty_panels(step_test):
    fig = render_overview(timeline(step_test.drop(columns=["cadence"])))
    assert len(fig.data) == 2
    assert len(fig.layout.shapes) == 0


def test_render_message():
    fig = render_message("No samples in window")
    assert fig.layout.annotations[0].text == "No samples in window"
    assert len(fig.data) == 0
