"""Conconi step-test analysis: heart-rate breakpoint from a treadmill step protocol.

Modules:
- io: Loading activity files (TCX, FIT, CSV) into pandas DataFrames
- models: Typed result objects
- processing: Window trimming, step-speed reconstruction and per-step aggregation
- regression: Two-segment linear regression routine
- metrics: Breakpoint speed, pace and heart rate
- plotting: Plotly figures
- ui: Dash form for uploading a file and tuning the protocol
"""

from .errors import ConconiError, ActivityFileError, MissingColumnError, EmptyWindowError, FitNotFoundError
from .io.activity_loader import load_activity
from .processing.prepare import prepare, window_bounds
from .processing.aggregate import aggregate
from .regression.piecewise import piecewise_linear
from .metrics.breakpoint import fit
from .plotting.figures import fit_and_render, render_overview

__version__ = "1.0.0"

__all__ = [
    "ConconiError",
    "ActivityFileError",
    "MissingColumnError",
    "EmptyWindowError",
    "FitNotFoundError",
    "load_activity",
    "prepare",
    "window_bounds",
    "aggregate",
    "piecewise_linear",
    "fit",
    "fit_and_render",
    "render_overview",
]
