from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from ..config import BOOTSTRAP_SAMPLES, CI_SIG_LEVEL
from ..errors import FitNotFoundError, MissingColumnError
from ..models.types import FitResult, PiecewiseFit
from ..regression.piecewise import bootstrap_ci, piecewise_linear

logger = logging.getLogger(__name__)


def pace_min_per_km(speed_kmh: float) -> float:
    """Pace in minutes per kilometre for a speed in km/h."""
    if speed_kmh <= 0:
        raise ValueError(f"Speed must be positive to derive a pace, got {speed_kmh}")
    return 60.0 / speed_kmh


def _heart_rate_below(piecewise: PiecewiseFit) -> float:
    # Fitted value at the largest sampled speed strictly below the breakpoint
    below = piecewise.x < piecewise.breakpoint
    if not below.any():
        raise FitNotFoundError("Breakpoint lies at or below the lowest speed")
    return float(piecewise.y[below][-1])


def fit(
    pairs: pd.DataFrame,
    ci: bool = False,
    bootstrap_samples: int = BOOTSTRAP_SAMPLES,
    sig_level: float = CI_SIG_LEVEL,
    random_state: Optional[int] = None,
) -> FitResult:
    """Fit heart rate against speed with a two-segment line and derive the breakpoint metrics.

    ``pairs`` holds ``speed`` (km/h) and ``heart_rate`` columns, one row per step or per
    sample. FitNotFoundError from the regression propagates unchanged.
    """
    for col in ("speed", "heart_rate"):
        if col not in pairs.columns:
            raise MissingColumnError(col)
    x = pairs["speed"].to_numpy(dtype=float)
    y = pairs["heart_rate"].to_numpy(dtype=float)

    piecewise = piecewise_linear(x, y)
    if ci:
        piecewise.ci_low, piecewise.ci_high = bootstrap_ci(
            x, y, samples=bootstrap_samples, sig_level=sig_level, random_state=random_state
        )

    result = FitResult(
        breakpoint_speed=piecewise.breakpoint,
        breakpoint_heart_rate=_heart_rate_below(piecewise),
        pace=pace_min_per_km(piecewise.breakpoint),
        segment_points=pd.DataFrame({"speed": piecewise.x, "heart_rate": piecewise.y}),
        pairs=pairs[["speed", "heart_rate"]].reset_index(drop=True),
        piecewise=piecewise,
    )
    logger.info(
        "Breakpoint %s (%s, %s); slopes %.2f -> %.2f bpm per km/h; RSS %.1f over %d points%s",
        result.speed_label,
        result.pace_label,
        result.heart_rate_label,
        piecewise.slope_below,
        piecewise.slope_above,
        piecewise.rss,
        piecewise.n_obs,
        "" if piecewise.ci_low is None else f"; {int(round((1 - sig_level) * 100))}% CI [{piecewise.ci_low:.2f}, {piecewise.ci_high:.2f}]",
    )
    return result


def describe(result: FitResult) -> str:
    """One-line text summary, as shown beneath the plot."""
    parts = [f"Breakpoint {result.speed_label}", result.pace_label, result.heart_rate_label]
    pw = result.piecewise
    if pw.ci_low is not None and pw.ci_high is not None:
        parts.append(f"CI {np.round(pw.ci_low, 1)}-{np.round(pw.ci_high, 1)} km/h")
    return " | ".join(parts)
