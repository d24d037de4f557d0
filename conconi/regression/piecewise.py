from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
from scipy.optimize import minimize_scalar

from ..config import BOOTSTRAP_SAMPLES, CI_SIG_LEVEL, MIN_SLOPE_CHANGE, MIN_SPEED_LEVELS
from ..errors import FitNotFoundError
from ..models.types import PiecewiseFit

logger = logging.getLogger(__name__)

GRID_POINTS = 100


def _design(x: np.ndarray, breakpoint: float) -> np.ndarray:
    return np.column_stack([np.ones_like(x), x, np.maximum(x - breakpoint, 0.0)])


def _solve(x: np.ndarray, y: np.ndarray, breakpoint: float) -> Tuple[np.ndarray, float]:
    coef, _, _, _ = np.linalg.lstsq(_design(x, breakpoint), y, rcond=None)
    resid = y - _design(x, breakpoint) @ coef
    return coef, float(resid @ resid)


def _clean(x, y) -> Tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same length ({x.size} != {y.size})")
    ok = np.isfinite(x) & np.isfinite(y)
    return x[ok], y[ok]


def _search_breakpoint(x: np.ndarray, y: np.ndarray, lo: float, hi: float) -> float:
    """Minimise RSS over the breakpoint: coarse grid, then bounded refinement around the best cell."""
    grid = np.unique(np.concatenate([np.linspace(lo, hi, GRID_POINTS), np.unique(x[(x >= lo) & (x <= hi)])]))
    rss = np.array([_solve(x, y, c)[1] for c in grid])
    best = int(np.argmin(rss))
    left = grid[max(best - 1, 0)]
    right = grid[min(best + 1, len(grid) - 1)]
    if right <= left:
        return float(grid[best])
    res = minimize_scalar(lambda c: _solve(x, y, c)[1], bounds=(left, right), method="bounded")
    if res.success and np.isfinite(res.x) and res.fun <= rss[best]:
        return float(res.x)
    return float(grid[best])


def piecewise_linear(x, y) -> PiecewiseFit:
    """Fit a continuous two-segment line (broken stick) and locate its change point.

    Model: y = b0 + b1*x + b2*max(x - c, 0). The change point c is restricted to lie
    between the second-lowest and second-highest distinct x so that each segment spans
    at least two levels. Raises FitNotFoundError when there are too few distinct x
    levels or the data shows no change in slope.
    """
    x, y = _clean(x, y)
    levels = np.unique(x)
    if levels.size < MIN_SPEED_LEVELS:
        raise FitNotFoundError(
            f"At least {MIN_SPEED_LEVELS} distinct speed levels are needed for a two-segment fit, got {levels.size}"
        )

    breakpoint = _search_breakpoint(x, y, float(levels[1]), float(levels[-2]))
    coef, rss = _solve(x, y, breakpoint)
    if not np.all(np.isfinite(coef)) or not np.isfinite(breakpoint):
        raise FitNotFoundError("Two-segment regression did not converge")

    b0, b1, b2 = (float(c) for c in coef)
    y_span = float(np.ptp(y))
    scale = y_span / float(levels[-1] - levels[0])
    if y_span == 0.0 or abs(b2) <= MIN_SLOPE_CHANGE * scale:
        raise FitNotFoundError("No change in slope found; heart rate is linear in speed over this range")

    curve_x = np.union1d(levels, [breakpoint])
    result = PiecewiseFit(
        breakpoint=breakpoint,
        intercept=b0,
        slope_below=b1,
        slope_above=b1 + b2,
        x=curve_x,
        y=np.empty(0),
        rss=rss,
        n_obs=int(x.size),
    )
    result.y = result.predict(curve_x)
    return result


def bootstrap_ci(
    x,
    y,
    samples: int = BOOTSTRAP_SAMPLES,
    sig_level: float = CI_SIG_LEVEL,
    random_state: Optional[int] = None,
) -> Tuple[float, float]:
    """Percentile confidence interval of the change point from case-resampling bootstrap."""
    x, y = _clean(x, y)
    rng = np.random.default_rng(random_state)
    estimates = []
    for _ in range(samples):
        idx = rng.integers(0, x.size, size=x.size)
        try:
            estimates.append(piecewise_linear(x[idx], y[idx]).breakpoint)
        except FitNotFoundError:
            continue
    if len(estimates) < samples / 2:
        raise FitNotFoundError(
            f"Only {len(estimates)} of {samples} bootstrap resamples produced a breakpoint; confidence interval unavailable"
        )
    low, high = np.quantile(estimates, [sig_level / 2, 1 - sig_level / 2])
    logger.debug("Bootstrap CI from %d/%d resamples: [%.3f, %.3f]", len(estimates), samples, low, high)
    return float(low), float(high)
