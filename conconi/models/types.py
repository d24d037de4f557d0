from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass
class PiecewiseFit:
    """Continuous two-segment fit y = intercept + slope_below*x + (slope_above - slope_below)*max(x - breakpoint, 0)."""
    breakpoint: float
    intercept: float
    slope_below: float
    slope_above: float
    x: np.ndarray  # sorted distinct input x with the breakpoint inserted
    y: np.ndarray  # fitted values at x
    rss: float
    n_obs: int
    ci_low: Optional[float] = None
    ci_high: Optional[float] = None

    def predict(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        hinge = np.maximum(x - self.breakpoint, 0.0)
        return self.intercept + self.slope_below * x + (self.slope_above - self.slope_below) * hinge


@dataclass
class FitResult:
    breakpoint_speed: float
    breakpoint_heart_rate: float
    pace: float  # min/km, meaningful when speed is in km/h
    segment_points: pd.DataFrame  # columns: speed, heart_rate
    pairs: pd.DataFrame  # the (speed, heart_rate) data that was fitted
    piecewise: PiecewiseFit

    @property
    def speed_label(self) -> str:
        return f"{round(self.breakpoint_speed, 1)} km/h"

    @property
    def pace_label(self) -> str:
        return f"{round(self.pace, 1)} min/km"

    @property
    def heart_rate_label(self) -> str:
        return f"{round(self.breakpoint_heart_rate, 1)} bpm"

    @property
    def labels(self) -> List[str]:
        return [self.speed_label, self.pace_label, self.heart_rate_label]

    @property
    def segment_tuples(self) -> List[Tuple[float, float]]:
        return list(zip(self.segment_points["speed"].tolist(), self.segment_points["heart_rate"].tolist()))
