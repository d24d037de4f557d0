from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..config import (
    END_MINUTES,
    SPEED_EPSILON,
    SPEED_MIN_KMH,
    SPEED_STEP_KMH,
    START_MINUTES,
    TIME_STEP_MIN,
)
from ..errors import EmptyWindowError, MissingColumnError
from ..io.activity_loader import Source, load_activity, parse_timestamps

logger = logging.getLogger(__name__)

TableOrSource = Union[pd.DataFrame, Source]


def _to_table(file_or_table: TableOrSource, filename: Optional[str] = None) -> pd.DataFrame:
    if isinstance(file_or_table, pd.DataFrame):
        return file_or_table.copy()
    return load_activity(file_or_table, filename=filename)


def _require(df: pd.DataFrame, column: str) -> None:
    if column not in df.columns or not df[column].notna().any():
        raise MissingColumnError(column)


def _elapsed_minutes(time: pd.Series) -> pd.Series:
    """Minutes since the first (earliest) sample; time is datetimes or numeric seconds."""
    if pd.api.types.is_datetime64_any_dtype(time):
        return (time - time.iloc[0]).dt.total_seconds() / 60.0
    seconds = pd.to_numeric(time, errors="raise").astype(float)
    return (seconds - seconds.iloc[0]) / 60.0


def step_speeds(minutes: pd.Series, speed_min: float, speed_step: float, time_step: float) -> pd.Series:
    """Nominal treadmill speed for each sample of a fixed-duration, fixed-increment step protocol."""
    elapsed = minutes - minutes.min()
    return np.floor((elapsed + SPEED_EPSILON) / time_step) * speed_step + speed_min


def timeline(file_or_table: TableOrSource, filename: Optional[str] = None) -> pd.DataFrame:
    """Untrimmed samples sorted by time with minutes elapsed since the earliest sample."""
    df = _to_table(file_or_table, filename)
    _require(df, "time")
    df = df.drop(columns=["minutes"], errors="ignore")
    time = df["time"]
    if not (pd.api.types.is_numeric_dtype(time) or pd.api.types.is_datetime64_any_dtype(time)):
        df["time"] = parse_timestamps(time)
    df = df[df["time"].notna()].sort_values("time", kind="stable").reset_index(drop=True)
    df.insert(df.columns.get_loc("time") + 1, "minutes", _elapsed_minutes(df["time"]))
    return df


def window_bounds(file_or_table: TableOrSource, filename: Optional[str] = None) -> Tuple[float, float]:
    """Valid (start, end) range in minutes for trimming the activity."""
    df = timeline(file_or_table, filename)
    if df.empty:
        return 0.0, 0.0
    return 0.0, float(df["minutes"].max())


def prepare(
    file_or_table: TableOrSource,
    start_minutes: float = START_MINUTES,
    end_minutes: float = END_MINUTES,
    speed_min: float = SPEED_MIN_KMH,
    speed_step: float = SPEED_STEP_KMH,
    time_step: float = TIME_STEP_MIN,
    use_device_speed: bool = False,
    filename: Optional[str] = None,
) -> pd.DataFrame:
    """Trim the activity to a window and assign a speed to every sample.

    Minutes are measured from the earliest sample of the whole file, so the window is
    stable whatever is trimmed; the returned minutes are then re-zeroed at the first
    retained row. Without device speed, speed is rebuilt from the step protocol
    (speed_min, +speed_step every time_step minutes) starting at the first retained row.

    The returned table carries the effective window in ``attrs["start_minutes"]`` and
    ``attrs["end_minutes"]`` (end clamped to the last available minute).
    """
    if time_step <= 0:
        raise ValueError(f"time_step must be positive, got {time_step}")

    df = timeline(file_or_table, filename)
    _require(df, "heart_rate")
    if use_device_speed:
        _require(df, "speed")
    elif "speed" not in df.columns:
        df["speed"] = np.nan

    df = df[df["heart_rate"].notna()]
    in_window = (df["minutes"] >= start_minutes) & (df["minutes"] <= end_minutes)
    window = df[in_window].copy()
    if window.empty:
        raise EmptyWindowError(start_minutes, end_minutes, float(df["minutes"].min()), float(df["minutes"].max()))

    effective_end = min(float(end_minutes), float(window["minutes"].max()))

    if not use_device_speed:
        window["speed"] = step_speeds(window["minutes"], speed_min, speed_step, time_step)

    window = window[window["speed"].notna()].reset_index(drop=True)
    if window.empty:
        raise MissingColumnError("speed", source="the selected window")
    window["minutes"] = window["minutes"] - window["minutes"].iloc[0]

    window.attrs["start_minutes"] = float(start_minutes)
    window.attrs["end_minutes"] = effective_end
    logger.info(
        "Prepared %d samples between minute %g and %g (%s speed)",
        len(window),
        start_minutes,
        effective_end,
        "device" if use_device_speed else "protocol",
    )
    return window
