from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from fitparse import FitFile

from ..errors import ActivityFileError

logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = ["time", "heart_rate", "speed", "cadence"]
MPS_TO_KMH = 3.6

_CSV_ALIASES = {
    "timestamp": "time",
    "hr": "heart_rate",
    "heartrate": "heart_rate",
    "heart_rate_bpm": "heart_rate",
    "speed_kmh": "speed",
    "cadence_running": "cadence",
}

Source = Union[str, Path, BinaryIO]


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _float_or_nan(text: Optional[str]) -> float:
    if text is None:
        return np.nan
    try:
        return float(text)
    except ValueError:
        return np.nan


def parse_timestamps(values) -> pd.Series:
    """Timestamps (strings or datetimes, any offset) as naive UTC datetimes."""
    return pd.to_datetime(values, utc=True, format="ISO8601").dt.tz_convert(None)


def _parse_trackpoint(point: ET.Element) -> Dict[str, object]:
    row: Dict[str, object] = {"time": None, "heart_rate": np.nan, "speed": np.nan, "cadence": np.nan}
    in_heart_rate = False
    for elem in point.iter():
        name = _local(elem.tag)
        if name == "Time":
            row["time"] = (elem.text or "").strip() or None
        elif name == "HeartRateBpm":
            in_heart_rate = True
        elif name == "Value" and in_heart_rate:
            row["heart_rate"] = _float_or_nan(elem.text)
            in_heart_rate = False
        elif name == "Speed":
            row["speed"] = _float_or_nan(elem.text) * MPS_TO_KMH
        elif name in ("Cadence", "RunCadence") and np.isnan(row["cadence"]):
            row["cadence"] = _float_or_nan(elem.text)
    return row


def load_tcx(source: Source) -> pd.DataFrame:
    """Parse Trackpoints of a TCX file. Speed comes from the TPX extension (m/s) and is returned in km/h."""
    try:
        root = ET.parse(source).getroot()
    except (ET.ParseError, OSError) as e:
        raise ActivityFileError(f"Could not read TCX file: {e}") from e

    rows: List[Dict[str, object]] = []
    for point in root.iter():
        if _local(point.tag) != "Trackpoint":
            continue
        row = _parse_trackpoint(point)
        if row["time"] is not None:
            rows.append(row)
    if not rows:
        raise ActivityFileError("No trackpoints found in TCX file")

    df = pd.DataFrame.from_records(rows, columns=SAMPLE_COLUMNS)
    df["time"] = parse_timestamps(df["time"])
    return df


def _extract_record_fields(record) -> Dict[str, object]:
    data: Dict[str, object] = {"time": None, "heart_rate": np.nan, "speed": np.nan, "cadence": np.nan}
    speed_raw = None
    speed_enh = None
    for field in record:
        name = field.name
        value = field.value
        if name == "timestamp":
            # Ensure timezone-aware then convert to naive UTC for consistency
            if isinstance(value, datetime):
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                value = value.astimezone(timezone.utc).replace(tzinfo=None)
            data["time"] = value
        elif name == "heart_rate":
            data["heart_rate"] = float(value) if value is not None else np.nan
        elif name == "cadence":
            data["cadence"] = float(value) if value is not None else np.nan
        elif name == "speed":
            speed_raw = float(value) if value is not None else None
        elif name == "enhanced_speed":
            speed_enh = float(value) if value is not None else None
    # Prefer enhanced speed deterministically
    speed = speed_enh if speed_enh is not None else speed_raw
    if speed is not None:
        data["speed"] = speed * MPS_TO_KMH
    return data


def load_fit(source: Source) -> pd.DataFrame:
    """Load FIT 'record' messages. Speed is converted from m/s to km/h."""
    records = []
    try:
        fit = FitFile(source)
        for message in fit.get_messages("record"):
            row = _extract_record_fields(message)
            if row["time"] is not None:
                records.append(row)
    except (ValueError, OSError) as e:
        raise ActivityFileError(f"Could not read FIT file: {e}") from e
    if not records:
        raise ActivityFileError("No record messages found in FIT file")
    df = pd.DataFrame.from_records(records, columns=SAMPLE_COLUMNS)
    df["time"] = pd.to_datetime(df["time"])
    return df


def load_csv(source: Source) -> pd.DataFrame:
    """Load a CSV with a time column (seconds or timestamps) and heart_rate; speed is read as km/h."""
    try:
        df = pd.read_csv(source)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        raise ActivityFileError(f"Could not read CSV file: {e}") from e
    df = df.rename(columns=lambda c: str(c).strip().lower())
    renames = {}
    for alias, column in _CSV_ALIASES.items():
        # first alias wins; later ones for the same column are left as they are
        if alias in df.columns and column not in df.columns and column not in renames.values():
            renames[alias] = column
    df = df.rename(columns=renames)
    if "time" in df.columns and not pd.api.types.is_numeric_dtype(df["time"]):
        df["time"] = parse_timestamps(df["time"])
    return df


_LOADERS = {
    ".tcx": load_tcx,
    ".fit": load_fit,
    ".csv": load_csv,
}


def ensure_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Ensure optional sample columns exist even if missing in the source."""
    df = df.copy()
    for col in ("speed", "cadence"):
        if col not in df.columns:
            df[col] = np.nan
    return df


def load_activity(source: Source, filename: Optional[str] = None) -> pd.DataFrame:
    """Load an activity file into a sample table.

    Columns: time (naive UTC datetime, or seconds for numeric CSV time), heart_rate (bpm),
    speed (km/h), cadence. Rows are sorted by time with duplicate timestamps dropped.
    """
    name = filename
    if name is None:
        if isinstance(source, (str, Path)):
            name = str(source)
        else:
            name = getattr(source, "name", "") or ""
    suffix = Path(name).suffix.lower()
    loader = _LOADERS.get(suffix)
    if loader is None:
        raise ActivityFileError(f"Unsupported activity file type '{suffix or name}' (expected .tcx, .fit or .csv)")

    df = ensure_columns(loader(source))
    if "time" in df.columns:
        df = df.sort_values("time", kind="stable").drop_duplicates("time").reset_index(drop=True)
    logger.debug("Loaded %d samples from %s", len(df), name)
    return df
