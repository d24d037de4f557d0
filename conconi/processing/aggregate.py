from __future__ import annotations

import pandas as pd

from ..config import STEADY_STATE_SAMPLES
from ..errors import MissingColumnError


def aggregate(rows: pd.DataFrame, alldata: bool = False, tail: int = STEADY_STATE_SAMPLES) -> pd.DataFrame:
    """Reduce prepared rows to (speed, heart_rate) pairs.

    With ``alldata`` every row is kept. Otherwise each speed step becomes one pair holding
    the mean of its last ``tail`` heart-rate readings, since heart rate only settles near
    the end of a step. Steps keep their order of first appearance.
    """
    for col in ("speed", "heart_rate"):
        if col not in rows.columns:
            raise MissingColumnError(col)
    pairs = rows[["speed", "heart_rate"]].reset_index(drop=True)
    if alldata:
        return pairs.copy()
    grouped = pairs.groupby("speed", sort=False)["heart_rate"]
    return grouped.apply(lambda hr: hr.tail(tail).mean()).reset_index()
