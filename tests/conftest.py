import numpy as np
import pandas as pd
import pytest

START = pd.Timestamp("2023-09-15 10:00:00")
TRUE_BREAKPOINT = 11.5


def steady_state_hr(speed, breakpoint=TRUE_BREAKPOINT):
    # 6 bpm per km/h up to the breakpoint, 2 bpm per km/h above it
    return 120.0 + 6.0 * (min(speed, breakpoint) - 6.0) + 2.0 * max(speed - breakpoint, 0.0)


def _make_step_test(n_steps=10, step_s=90, sample_s=5, warmup_s=120, speed_min=6.0, speed_step=1.0):
    rows = []
    # Walking warm-up before the protocol starts
    for t in range(0, warmup_s, sample_s):
        rows.append((START + pd.Timedelta(seconds=t), 95.0, 4.0, 60.0))
    per_step = step_s // sample_s
    for k in range(n_steps):
        speed = speed_min + k * speed_step
        target = steady_state_hr(speed)
        for j in range(per_step):
            t = warmup_s + k * step_s + j * sample_s
            # HR climbs during the step and settles for the last 5 samples
            lag = max(per_step - 5 - j, 0) * 0.25
            rows.append((START + pd.Timedelta(seconds=t), target - lag, speed, 150.0 + 2 * k))
    return pd.DataFrame(rows, columns=["time", "heart_rate", "speed", "cadence"])


def _to_tcx(samples):
    points = []
    for row in samples.itertuples(index=False):
        hr = "" if np.isnan(row.heart_rate) else f"<HeartRateBpm><Value>{int(round(row.heart_rate))}</Value></HeartRateBpm>"
        points.append(
            "<Trackpoint>"
            f"<Time>{row.time.strftime('%Y-%m-%dT%H:%M:%S.000Z')}</Time>"
            f"{hr}"
            "<Extensions><ns3:TPX>"
            f"<ns3:Speed>{row.speed / 3.6:.6f}</ns3:Speed>"
            f"<ns3:RunCadence>{int(row.cadence)}</ns3:RunCadence>"
            "</ns3:TPX></Extensions>"
            "</Trackpoint>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2" '
        'xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2">'
        '<Activities><Activity Sport="Running"><Id>2023-09-15T10:00:00.000Z</Id>'
        '<Lap StartTime="2023-09-15T10:00:00.000Z"><Track>'
        + "".join(points)
        + "</Track></Lap></Activity></Activities></TrainingCenterDatabase>"
    )


@pytest.fixture
def make_step_test():
    return _make_step_test


@pytest.fixture
def step_test():
    return _make_step_test()


@pytest.fixture
def to_tcx():
    return _to_tcx


@pytest.fixture
def hinge_pairs():
    speeds = np.arange(6.0, 16.0)
    return pd.DataFrame({"speed": speeds, "heart_rate": [steady_state_hr(s) for s in speeds]})
