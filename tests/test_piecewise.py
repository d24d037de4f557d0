import numpy as np
import pytest

from conconi.errors import FitNotFoundError
from conconi.regression.piecewise import bootstrap_ci, piecewise_linear


def _hinge(x, breakpoint=11.5):
    return 120.0 + 6.0 * (np.minimum(x, breakpoint) - 6.0) + 2.0 * np.maximum(x - breakpoint, 0.0)


def test_recovers_breakpoint_and_slopes():
    x = np.arange(6.0, 16.0)
    fit = piecewise_linear(x, _hinge(x))
    assert fit.breakpoint == pytest.approx(11.5, abs=1e-3)
    assert fit.slope_below == pytest.approx(6.0, abs=1e-3)
    assert fit.slope_above == pytest.approx(2.0, abs=1e-3)
    assert fit.rss == pytest.approx(0.0, abs=1e-4)
    assert fit.n_obs == 10


def test_fitted_curve_contains_levels_and_breakpoint():
    x = np.arange(6.0, 16.0)
    fit = piecewise_linear(x, _hinge(x))
    assert len(fit.x) == 11
    assert np.all(np.diff(fit.x) > 0)
    assert fit.breakpoint in fit.x
    assert np.allclose(fit.y, _hinge(fit.x), atol=1e-2)


def test_breakpoint_kept_inside_interior_levels():
    x = np.arange(6.0, 12.0)
    fit = piecewise_linear(x, _hinge(x, breakpoint=6.5))
    assert 7.0 <= fit.breakpoint <= 10.0


def test_repeated_samples_per_level_with_noise():
    rng = np.random.default_rng(3)
    x = np.repeat(np.arange(6.0, 16.0), 8)
    y = _hinge(x) + rng.normal(0, 0.5, x.size)
    fit = piecewise_linear(x, y)
    assert fit.breakpoint == pytest.approx(11.5, abs=0.5)


def test_two_levels_raise():
    with pytest.raises(FitNotFoundError):
        piecewise_linear([8.0, 8.0, 9.0, 9.0], [140.0, 141.0, 150.0, 151.0])


def test_linear_data_has_no_breakpoint():
    x = np.arange(6.0, 16.0)
    with pytest.raises(FitNotFoundError):
        piecewise_linear(x, 100.0 + 4.0 * x)


def test_flat_data_has_no_breakpoint():
    with pytest.raises(FitNotFoundError):
        piecewise_linear(np.arange(6.0, 12.0), np.full(6, 150.0))


def test_non_finite_pairs_are_ignored():
    x = np.append(np.arange(6.0, 16.0), [np.nan, 17.0])
    y = np.append(_hinge(np.arange(6.0, 16.0)), [150.0, np.nan])
    fit = piecewise_linear(x, y)
    assert fit.n_obs == 10
    assert fit.breakpoint == pytest.approx(11.5, abs=1e-3)


def test_length_mismatch_is_an_error():
    with pytest.raises(ValueError):
        piecewise_linear([1.0, 2.0, 3.0], [1.0, 2.0])


def test_bootstrap_interval_brackets_breakpoint():
    rng = np.random.default_rng(11)
    x = np.repeat(np.arange(6.0, 16.0), 5)
    y = _hinge(x) + rng.normal(0, 0.5, x.size)
    estimate = piecewise_linear(x, y).breakpoint
    low, high = bootstrap_ci(x, y, samples=200, random_state=1)
    assert low <= estimate <= high
    assert abs((low + high) / 2 - 11.5) < 0.5


def test_bootstrap_without_breakpoints_raises():
    x = np.arange(6.0, 16.0)
    with pytest.raises(FitNotFoundError):
        bootstrap_ci(x, 100.0 + 4.0 * x, samples=20, random_state=0)


def test_predict_matches_fitted_curve():
    x = np.arange(6.0, 16.0)
    fit = piecewise_linear(x, _hinge(x))
    assert np.allclose(fit.predict(fit.x), fit.y)
    assert fit.predict([fit.breakpoint + 1.0])[0] == pytest.approx(_hinge(np.array([fit.breakpoint + 1.0]))[0], abs=1e-2)
