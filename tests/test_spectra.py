import numpy as np
import pytest

from gobbical.histogram import Histogram
from gobbical.spectra import (
    angle_deviation,
    apply_efficiency,
    background_scale,
    efficiency_factors,
    subtract_background,
)


def response():
    h = Histogram(20, 0.0, 20.0)
    for index, value in enumerate([0, 2, 4, 8, 0, 1], start=0):
        h.contents[index] = value
    return h


def test_efficiency_factors_normalise_to_maximum():
    h = response()
    factors = efficiency_factors(h, 6)
    contents = h.contents[:6]
    filled = contents > 0
    assert np.allclose(factors[filled] * contents[filled], contents.max())
    assert (factors[~filled] == 0).all()


def test_efficiency_factors_pad_beyond_histogram():
    factors = efficiency_factors(response(), 400)
    assert factors.shape == (400,)
    assert (factors[30:] == 0).all()


def test_apply_efficiency_flattens_response():
    h = response()
    factors = efficiency_factors(h, 400)
    corrected = apply_efficiency(h.copy(), factors)
    filled = h.contents > 0
    assert np.allclose(corrected.contents[filled], h.contents.max())
    assert np.allclose(corrected.contents[~filled], 0)


def test_background_scale_invariant():
    scale = background_scale(16.994, 2.736, 1.52)
    assert scale * 2.736 * 1.52 == pytest.approx(16.994)


def test_background_scale_rejects_zero():
    with pytest.raises(ValueError):
        background_scale(1.0, 0.0, 1.52)


def test_subtract_background_leaves_inputs():
    target = Histogram(5, 0, 5)
    background = Histogram(5, 0, 5)
    target.fill(1.5, 6.0)
    background.fill(1.5, 2.0)
    result = subtract_background(target, background, 3.0)
    assert result.integral() == pytest.approx(0.0)
    assert target.integral() == pytest.approx(6.0)
    assert background.integral() == pytest.approx(2.0)


def test_subtract_background_mismatched_binning():
    with pytest.raises(ValueError):
        subtract_background(Histogram(5, 0, 5), Histogram(4, 0, 5), 1.0)


def test_angle_deviation_relations():
    centroids = [(0.72, 0.01), (0.70, 0.02)]
    centers = [-0.96, -0.88]
    points = angle_deviation(centroids, centers)
    for point, (mean, sigma), center in zip(points, centroids, centers):
        assert point.deviation + 0.7117 == pytest.approx(mean)
        assert point.cos_theta - center == pytest.approx(0.08)
        assert point.cos_theta_error == pytest.approx(0.08 / 2)
        assert point.deviation_error == sigma


def test_angle_deviation_length_mismatch():
    with pytest.raises(ValueError):
        angle_deviation([(0.7, 0.01)], [0.1, 0.2])