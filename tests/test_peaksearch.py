import numpy as np
import pytest

from gobbical.histogram import Histogram
from gobbical.peaksearch import (
    StripCalibration,
    alpha_peak,
    fit_alpha_peak,
    peak_fit,
    peak_search,
    sort_with_carry,
    write_front_back,
)

AREA = 50000.0
SIGMA = 3.0
TAIL = 2.0


def _spectrum(centroids, nbins=1000, entries=10000):
    histogram = Histogram(nbins, 0.0, float(nbins), "spectrum")
    centers = (np.arange(1, nbins + 1) - 0.5) * histogram.width
    values = sum(alpha_peak(centers, AREA, c, SIGMA, TAIL) for c in centroids)
    histogram.contents[1 : nbins + 1] = values
    histogram.entries = entries
    return histogram


def test_sort_with_carry_keeps_pairs():
    values, carry = sort_with_carry([3.0, 1.0, 2.0], ["c", "a", "b"])
    assert values == [1.0, 2.0, 3.0]
    assert carry == ["a", "b", "c"]


def test_sort_with_carry_is_stable():
    values, carry = sort_with_carry([2, 1, 2, 1], [0, 1, 2, 3])
    assert values == [1, 1, 2, 2]
    assert carry == [1, 3, 0, 2]


def test_sort_with_carry_length_mismatch():
    with pytest.raises(ValueError):
        sort_with_carry([1, 2], [1])


def test_alpha_peak_is_finite_far_from_centroid():
    values = alpha_peak(np.array([-1000.0, 1000.0]), AREA, 300.0, 0.1, 0.1)
    assert np.all(np.isfinite(values))
    assert np.all(values >= 0)
    assert values.max() < 1e-6


def test_alpha_peak_has_low_side_tail():
    below = alpha_peak(290.0, AREA, 300.0, SIGMA, TAIL)
    above = alpha_peak(310.0, AREA, 300.0, SIGMA, TAIL)
    assert below > above


def test_peak_search_finds_both_peaks():
    histogram = _spectrum([300.0, 600.0])
    peaks = peak_search(histogram, 20, 2)
    assert len(peaks) == 2
    for index, expected in zip(peaks, [300.0, 600.0]):
        assert abs(histogram.bin_center(index) - expected) <= 6


def test_peak_search_stops_at_requested_count():
    histogram = _spectrum([300.0, 600.0])
    peaks = peak_search(histogram, 20, 1)
    assert len(peaks) == 1
    assert abs(histogram.bin_center(peaks[0]) - 300.0) <= 6


def test_peak_search_ignores_flat_spectrum():
    histogram = Histogram(500, 0.0, 500.0)
    assert peak_search(histogram, 20, 3) == []


def test_peak_search_does_not_change_input():
    histogram = _spectrum([400.0])
    before = histogram.contents.copy()
    peak_search(histogram, 20, 1)
    assert np.array_equal(histogram.contents, before)


def test_fit_alpha_peak_recovers_centroid():
    histogram = _spectrum([350.3])
    (index,) = peak_search(histogram, 20, 1)
    area, centroid, sigma, tail = fit_alpha_peak(histogram, index)
    assert centroid == pytest.approx(350.3, abs=0.05)
    assert sigma == pytest.approx(SIGMA, rel=0.05)
    assert tail == pytest.approx(TAIL, rel=0.05)


def test_fit_alpha_peak_rejects_empty_region():
    histogram = Histogram(1000, 0.0, 1000.0)
    with pytest.raises(ValueError):
        fit_alpha_peak(histogram, 500)


def test_peak_fit_gives_linear_calibration():
    histogram = _spectrum([300.0, 600.0])
    (result,) = peak_fit([histogram], [3000.0, 6000.0, 0.0], [1.0, 1.0, 0.0], 2)
    assert result.gain == pytest.approx(0.01, rel=1e-3)
    assert result.offset == pytest.approx(0.0, abs=1e-3)
    assert list(result.centroids) == sorted(result.centroids)


def test_peak_fit_marks_low_statistics_as_failed():
    histogram = _spectrum([300.0, 600.0], entries=10)
    (result,) = peak_fit([histogram], [3000.0, 6000.0], [1.0, 1.0], 2)
    assert (result.gain, result.offset) == (-1.0, -1.0)


def test_peak_fit_marks_missing_peaks_as_failed():
    histogram = _spectrum([300.0])
    (result,) = peak_fit([histogram], [3000.0, 6000.0], [1.0, 1.0], 2)
    assert (result.gain, result.offset) == (-1.0, -1.0)


def test_peak_fit_checks_energy_count():
    with pytest.raises(ValueError):
        peak_fit([_spectrum([300.0])], [1.0, 2.0, 3.0, 4.0], [1.0, 1.0, 1.0, 1.0], 1)


def test_peak_fit_checks_error_count():
    with pytest.raises(ValueError):
        peak_fit([_spectrum([300.0])], [5813.3, 0.0], [1.0], 1)


def _read(path):
    return [line.split() for line in path.read_text().splitlines()]


def test_write_front_back_splits_boards(tmp_path):
    calibrations = [StripCalibration(float(loc), -1.0) for loc in range(8 * 32)]
    front = tmp_path / "FrontEcal.dat"
    back = tmp_path / "BackEcal.dat"
    write_front_back(calibrations, front, back, 32)
    front_rows = _read(front)
    back_rows = _read(back)
    assert len(front_rows) == 128
    assert len(back_rows) == 128
    quad, chan, gain, offset = front_rows[32 + 5]
    assert (int(quad), int(chan)) == (1, 5)
    assert float(gain) == 2 * 32 + 5
    assert offset == "-1"
    quad, chan, gain, _ = back_rows[3 * 32 + 31]
    assert (int(quad), int(chan)) == (3, 31)
    assert float(gain) == 7 * 32 + 31


def test_write_front_back_rejects_partial_boards(tmp_path):
    calibrations = [StripCalibration(1.0, 0.0)] * 40
    with pytest.raises(ValueError):
        write_front_back(calibrations, tmp_path / "f.dat", tmp_path / "b.dat", 32)