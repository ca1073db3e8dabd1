"""Alpha-source calibration of silicon strips: peak search, peak fits and linear gains."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit
from scipy.special import erfc, erfcx

from gobbical.histogram import Histogram

log = logging.getLogger(__name__)

SEARCH_START_BIN = 50
SEARCH_WINDOW = 50
SKIP_AFTER_PEAK = 3
SMOOTH_PASSES = 4
DEFAULT_THRESHOLD = 20.0
MIN_ENTRIES = 50
FIT_HALF_RANGE = 50.0
CENTROID_ERROR = 0.2
KEV_PER_MEV = 1000.0

_AREA_LIMITS = (10.0, 1e6)
_CENTROID_PULL = 10.0
_WIDTH_LIMITS = (0.1, 30.0)


@dataclass(frozen=True)
class StripCalibration:
    """Linear calibration of one strip in MeV per channel; -1/-1 marks a failed strip."""

    gain: float
    offset: float
    centroids: tuple[float, ...] = ()


_FAILED = StripCalibration(-1.0, -1.0)


def sort_with_carry(values, carry):
    """Sort ``values`` ascending and reorder ``carry`` the same way (stable)."""
    values = list(values)
    carry = list(carry)
    if len(values) != len(carry):
        raise ValueError("values and carry must have the same length")
    pairs = sorted(zip(values, carry), key=lambda pair: pair[0])
    return [value for value, _ in pairs], [extra for _, extra in pairs]


def peak_search(histogram: Histogram, threshold: float = DEFAULT_THRESHOLD, npeaks: int = 1) -> list[int]:
    """Find up to ``npeaks`` peak bins in a smoothed copy of ``histogram``.

    A peak starts where the bin-to-bin derivative exceeds ``threshold`` and is
    placed at the first following bin where the derivative turns negative.
    The first bins are skipped to stay clear of pedestals.
    """
    if npeaks < 0:
        raise ValueError("number of peaks must not be negative")
    smoothed = histogram.copy().smooth(SMOOTH_PASSES).contents
    derivative = np.diff(smoothed)
    limit = histogram.nbins - 1
    peaks: list[int] = []
    pos = SEARCH_START_BIN
    while pos < limit and len(peaks) < npeaks:
        if derivative[pos] <= threshold:
            pos += 1
            continue
        window = range(pos, min(pos + SEARCH_WINDOW, limit))
        crossing = next((index for index in window if derivative[index] < 0), None)
        if crossing is None:
            pos += 1
            continue
        peaks.append(crossing)
        pos = crossing + SKIP_AFTER_PEAK
    return peaks


def alpha_peak(x, area, centroid, sigma, tail):
    """Gaussian with a low-energy exponential tail, the usual alpha-line shape."""
    x = np.asarray(x, dtype=float)
    shift = (x - centroid) / tail + sigma**2 / (2.0 * tail)
    z = ((x - centroid) / sigma + sigma / tail) / np.sqrt(2.0)
    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        stable = np.exp(shift - z**2) * erfcx(z)
        direct = np.exp(np.minimum(shift, 700.0)) * erfc(z)
        shape = np.where(z > 0, stable, direct)
    return area / (2.0 * tail) * shape


def fit_alpha_peak(histogram: Histogram, index: int) -> tuple[float, float, float, float]:
    """Fit :func:`alpha_peak` around bin ``index``; return (area, centroid, sigma, tail)."""
    x_pos = histogram.bin_center(index)
    y_pos = float(histogram.contents[index])
    centers = histogram.low + (np.arange(1, histogram.nbins + 1) - 0.5) * histogram.width
    contents = histogram.values
    selected = (
        (centers >= x_pos - FIT_HALF_RANGE) & (centers <= x_pos + FIT_HALF_RANGE) & (contents > 0)
    )
    if selected.sum() < 4:
        raise ValueError(f"too few filled bins to fit the peak at bin {index}")
    lower = [_AREA_LIMITS[0], x_pos - _CENTROID_PULL, _WIDTH_LIMITS[0], _WIDTH_LIMITS[0]]
    upper = [_AREA_LIMITS[1], x_pos + _CENTROID_PULL, _WIDTH_LIMITS[1], _WIDTH_LIMITS[1]]
    start = np.clip([4.0 * y_pos, x_pos, 1.0, 1.0], lower, upper)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", OptimizeWarning)
        try:
            params, _ = curve_fit(
                alpha_peak,
                centers[selected],
                contents[selected],
                p0=start,
                sigma=np.sqrt(contents[selected]),
                bounds=(lower, upper),
                maxfev=20000,
            )
        except RuntimeError as error:
            raise ValueError(f"peak fit at bin {index} did not converge") from error
    area, centroid, sigma, tail = (float(value) for value in params)
    return area, centroid, sigma, tail


def _fit_line(x, y, xerr, yerr) -> tuple[float, float]:
    """Straight line y = offset + slope*x with errors on both axes (effective variance)."""
    x, y = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
    xerr, yerr = np.asarray(xerr, dtype=float), np.asarray(yerr, dtype=float)
    if len(x) < 2:
        raise ValueError("a line fit needs at least two points")
    slope, offset = np.polyfit(x, y, 1)
    for _ in range(20):
        variance = yerr**2 + (slope * xerr) ** 2
        positive = variance[variance > 0]
        floor = positive.min() if positive.size else 1.0
        weights = 1.0 / np.where(variance > 0, variance, floor)
        sw = weights.sum()
        sx, sy = (weights * x).sum(), (weights * y).sum()
        sxx, sxy = (weights * x * x).sum(), (weights * x * y).sum()
        determinant = sw * sxx - sx * sx
        if determinant == 0:
            raise ValueError("points do not determine a line")
        new_slope = (sw * sxy - sx * sy) / determinant
        offset = (sy - new_slope * sx) / sw
        converged = np.isclose(new_slope, slope, rtol=1e-12, atol=0.0)
        slope = new_slope
        if converged:
            break
    return float(slope), float(offset)


def _strip_calibration(histogram: Histogram, energies, energy_errors, npeaks: int, label) -> StripCalibration:
    if histogram.entries < MIN_ENTRIES:
        log.info("histogram %s has too few entries, no fit applied", label)
        return _FAILED
    peaks = peak_search(histogram, DEFAULT_THRESHOLD, npeaks)
    if len(peaks) != npeaks:
        log.warning("histogram %s: found %d of %d peaks", label, len(peaks), npeaks)
        return _FAILED
    try:
        centroids = [fit_alpha_peak(histogram, index)[1] for index in peaks]
    except ValueError as error:
        log.warning("histogram %s: %s", label, error)
        return _FAILED
    centroids, errors = sort_with_carry(centroids, [CENTROID_ERROR] * npeaks)
    # The line is pinned through the origin with one extra point.
    x = centroids + [0.0]
    xerr = errors + [CENTROID_ERROR]
    slope, intercept = _fit_line(x, energies, xerr, energy_errors)
    return StripCalibration(slope / KEV_PER_MEV, intercept / KEV_PER_MEV, tuple(centroids))


def peak_fit(histograms, energies, energy_errors, npeaks: int) -> list[StripCalibration]:
    """Calibrate every strip from its alpha spectrum.

    ``energies`` (keV) lists the line energies in ascending order; an extra
    last entry gives the energy paired with the origin point, 0 by default.
    """
    if npeaks < 1:
        raise ValueError("at least one peak is needed")
    energies = [float(value) for value in energies]
    energy_errors = [float(value) for value in energy_errors]
    if len(energies) != len(energy_errors):
        raise ValueError("one error is needed per energy")
    if len(energies) == npeaks:
        energies.append(0.0)
        energy_errors.append(0.0)
    elif len(energies) != npeaks + 1:
        raise ValueError(f"expected {npeaks} or {npeaks + 1} energies, got {len(energies)}")
    return [
        _strip_calibration(histogram, energies, energy_errors, npeaks, label)
        for label, histogram in enumerate(histograms)
    ]


def write_front_back(calibrations, front_path, back_path, channels: int = 32) -> None:
    """Write even boards to the front file and odd boards to the back file.

    Each line holds quadrant, channel, gain and offset.
    """
    calibrations = list(calibrations)
    if channels < 1:
        raise ValueError("channels must be positive")
    if len(calibrations) % (2 * channels):
        raise ValueError("calibrations must cover whole front/back board pairs")
    boards = len(calibrations) // channels

    def lines(first_board: int):
        for board in range(first_board, boards, 2):
            quad = board // 2
            for channel in range(channels):
                strip = calibrations[board * channels + channel]
                yield f"{quad} {channel} {strip.gain:g} {strip.offset:g}\n"

    Path(front_path).write_text("".join(lines(0)))
    Path(back_path).write_text("".join(lines(1)))