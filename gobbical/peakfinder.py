"""Peak positions in raw strip spectra, written as input for the calibration fits."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit
from scipy.signal import find_peaks

from gobbical.histogram import Histogram

log = logging.getLogger(__name__)

CHIPS = 4
CHANNELS = 32
DEFAULT_THRESHOLD = 0.05
FIT_HALF_RANGE = 50.0
START_SIGMA = 1.0

_ENERGY_PATHS = {
    "Front": "Summary/1dFrontE_R/",
    "Back": "Summary/1dBackE_R/",
    "Delta": "Summary/1dDeltaE_R/",
}

_TIME_PATHS = {
    "Front": "Summary/1dFrontTime_R/FrontTime_R",
    "Back": "Summary/1dBackTime_R/BackTime_R",
    "Delta": "Summary/1dDeltaTime_R/DeltaTime_R",
}

_SOURCE_PEAKS = (("Ra226", 5), ("4peak", 4), ("LiAu", 1), ("pulser", 21), ("time", 1))

# Checked in order; when several entries match, the last one wins.
_RANGES = (
    ("Ra226", "Front", (400.0, 1500.0)),
    ("Ra226", "Back", (600.0, 1500.0)),
    ("Ra226", "Delta", (600.0, 1300.0)),
    ("4peak", "Front", (350.0, 1100.0)),
    ("4peak", "Back", (400.0, 1200.0)),
    ("4peak", "Delta", (400.0, 1050.0)),
    ("LiAu", "Front", (4000.0, 6000.0)),
    ("LiAu", "Delta", (500.0, 2000.0)),
    ("time", "Front", (4000.0, 7000.0)),
    ("time", "Back", (3000.0, 7000.0)),
    ("time", "Delta", (4000.0, 7000.0)),
    ("pulser", "", (500.0, 16300.0)),
)


@dataclass(frozen=True)
class SearchConfig:
    """Which histograms to search, and for how many peaks, for a detector and source."""

    detector: str
    source: str
    npeaks: int
    path: str
    chips: int = CHIPS
    channels: int = CHANNELS

    def histogram_name(self, board: int, channel: int) -> str:
        return f"{self.path}{board}_{channel}"

    def search_range(self) -> tuple[float, float] | None:
        """The x-range to restrict the search to, or None for the full spectrum."""
        window = None
        for source, detector, limits in _RANGES:
            if source in self.source and detector in self.detector:
                window = limits
        return window

    def output_name(self) -> str:
        return f"peakpositions_{self.detector}_{self.source}.txt"


def configure(detector: str, source: str) -> SearchConfig:
    """Build the search settings; raise ValueError for an unknown detector or source."""
    chips = 0
    path = ""
    for name, energy_path in _ENERGY_PATHS.items():
        if name in detector:
            chips = CHIPS
            path = energy_path
    npeaks = 0
    for name, count in _SOURCE_PEAKS:
        if name in source:
            npeaks = count
    if "LiAu" in source:
        path = "Summary/AngleCorrFrontE/"
    if "time" in source:
        for name, time_path in _TIME_PATHS.items():
            if name in detector:
                path = time_path
    if npeaks == 0 or chips == 0:
        raise ValueError(f"invalid configuration: detector {detector!r}, source {source!r}")
    return SearchConfig(detector, source, npeaks, path, chips)


def gaus_peak(x, amplitude, mean, sigma):
    """Gaussian without normalisation: ``amplitude`` is the peak height."""
    x = np.asarray(x, dtype=float)
    return amplitude * np.exp(-0.5 * ((x - mean) / sigma) ** 2)


def find_candidates(histogram: Histogram, max_peaks: int, threshold: float = DEFAULT_THRESHOLD) -> list[float]:
    """Positions of local maxima at least ``threshold`` times the highest one.

    The positions are bin centres, highest peak first, at most ``max_peaks``.
    Bins outside the wanted search range should be emptied beforehand.
    """
    if max_peaks < 1:
        raise ValueError("at least one peak must be searched for")
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("threshold is a fraction of the highest peak, between 0 and 1")
    values = histogram.values
    top = float(values.max()) if values.size else 0.0
    if top <= 0:
        return []
    peaks, properties = find_peaks(values, height=threshold * top)
    order = np.argsort(-properties["peak_heights"], kind="stable")
    return [histogram.bin_center(int(peaks[index]) + 1) for index in order[:max_peaks]]


def _fit_one(histogram: Histogram, centers: np.ndarray, contents: np.ndarray, position: float):
    height = float(histogram.contents[histogram.find_bin(position)])
    selected = (
        (centers >= position - FIT_HALF_RANGE)
        & (centers <= position + FIT_HALF_RANGE)
        & (contents > 0)
    )
    if selected.sum() < 3:
        log.warning("too few filled bins around %g, keeping the search position", position)
        return position, 0.0
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", OptimizeWarning)
        try:
            params, covariance = curve_fit(
                gaus_peak,
                centers[selected],
                contents[selected],
                p0=[height, position, START_SIGMA],
                sigma=np.sqrt(contents[selected]),
                absolute_sigma=True,
                maxfev=10000,
            )
        except RuntimeError:
            log.warning("fit around %g did not converge, keeping the search position", position)
            return position, 0.0
    error = float(np.sqrt(abs(covariance[1, 1]))) if np.isfinite(covariance[1, 1]) else 0.0
    return float(params[1]), error


def fit_peak_positions(histogram: Histogram, expected: int, threshold: float = DEFAULT_THRESHOLD) -> list[tuple[float, float]]:
    """Fit a Gaussian to each candidate peak; return (centroid, error) pairs, highest first."""
    candidates = find_candidates(histogram, expected, threshold)
    centers = histogram.low + (np.arange(1, histogram.nbins + 1) - 0.5) * histogram.width
    contents = histogram.values
    fitted = [_fit_one(histogram, centers, contents, position) for position in candidates]
    return sorted(fitted, key=lambda pair: pair[0], reverse=True)


def format_peak_line(element: int, positions, expected: int) -> str:
    """One output line: the element number then "centroid error" pairs.

    When the number of positions differs from ``expected``, every pair is
    written as zeros so the strip is skipped later.
    """
    positions = list(positions)
    if len(positions) != expected:
        log.warning("element %d: found %d peaks, expected %d", element, len(positions), expected)
        positions = [(0.0, 0.0)] * expected
    return f"{element} " + "".join(f"{value:g} {error:g} " for value, error in positions)