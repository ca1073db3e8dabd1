"""Linear energy calibration of silicon strips from fitted alpha and beam peak positions."""

from __future__ import annotations

import argparse
import logging
import math
from dataclasses import dataclass
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)

ELEMENTS = 4 * 32
CHANNELS_PER_BOARD = 32
PEAK_COUNTS = (4, 5, 1)
FIT_RANGE = (100.0, 16000.0)
KEV_PER_MEV = 1000.0

# Literature values (keV): 4-peak source, then the 226Ra chain.
FOUR_PEAK_ENERGIES = (5795.0, 5479.3, 5148.4, 3182.7)
RA226_ENERGIES = (7686.82, 6002.55, 5489.48, 5304.33, 4784.34)
LIAU_FRONT_ENERGY = 34369.04 * 0.98
LIAU_DELTA_ENERGY = 7665.0
ENERGY_ERROR = 1.0

# With a beam line available, only the highest 226Ra line and the beam point are fitted.
_FIT_PEAKS = (4, 9)

_INPUTS = {
    "Front": (
        "peakpositions_Front_4peak.txt",
        "peakpositions_Front_Ra226.txt",
        "peakpositions_Front_LiAu.txt",
    ),
    "Back": (
        "peakpositions_Back_4peak.txt",
        "peakpositions_Back_Ra226.txt",
    ),
    "Delta": (
        "peakpositions_Delta_4peak.txt",
        "peakpositions_Delta_Ra226.txt",
        "peakpositions_Delta_LiAu.txt",
    ),
}


@dataclass(frozen=True)
class LinearFit:
    """Straight line y = offset + slope*x with its goodness of fit."""

    slope: float
    offset: float
    chisquare: float
    ndf: int

    @property
    def chi2_per_ndf(self) -> float:
        return self.chisquare / self.ndf if self.ndf > 0 else math.nan

    def __call__(self, x: float) -> float:
        return self.slope * x + self.offset


@dataclass(frozen=True)
class StripFit:
    """Calibration of one detector element and the residuals at every reference peak."""

    element: int
    board: int
    channel: int
    fit: LinearFit
    residuals: tuple[float, ...]


def _known_detector(detector: str) -> None:
    if not any(name in detector for name in _INPUTS):
        raise ValueError(f"unknown detector {detector!r}")


def reference_energies(detector: str) -> list[float]:
    """Energies (keV) of the reference peaks in the order the peak files list them."""
    _known_detector(detector)
    energies = list(FOUR_PEAK_ENERGIES) + list(RA226_ENERGIES)
    if "Front" in detector or "Delta" in detector:
        energies.append(LIAU_DELTA_ENERGY if "Delta" in detector else LIAU_FRONT_ENERGY)
    return energies


def input_files(detector: str) -> list[str]:
    """Peak-position files read for ``detector``."""
    _known_detector(detector)
    files: tuple[str, ...] = ()
    for name, names in _INPUTS.items():
        if name in detector:
            files = names
    return list(files)


def _read_tokens(path) -> list[str]:
    return Path(path).read_text().split()


def read_peak_files(paths, counts=PEAK_COUNTS, elements: int = ELEMENTS) -> list[tuple[int, list[float]]]:
    """Read ``elements`` rows spread over several peak files.

    Each row of a file holds an element number and then "position error"
    pairs; ``counts`` gives how many pairs each file holds per row. The
    positions of one element from all files are joined in file order.
    """
    paths = list(paths)
    counts = list(counts)[: len(paths)]
    if len(counts) != len(paths):
        raise ValueError("a peak count is needed for every file")
    streams = [(str(path), iter(_read_tokens(path))) for path in paths]

    def take(name, tokens, kind):
        try:
            return kind(next(tokens))
        except StopIteration as error:
            raise ValueError(f"{name}: file ends early") from error
        except ValueError as error:
            raise ValueError(f"{name}: malformed value") from error

    rows = []
    for _ in range(elements):
        element = None
        positions: list[float] = []
        for (name, tokens), count in zip(streams, counts):
            number = take(name, tokens, lambda token: int(float(token)))
            if element is None:
                element = number
            for _ in range(count):
                positions.append(take(name, tokens, float))
                take(name, tokens, float)  # the error is replaced by a fixed one
        rows.append((element if element is not None else 0, positions))
    return rows


def fit_line(x, y, yerr) -> LinearFit:
    """Weighted least-squares straight line through (x, y)."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    yerr = np.asarray(yerr, dtype=float)
    if not len(x) == len(y) == len(yerr):
        raise ValueError("x, y and errors must have the same length")
    if len(x) < 2:
        raise ValueError("a line fit needs at least two points")
    if np.any(yerr <= 0):
        raise ValueError("errors must be positive")
    weights = 1.0 / yerr**2
    sw = weights.sum()
    sx, sy = (weights * x).sum(), (weights * y).sum()
    sxx, sxy = (weights * x * x).sum(), (weights * x * y).sum()
    determinant = sw * sxx - sx * sx
    if determinant == 0:
        raise ValueError("points do not determine a line")
    slope = (sw * sxy - sx * sy) / determinant
    offset = (sy - slope * sx) / sw
    chisquare = float((weights * (y - (offset + slope * x)) ** 2).sum())
    return LinearFit(float(slope), float(offset), chisquare, len(x) - 2)


def calibrate_detector(detector: str, peak_rows) -> list[StripFit]:
    """Fit every element whose peaks were all found; elements with a zero peak are skipped."""
    energies = reference_energies(detector)
    npeaks = len(energies)
    indices = _FIT_PEAKS if npeaks > max(_FIT_PEAKS) else tuple(range(npeaks))
    fits = []
    for index, (element, positions) in enumerate(peak_rows):
        positions = [float(value) for value in positions]
        if len(positions) < npeaks:
            raise ValueError(f"element {element}: {len(positions)} peaks, {npeaks} expected")
        positions = positions[:npeaks]
        if any(value == 0 for value in positions):
            log.info("element %s: missing peaks, skipped", element)
            continue
        low, high = FIT_RANGE
        chosen = [i for i in indices if low <= positions[i] <= high]
        if len(chosen) < 2:
            log.warning("element %s: too few peaks inside the fit range, skipped", element)
            continue
        fit = fit_line(
            [positions[i] for i in chosen],
            [energies[i] for i in chosen],
            [ENERGY_ERROR] * len(chosen),
        )
        log.info("element %s: chi2 %g ndf %d", element, fit.chisquare, fit.ndf)
        residuals = tuple(fit(position) - energy for position, energy in zip(positions, energies))
        fits.append(
            StripFit(
                element=element,
                board=index // CHANNELS_PER_BOARD,
                channel=index % CHANNELS_PER_BOARD,
                fit=fit,
                residuals=residuals,
            )
        )
    return fits


def write_calibration(path, fits) -> None:
    """Write "board channel gain offset" lines with gain and offset in MeV."""
    lines = (
        f"{strip.board} {strip.channel} "
        f"{strip.fit.slope / KEV_PER_MEV:g} {strip.fit.offset / KEV_PER_MEV:g}\n"
        for strip in fits
    )
    Path(path).write_text("".join(lines))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fit linear strip calibrations from peak positions.")
    parser.add_argument("detector", nargs="?", default="Front", help="Front, Back or Delta")
    parser.add_argument("--directory", default=".", help="where peak files are read and results written")
    args = parser.parse_args(argv)
    directory = Path(args.directory)
    try:
        files = [directory / name for name in input_files(args.detector)]
        rows = read_peak_files(files, PEAK_COUNTS[: len(files)], ELEMENTS)
        fits = calibrate_detector(args.detector, rows)
    except (OSError, ValueError) as error:
        parser.exit(1, f"error: {error}\n")
    output = directory / f"{args.detector}Ecal.dat"
    write_calibration(output, fits)
    print(f"{len(fits)} of {len(rows)} elements calibrated, written to {output}")
    return 0