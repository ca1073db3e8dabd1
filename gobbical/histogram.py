"""Fixed-width one-dimensional histogram with underflow and overflow bins."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view


def _running_median(values: np.ndarray, window: int) -> np.ndarray:
    half = window // 2
    out = values.copy()
    if len(values) < window:
        return out
    out[half : len(values) - half] = np.median(sliding_window_view(values, window), axis=1)
    return out


def _hanning(values: np.ndarray) -> np.ndarray:
    out = values.copy()
    if len(values) >= 3:
        out[1:-1] = 0.25 * values[:-2] + 0.5 * values[1:-1] + 0.25 * values[2:]
    return out


class Histogram:
    """Equal-width bins over [low, high).

    Bin 0 holds underflow, bins 1..nbins the range and bin nbins+1 overflow,
    so indices match the usual physics-histogram convention.
    """

    def __init__(self, nbins: int, low: float, high: float, name: str = "", contents=None):
        if nbins < 1:
            raise ValueError("a histogram needs at least one bin")
        if high <= low:
            raise ValueError("upper edge must lie above lower edge")
        self.name = name
        self.nbins = int(nbins)
        self.low = float(low)
        self.high = float(high)
        if contents is None:
            self.contents = np.zeros(self.nbins + 2)
        else:
            array = np.asarray(contents, dtype=float)
            if array.shape != (self.nbins + 2,):
                raise ValueError(f"expected {self.nbins + 2} bin contents, got {array.size}")
            self.contents = array.copy()
        self.entries = 0

    @property
    def width(self) -> float:
        return (self.high - self.low) / self.nbins

    @property
    def values(self) -> np.ndarray:
        """Contents of the in-range bins."""
        return self.contents[1 : self.nbins + 1].copy()

    def find_bin(self, x: float) -> int:
        if x < self.low:
            return 0
        if x >= self.high:
            return self.nbins + 1
        return min(int((x - self.low) / self.width) + 1, self.nbins)

    def bin_center(self, index: int) -> float:
        return self.low + (index - 0.5) * self.width

    def fill(self, x: float, weight: float = 1.0) -> int:
        """Add ``weight`` to the bin holding ``x`` and return that bin."""
        index = self.find_bin(x)
        self.contents[index] += weight
        self.entries += 1
        return index

    def integral(self) -> float:
        return float(self.contents[1 : self.nbins + 1].sum())

    def rebin(self, factor: int) -> Histogram:
        """Merge groups of ``factor`` bins in place; leftover bins go to overflow."""
        if factor < 1:
            raise ValueError("rebin factor must be at least 1")
        if factor > self.nbins:
            raise ValueError("rebin factor exceeds the number of bins")
        new_bins = self.nbins // factor
        used = new_bins * factor
        inner = self.contents[1 : self.nbins + 1]
        merged = inner[:used].reshape(new_bins, factor).sum(axis=1)
        overflow = self.contents[-1] + inner[used:].sum()
        old_width = self.width
        self.contents = np.concatenate(([self.contents[0]], merged, [overflow]))
        self.high = self.low + used * old_width
        self.nbins = new_bins
        return self

    def scale(self, factor: float) -> Histogram:
        self.contents *= factor
        return self

    def add(self, other: Histogram, coefficient: float = 1.0) -> Histogram:
        """Add ``coefficient`` times ``other`` bin by bin."""
        if (other.nbins, other.low, other.high) != (self.nbins, self.low, self.high):
            raise ValueError("histograms have different binning")
        self.contents += coefficient * other.contents
        self.entries += other.entries
        return self

    def smooth(self, times: int = 1) -> Histogram:
        """Smooth the in-range bins with 3-5-3 running medians and a Hanning pass."""
        if times < 1:
            raise ValueError("smoothing must be applied at least once")
        if self.nbins < 3:
            raise ValueError("smoothing needs at least three bins")
        values = self.contents[1 : self.nbins + 1].copy()
        for _ in range(times):
            values = _running_median(values, 3)
            values = _running_median(values, 5)
            values = _running_median(values, 3)
            values = _hanning(values)
        self.contents[1 : self.nbins + 1] = values
        return self

    def copy(self) -> Histogram:
        clone = Histogram(self.nbins, self.low, self.high, self.name, self.contents)
        clone.entries = self.entries
        return clone

    def save(self, path) -> None:
        document = {
            "name": self.name,
            "nbins": self.nbins,
            "low": self.low,
            "high": self.high,
            "entries": self.entries,
            "contents": self.contents.tolist(),
        }
        Path(path).write_text(json.dumps(document))

    @classmethod
    def load(cls, path) -> Histogram:
        try:
            document = json.loads(Path(path).read_text())
            histogram = cls(
                document["nbins"],
                document["low"],
                document["high"],
                document.get("name", ""),
                document["contents"],
            )
        except (KeyError, TypeError, json.JSONDecodeError) as error:
            raise ValueError(f"{path}: not a histogram file") from error
        histogram.entries = int(document.get("entries", 0))
        return histogram

    def __repr__(self) -> str:
        return f"Histogram({self.name!r}, nbins={self.nbins}, low={self.low}, high={self.high})"