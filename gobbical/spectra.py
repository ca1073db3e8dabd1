"""Spectrum manipulations: efficiency correction, background subtraction, angle checks."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from gobbical.histogram import Histogram

COS_THETA_OFFSET = 0.08
COS_THETA_HALF_WIDTH = 0.08 / 2
EXPECTED_DA_EREL = 0.7117


def efficiency_factors(response: Histogram, nbins: int = 400) -> np.ndarray:
    """Per-bin factors max/content from a response to a uniform input; 0 where empty.

    Bins are counted from the underflow bin, as in the analysis scripts.
    """
    contents = np.zeros(nbins)
    available = min(nbins, len(response.contents))
    contents[:available] = response.contents[:available]
    peak = max(0.0, float(contents.max())) if nbins else 0.0
    factors = np.zeros(nbins)
    filled = contents > 0
    factors[filled] = peak / contents[filled]
    return factors


def apply_efficiency(histogram: Histogram, factors) -> Histogram:
    """Multiply each bin by its factor in place; factors beyond the histogram are ignored."""
    factors = np.asarray(factors, dtype=float)
    count = min(len(factors), len(histogram.contents))
    histogram.contents[:count] *= factors[:count]
    return histogram


def background_scale(target_integral: float, background_integral: float, ratio: float) -> float:
    """Normalisation of a background run to a target run."""
    denominator = background_integral * ratio
    if denominator == 0:
        raise ValueError("background integral and ratio must be non-zero")
    return target_integral / denominator


def subtract_background(target: Histogram, background: Histogram, factor: float) -> Histogram:
    """Return a new histogram holding target minus factor times background."""
    result = target.copy()
    result.add(background, -factor)
    return result


@dataclass(frozen=True)
class AngleDeviation:
    cos_theta: float
    cos_theta_error: float
    deviation: float
    deviation_error: float


def angle_deviation(centroids, bin_centers, expected: float = EXPECTED_DA_EREL) -> list[AngleDeviation]:
    """Shift of fitted (mean, sigma) peaks from ``expected`` against cos(theta_H)."""
    centroids = list(centroids)
    bin_centers = list(bin_centers)
    if len(centroids) != len(bin_centers):
        raise ValueError("one centroid is needed per angular bin")
    return [
        AngleDeviation(
            cos_theta=center + COS_THETA_OFFSET,
            cos_theta_error=COS_THETA_HALF_WIDTH,
            deviation=mean - expected,
            deviation_error=sigma,
        )
        for (mean, sigma), center in zip(centroids, bin_centers)
    ]