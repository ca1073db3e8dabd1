"""Unpacking rules of the four-quadrant silicon telescope array.

Each quadrant has a front and a back energy detector and a thin delta-E
detector. The readout boards are mapped onto these detectors here, and the
per-hit cuts and corrections used when building events are collected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

QUADRANTS = 4
CHANNELS = 32
MAX_BOARD = 12

TARGET_DISTANCE = 23.95  # cm
TARGET_THICKNESS = 2.65  # mg/cm^2
BEAM_SHADOW_RADIUS = 1.5  # cm

_FRONT_ANGLE_COEFFICIENTS = (1.0277e-5, 1.6125e-3, 8.3097e-4, -1.0227e-3)
_DELTA_ANGLE_COEFFICIENTS = (-1.0971e-5, -1.1446e-3, -8.9371e-4, 1.0879e-3)

_PID_NUMBERS = {
    (1, 1): 1,
    (1, 2): 2,
    (1, 3): 3,
    (2, 3): 4,
    (2, 4): 5,
    (2, 6): 6,
    (3, 6): 7,
    (3, 7): 8,
}


class Side(Enum):
    """Detector layer a readout board belongs to."""

    FRONT = "Front"
    BACK = "Back"
    DELTA = "Delta"

    @property
    def energy_threshold(self) -> float:
        return 0.2 if self is Side.DELTA else 0.5


def locate_board(board: int) -> tuple[Side, int] | None:
    """Return the (side, quadrant) read out by ``board``, or None for an unused board.

    Odd boards 1-7 are fronts, even boards 2-8 backs and boards 9-12 deltas.
    Boards beyond 12 have no detector and are an error.
    """
    if board < 0 or board > MAX_BOARD:
        raise ValueError(f"board {board} is not part of the array")
    if board in (1, 3, 5, 7):
        return Side.FRONT, (board - 1) // 2
    if board in (2, 4, 6, 8):
        return Side.BACK, board // 2 - 1
    if board >= 9:
        return Side.DELTA, board - 9
    return None


def passes_threshold(side: Side, quad: int, energy: float) -> bool:
    """Whether a calibrated hit lies above the noise threshold of its detector.

    The front of quadrant 1 is noisier and needs more than 2 MeV.
    """
    if energy <= side.energy_threshold:
        return False
    if side is Side.FRONT and quad == 1:
        return energy > 2.0
    return True


def interlaced_to_calibration(strip: int) -> int:
    """Convert an interlaced strip number to the channel number used by calibrations."""
    if strip < 0:
        raise ValueError("strip numbers are not negative")
    if strip % 2 == 0:
        return strip // 2 + 16
    return (strip - 1) // 2


def _cubic(coefficients, x: float) -> float:
    c3, c2, c1, c0 = coefficients
    return c3 * x**3 + c2 * x**2 + c1 * x + c0


def front_angle_correction(theta_deg: float) -> float:
    """Energy (MeV) to add to a front-detector energy at lab angle ``theta_deg``."""
    return _cubic(_FRONT_ANGLE_COEFFICIENTS, theta_deg)


def delta_angle_correction(theta_deg: float) -> float:
    """Energy (MeV) to add to a delta-E energy at lab angle ``theta_deg``."""
    return _cubic(_DELTA_ANGLE_COEFFICIENTS, theta_deg)


def in_beam_shadow(x: float, y: float) -> bool:
    """Whether a hit position (cm) lies behind the central beam blocker."""
    return math.hypot(x, y) < BEAM_SHADOW_RADIUS


def dee_point(energy: float, denergy: float, theta: float) -> tuple[float, float]:
    """Point of a hit in the E versus delta-E plot, corrected for the path length.

    The part of the delta-E energy beyond normal incidence is moved to the
    residual energy, so the sum of both coordinates is the total energy.
    """
    cosine = math.cos(theta)
    return energy + denergy * (1.0 - cosine), denergy * cosine


def pid_number(z: int, a: int) -> int:
    """Index of an identified particle in the two-particle table, 0 if not listed."""
    return _PID_NUMBERS.get((z, a), 0)


@dataclass(frozen=True)
class Hit:
    """One strip signal as read out from the electronics."""

    board: int
    channel: int
    high: int
    low: int = 0
    time: int = 0

    @property
    def location(self) -> tuple[Side, int] | None:
        return locate_board(self.board)

    def summary_channel(self, channels: int = CHANNELS) -> int:
        """Position of the strip in the per-side summary spectra."""
        location = self.location
        if location is None:
            raise ValueError(f"board {self.board} reads no detector")
        if not 0 <= self.channel < channels:
            raise ValueError(f"channel {self.channel} outside 0..{channels - 1}")
        return location[1] * channels + self.channel


def _calibration_files() -> dict[tuple[Side, str], str]:
    return {
        (side, kind): f"Cal/{side.value}{kind}cal.dat"
        for side in Side
        for kind in ("E", "Time")
    }


@dataclass
class Setup:
    """Geometry and calibration files of one experiment."""

    target_distance: float = TARGET_DISTANCE
    target_thickness: float = TARGET_THICKNESS
    channels: int = CHANNELS
    calibration_files: dict = field(default_factory=_calibration_files)

    def effective_thickness(self, theta: float) -> float:
        """Target thickness crossed from the target centre at lab angle ``theta``."""
        cosine = math.cos(theta)
        if cosine <= 0:
            raise ValueError("particles must travel forward")
        return self.target_thickness / 2.0 / cosine

    def flight_distance(self, x: float, y: float) -> float:
        """Distance from the target to a hit at (x, y) on the detector plane."""
        return math.sqrt(x * x + y * y + self.target_distance**2)