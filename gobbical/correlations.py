"""Quantities derived from correlated fragment pairs: excitation energies, angles and gates."""

from __future__ import annotations

import math
from dataclasses import dataclass

from gobbical.gobbi import TARGET_DISTANCE

# Open windows (low, high) on the time difference of each fragment, in channels.
P6HE_PROTON_WINDOW = (-1300.0, 0.0)
P6HE_HE6_WINDOW = (-500.0, 200.0)
P7LI_PROTON_WINDOW = (-1800.0, 0.0)
P7LI_LI7_WINDOW = (-550.0, 200.0)
TA_TRITON_WINDOW = (-2000.0, 0.0)
TA_ALPHA_WINDOW = (-500.0, 200.0)

TRANSVERSE_LIMIT = 0.5
LONGITUDINAL_LIMIT = 0.7


@dataclass(frozen=True)
class Fragment:
    """A detected fragment: hit position (cm), velocity (cm per time unit) and front time."""

    x: float
    y: float
    velocity: float
    time: float = 0.0
    timediff: float = 0.0

    def flight_distance(self, target_distance: float = TARGET_DISTANCE) -> float:
        """Distance from the target to the hit position."""
        return math.sqrt(self.x * self.x + self.y * self.y + target_distance * target_distance)

    def flight_time(self, target_distance: float = TARGET_DISTANCE) -> float:
        """Time taken to fly from the target to the detector."""
        if self.velocity <= 0:
            raise ValueError("fragment velocity must be positive")
        return self.flight_distance(target_distance) / self.velocity

    def reaction_time(self, target_distance: float = TARGET_DISTANCE) -> float:
        """Detection time shifted by the flight time, as used for time-resolution checks."""
        return self.flight_time(target_distance) + self.time


def reaction_time_difference(
    first: Fragment, second: Fragment, target_distance: float = TARGET_DISTANCE
) -> float:
    """Difference of the flight-corrected times of two fragments, second minus first."""
    return second.reaction_time(target_distance) - first.reaction_time(target_distance)


def excitation_energy(erel: float, q_value: float) -> float:
    """Excitation energy from the relative energy and the decay Q-value (mass difference)."""
    return erel - q_value


def theta_cm_degrees(theta_cm: float) -> float:
    """Centre-of-mass angle converted from radians to degrees."""
    return theta_cm * 180.0 / math.pi


def _inside(value: float, window: tuple[float, float]) -> bool:
    low, high = window
    return low < value < high


def p6he_time_gate(proton_dt: float, he6_dt: float) -> bool:
    """Time gate for proton + 6He pairs."""
    return _inside(proton_dt, P6HE_PROTON_WINDOW) and _inside(he6_dt, P6HE_HE6_WINDOW)


def p7li_time_gate(proton_dt: float, li7_dt: float) -> bool:
    """Time gate for proton + 7Li pairs."""
    return _inside(proton_dt, P7LI_PROTON_WINDOW) and _inside(li7_dt, P7LI_LI7_WINDOW)


def ta_time_gate(triton_dt: float, alpha_dt: float) -> bool:
    """Time gate for triton + alpha pairs."""
    return _inside(triton_dt, TA_TRITON_WINDOW) and _inside(alpha_dt, TA_ALPHA_WINDOW)


def is_transverse(cos_theta: float, limit: float = TRANSVERSE_LIMIT) -> bool:
    """Whether the decay axis lies transverse to the beam: |cos theta_H| below ``limit``."""
    return abs(cos_theta) < limit


def is_longitudinal(cos_theta: float, limit: float = LONGITUDINAL_LIMIT) -> bool:
    """Whether the decay axis lies along the beam: |cos theta_H| above ``limit``."""
    return abs(cos_theta) > limit