"""Calibration, peak finding, spectrum tools and event-level rules for the Gobbi silicon telescope array."""

__version__ = "0.1.0"