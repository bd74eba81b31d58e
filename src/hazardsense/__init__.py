"""Perception-to-hazard pipeline for obstacle and foot-placement warnings."""

__version__ = "0.1.0"
