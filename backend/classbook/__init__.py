"""Capacity-safe class booking and schedule-conflict core."""

__version__ = "0.1.0"
