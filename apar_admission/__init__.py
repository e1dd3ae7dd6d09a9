"""Inspection admission control for fire-extinguisher (APAR) assets."""

__version__ = "0.1.0"
