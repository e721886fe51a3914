"""Availability and booking conflict engine for a single-provider clinic agenda."""

__version__ = "0.1.0"
