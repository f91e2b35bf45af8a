"""Uniform iteration over paginated HTTP listings."""

__version__ = "0.1.0"
