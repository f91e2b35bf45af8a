"""Listing helpers for a few concrete resources, one per pagination style."""
