"""Tiered campaign-save archive: hot current slot plus compressed, bounded history."""

__version__ = '0.1.0'
