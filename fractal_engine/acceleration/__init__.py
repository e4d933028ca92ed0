"""Accelerated backends for escape-time grids."""
