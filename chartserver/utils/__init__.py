"""Utility helpers shared across the chart server."""
