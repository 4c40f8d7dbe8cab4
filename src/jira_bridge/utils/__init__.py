"""Utility helpers shared across the bridge."""
