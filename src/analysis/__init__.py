"""Weakness and confidence calibration analysis."""
