"""Encompassing graph construction and queries."""
