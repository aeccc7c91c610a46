"""Learner progress persistence and recording."""
