"""Mastery engine: personalized learning analytics."""
