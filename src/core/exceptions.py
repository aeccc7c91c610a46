"""
Mastery engine exceptions.

Structural misuse (unknown books, missing manifest, malformed graph data)
raises one of these. Sparse or unknown inputs to analytics queries do not:
those return neutral empty results instead.
"""

from __future__ import annotations


class MasteryEngineError(Exception):
    """Base class for all engine errors."""
    pass


class ManifestNotLoadedError(MasteryEngineError):
    """Raised when content statistics are requested before the manifest loads."""

    def __init__(self, message: str = "Content manifest not loaded. Call load_manifest() first."):
        super().__init__(message)


class UnknownBookError(MasteryEngineError, KeyError):
    """Raised when a book number is not present in the content manifest."""

    def __init__(self, book: int):
        self.book = book
        super().__init__(f"Book {book} not found in manifest")

    def __str__(self) -> str:
        return self.args[0]


class UnknownLessonError(MasteryEngineError, KeyError):
    """Raised when a lesson id is not present in the content manifest."""

    def __init__(self, lesson_id: str):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} not found in manifest")

    def __str__(self) -> str:
        return self.args[0]


class UnknownExerciseTypeError(MasteryEngineError, ValueError):
    """Raised when exercise data carries an unrecognised type tag."""

    def __init__(self, exercise_type: str):
        self.exercise_type = exercise_type
        super().__init__(f"Unknown exercise type: {exercise_type!r}")


class InvalidEdgeError(MasteryEngineError, ValueError):
    """Raised for self-loops or weights outside (0, 1]."""
    pass


class GraphFormatError(MasteryEngineError, ValueError):
    """Raised when serialized graph data cannot be parsed."""
    pass


class ContentLoadError(MasteryEngineError):
    """Raised when a content dataset cannot be fetched or parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load {source}: {reason}")
