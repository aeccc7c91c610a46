"""
Content manifest.

Static per-book / per-lesson structure (ids and counts) produced by the
content build. ContentIndex answers structural lookups and raises for
unknown books or lessons, since those indicate a wrong caller assumption.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import ManifestNotLoadedError, UnknownBookError, UnknownLessonError
from src.graph.encompassing import ExerciseRef, LessonForGraph

_LESSON_ID_PATTERN = re.compile(r"^b(\d+)-l(\d+)")


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ManifestExercise(_ManifestModel):
    id: str
    item_ids: list[str] = Field(default_factory=list, alias="itemIds")


class ManifestLesson(_ManifestModel):
    id: str
    lesson: int
    title: str = ""
    title_en: str = Field(default="", alias="titleEn")
    exercise_count: int = Field(default=0, alias="exerciseCount")
    vocabulary_ids: list[str] = Field(default_factory=list, alias="vocabularyIds")
    grammar_point_ids: list[str] = Field(default_factory=list, alias="grammarPointIds")
    exercises: list[ManifestExercise] = Field(default_factory=list)


class ManifestBook(_ManifestModel):
    lesson_count: int = Field(default=0, alias="lessonCount")
    word_count: int = Field(default=0, alias="wordCount")
    grammar_count: int = Field(default=0, alias="grammarCount")
    exercise_count: int = Field(default=0, alias="exerciseCount")
    lesson_ids: list[str] = Field(default_factory=list, alias="lessonIds")
    word_ids: list[str] = Field(default_factory=list, alias="wordIds")
    lessons: list[ManifestLesson] = Field(default_factory=list)


class ContentManifest(_ManifestModel):
    version: int = 1
    generated_at: str = Field(default="", alias="generatedAt")
    books: dict[str, ManifestBook] = Field(default_factory=dict)


class BookContentStats(BaseModel):
    book_number: int
    lesson_count: int
    word_count: int
    grammar_count: int
    exercise_count: int


class TotalContentStats(BaseModel):
    lesson_count: int = 0
    word_count: int = 0
    grammar_count: int = 0
    exercise_count: int = 0


def get_book_number_from_lesson_id(lesson_id: str) -> int | None:
    """Book number encoded in a lesson id such as 'b1-l01'."""
    match = _LESSON_ID_PATTERN.match(lesson_id)
    return int(match.group(1)) if match else None


def get_lesson_id_from_exercise_id(exercise_id: str) -> str:
    """'b1-l01-ex03' -> 'b1-l01'."""
    parts = exercise_id.split("-")
    if len(parts) >= 2:
        return f"{parts[0]}-{parts[1]}"
    return exercise_id


class ContentIndex:
    """Structural lookups over a loaded manifest."""

    def __init__(self, manifest: ContentManifest | None = None):
        self._manifest: ContentManifest | None = None
        self._lessons: dict[str, tuple[int, ManifestLesson]] = {}
        if manifest is not None:
            self.load(manifest)

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> ContentIndex:
        return cls(ContentManifest.model_validate(raw))

    def load(self, manifest: ContentManifest) -> None:
        self._manifest = manifest
        self._lessons = {
            lesson.id: (int(book_key), lesson)
            for book_key, book in manifest.books.items()
            for lesson in book.lessons
        }

    def reset(self) -> None:
        self._manifest = None
        self._lessons = {}

    @property
    def is_loaded(self) -> bool:
        return self._manifest is not None

    @property
    def manifest(self) -> ContentManifest:
        if self._manifest is None:
            raise ManifestNotLoadedError()
        return self._manifest

    def _require_loaded(self) -> None:
        if self._manifest is None:
            raise ManifestNotLoadedError()

    def get_available_book_numbers(self) -> list[int]:
        return sorted(int(key) for key in self.manifest.books)

    def get_book(self, book_number: int) -> ManifestBook:
        book = self.manifest.books.get(str(book_number))
        if book is None:
            raise UnknownBookError(book_number)
        return book

    def get_book_content_stats(self, book_number: int) -> BookContentStats:
        book = self.get_book(book_number)
        return BookContentStats(
            book_number=book_number,
            lesson_count=book.lesson_count,
            word_count=book.word_count,
            grammar_count=book.grammar_count,
            exercise_count=book.exercise_count,
        )

    def get_total_content_stats(self) -> TotalContentStats:
        totals = TotalContentStats()
        for book in self.manifest.books.values():
            totals.lesson_count += book.lesson_count
            totals.word_count += book.word_count
            totals.grammar_count += book.grammar_count
            totals.exercise_count += book.exercise_count
        return totals

    def get_lesson(self, lesson_id: str) -> ManifestLesson:
        self._require_loaded()
        entry = self._lessons.get(lesson_id)
        if entry is None:
            raise UnknownLessonError(lesson_id)
        return entry[1]

    def get_lesson_book(self, lesson_id: str) -> int:
        self.get_lesson(lesson_id)
        return self._lessons[lesson_id][0]

    def get_lesson_exercise_count(self, lesson_id: str) -> int:
        return self.get_lesson(lesson_id).exercise_count

    def get_lesson_word_ids(self, lesson_id: str) -> list[str]:
        return list(self.get_lesson(lesson_id).vocabulary_ids)

    def get_lesson_ids_for_book(self, book_number: int) -> list[str]:
        return list(self.get_book(book_number).lesson_ids)

    def get_word_ids_for_book(self, book_number: int) -> list[str]:
        return list(self.get_book(book_number).word_ids)

    def get_all_lesson_ids(self) -> list[str]:
        return [
            lesson_id
            for book_number in self.get_available_book_numbers()
            for lesson_id in self.get_lesson_ids_for_book(book_number)
        ]

    def lessons_for_graph(self) -> list[LessonForGraph]:
        """Lesson structure in the shape the encompassing graph builder consumes."""
        self._require_loaded()
        return [
            LessonForGraph(
                id=lesson.id,
                book=book_number,
                lesson=lesson.lesson,
                vocabulary=list(lesson.vocabulary_ids),
                grammar_points=list(lesson.grammar_point_ids),
                exercises=[ExerciseRef(ex.id, tuple(ex.item_ids)) for ex in lesson.exercises],
            )
            for book_number, lesson in self._lessons.values()
        ]
