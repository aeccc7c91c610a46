"""
Vocabulary index.

Read-only lookup maps over the vocabulary dataset (by id, lesson and root).
The index owns its maps; nothing here is module-level state.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field


class WordData(BaseModel):
    """A vocabulary entry as authored in the content dataset."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    arabic: str
    english: str
    root: str | None = None
    lesson: str
    part_of_speech: str = Field(default="", alias="partOfSpeech")


class WordLookup(Protocol):
    """What analyzers need from the vocabulary collaborator."""

    def get_word_by_id(self, word_id: str) -> WordData | None:
        ...


class VocabularyIndex:
    """Lookup maps over a list of words."""

    def __init__(self, words: Iterable[WordData] = ()):
        self._words: list[WordData] = []
        self._by_id: dict[str, WordData] = {}
        self._by_lesson: dict[str, list[WordData]] = defaultdict(list)
        self._by_root: dict[str, list[WordData]] = defaultdict(list)
        self.is_loaded = False
        words = list(words)
        if words:
            self.load(words)

    @classmethod
    def from_json(cls, raw: list[dict[str, Any]]) -> VocabularyIndex:
        return cls(WordData.model_validate(entry) for entry in raw)

    def load(self, words: Iterable[WordData]) -> None:
        """Replace the index contents."""
        self.reset()
        for word in words:
            self._words.append(word)
            self._by_id[word.id] = word
            self._by_lesson[word.lesson].append(word)
            if word.root:
                self._by_root[word.root].append(word)
        self.is_loaded = True

    def reset(self) -> None:
        self._words.clear()
        self._by_id.clear()
        self._by_lesson.clear()
        self._by_root.clear()
        self.is_loaded = False

    def get_word_by_id(self, word_id: str) -> WordData | None:
        return self._by_id.get(word_id)

    def get_all_words(self) -> list[WordData]:
        return list(self._words)

    def get_words_by_lesson(self, lesson_id: str) -> list[WordData]:
        return list(self._by_lesson.get(lesson_id, []))

    def get_words_by_root(self, root: str) -> list[WordData]:
        return list(self._by_root.get(root, []))

    def get_all_roots(self) -> list[str]:
        return sorted(self._by_root)

    @property
    def word_count(self) -> int:
        return len(self._words)
