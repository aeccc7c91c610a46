"""
Exercise variants.

Exercises are authored content: immutable, identified by id, and tagged by
their ``type``. Each variant is its own frozen dataclass carrying only the
fields that variant needs; ``exercise_from_dict`` dispatches on the tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from src.core.exceptions import UnknownExerciseTypeError

_REGISTRY: dict[str, type[BaseExercise]] = {}


def _register(cls: type[BaseExercise]) -> type[BaseExercise]:
    _REGISTRY[cls.type] = cls
    return cls


@dataclass(frozen=True, kw_only=True)
class BaseExercise:
    """Fields shared by every exercise variant."""

    type: ClassVar[str] = ""

    id: str
    item_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "itemIds": list(self.item_ids)}

    @classmethod
    def _base_kwargs(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {"id": data["id"], "item_ids": tuple(data.get("itemIds", ()))}


@dataclass(frozen=True, kw_only=True)
class PromptAnswerExercise(BaseExercise):
    """Variants that are a prompt with a single expected answer."""

    prompt: str
    answer: str

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(prompt=self.prompt, answer=self.answer)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromptAnswerExercise:
        return cls(prompt=data["prompt"], answer=data["answer"], **cls._base_kwargs(data))


@_register
@dataclass(frozen=True, kw_only=True)
class FillBlankExercise(PromptAnswerExercise):
    type: ClassVar[str] = "fill-blank"

    prompt_en: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.prompt_en is not None:
            data["promptEn"] = self.prompt_en
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FillBlankExercise:
        return cls(
            prompt=data["prompt"],
            answer=data["answer"],
            prompt_en=data.get("promptEn"),
            **cls._base_kwargs(data),
        )


@_register
@dataclass(frozen=True, kw_only=True)
class TranslateExercise(PromptAnswerExercise):
    type: ClassVar[str] = "translate-to-arabic"


@_register
@dataclass(frozen=True, kw_only=True)
class WordToMeaningExercise(PromptAnswerExercise):
    type: ClassVar[str] = "word-to-meaning"


@_register
@dataclass(frozen=True, kw_only=True)
class MeaningToWordExercise(PromptAnswerExercise):
    type: ClassVar[str] = "meaning-to-word"


@_register
@dataclass(frozen=True, kw_only=True)
class GrammarApplyExercise(FillBlankExercise):
    type: ClassVar[str] = "grammar-apply"


@_register
@dataclass(frozen=True, kw_only=True)
class ConstructSentenceExercise(BaseExercise):
    type: ClassVar[str] = "construct-sentence"

    words: tuple[str, ...]
    answer: str

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(words=list(self.words), answer=self.answer)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConstructSentenceExercise:
        return cls(words=tuple(data["words"]), answer=data["answer"], **cls._base_kwargs(data))


@_register
@dataclass(frozen=True, kw_only=True)
class ErrorCorrectionExercise(BaseExercise):
    """Find and fix the mistake in a sentence."""

    type: ClassVar[str] = "error-correction"

    sentence_with_error: str
    correct_sentence: str
    error_word: str
    correct_word: str
    error_type: str  # gender, number, case, definiteness, word_order, vocabulary, tashkeel, spelling
    english_hint: str | None = None
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            sentenceWithError=self.sentence_with_error,
            correctSentence=self.correct_sentence,
            errorWord=self.error_word,
            correctWord=self.correct_word,
            errorType=self.error_type,
        )
        if self.english_hint is not None:
            data["englishHint"] = self.english_hint
        if self.explanation is not None:
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorCorrectionExercise:
        return cls(
            sentence_with_error=data["sentenceWithError"],
            correct_sentence=data["correctSentence"],
            error_word=data["errorWord"],
            correct_word=data["correctWord"],
            error_type=data["errorType"],
            english_hint=data.get("englishHint"),
            explanation=data.get("explanation"),
            **cls._base_kwargs(data),
        )


@dataclass(frozen=True)
class ClozeBlank:
    position: int  # 0-based word index
    answer: str
    hint: str | None = None


@_register
@dataclass(frozen=True, kw_only=True)
class MultiClozeExercise(BaseExercise):
    """Sentence with several blanks to fill."""

    type: ClassVar[str] = "multi-cloze"

    prompt: str
    blanks: tuple[ClozeBlank, ...]
    complete_sentence: str
    prompt_en: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            prompt=self.prompt,
            blanks=[
                {"position": b.position, "answer": b.answer, **({"hint": b.hint} if b.hint is not None else {})}
                for b in self.blanks
            ],
            completeSentence=self.complete_sentence,
        )
        if self.prompt_en is not None:
            data["promptEn"] = self.prompt_en
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MultiClozeExercise:
        return cls(
            prompt=data["prompt"],
            blanks=tuple(
                ClozeBlank(position=b["position"], answer=b["answer"], hint=b.get("hint"))
                for b in data["blanks"]
            ),
            complete_sentence=data["completeSentence"],
            prompt_en=data.get("promptEn"),
            **cls._base_kwargs(data),
        )


@dataclass(frozen=True)
class SemanticCategory:
    id: str
    name_en: str
    name_ar: str


@dataclass(frozen=True)
class SemanticWord:
    arabic: str
    english: str
    category: str


@_register
@dataclass(frozen=True, kw_only=True)
class SemanticFieldExercise(BaseExercise):
    """Sort words into meaning categories."""

    type: ClassVar[str] = "semantic-field"

    categories: tuple[SemanticCategory, ...]
    words: tuple[SemanticWord, ...]
    instruction: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            categories=[{"id": c.id, "nameEn": c.name_en, "nameAr": c.name_ar} for c in self.categories],
            words=[{"arabic": w.arabic, "english": w.english, "category": w.category} for w in self.words],
        )
        if self.instruction is not None:
            data["instruction"] = self.instruction
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SemanticFieldExercise:
        return cls(
            categories=tuple(
                SemanticCategory(id=c["id"], name_en=c["nameEn"], name_ar=c["nameAr"])
                for c in data["categories"]
            ),
            words=tuple(
                SemanticWord(arabic=w["arabic"], english=w["english"], category=w["category"])
                for w in data["words"]
            ),
            instruction=data.get("instruction"),
            **cls._base_kwargs(data),
        )


@dataclass(frozen=True)
class UnscrambleWord:
    text: str
    id: str
    is_distractor: bool = False


@_register
@dataclass(frozen=True, kw_only=True)
class SentenceUnscrambleExercise(BaseExercise):
    """Arrange word tiles into a sentence, ignoring distractors."""

    type: ClassVar[str] = "sentence-unscramble"

    correct_sentence: str
    words: tuple[UnscrambleWord, ...]
    distractor_count: int = 0
    english_hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            correctSentence=self.correct_sentence,
            words=[{"text": w.text, "id": w.id, "isDistractor": w.is_distractor} for w in self.words],
            distractorCount=self.distractor_count,
        )
        if self.english_hint is not None:
            data["englishHint"] = self.english_hint
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SentenceUnscrambleExercise:
        return cls(
            correct_sentence=data["correctSentence"],
            words=tuple(
                UnscrambleWord(text=w["text"], id=w["id"], is_distractor=w.get("isDistractor", False))
                for w in data["words"]
            ),
            distractor_count=data.get("distractorCount", 0),
            english_hint=data.get("englishHint"),
            **cls._base_kwargs(data),
        )


Exercise = (
    FillBlankExercise
    | TranslateExercise
    | WordToMeaningExercise
    | MeaningToWordExercise
    | ConstructSentenceExercise
    | GrammarApplyExercise
    | ErrorCorrectionExercise
    | MultiClozeExercise
    | SemanticFieldExercise
    | SentenceUnscrambleExercise
)

EXERCISE_TYPES: tuple[str, ...] = tuple(_REGISTRY)


def exercise_from_dict(data: dict[str, Any]) -> Exercise:
    """
    Parse authored exercise JSON into its variant.

    Raises:
        UnknownExerciseTypeError: If the ``type`` tag is not a known variant
    """
    exercise_type = data.get("type", "")
    cls = _REGISTRY.get(exercise_type)
    if cls is None:
        raise UnknownExerciseTypeError(exercise_type)
    return cls.from_dict(data)
