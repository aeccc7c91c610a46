"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.content.manifest import ContentIndex  # noqa: E402
from src.content.vocabulary import VocabularyIndex  # noqa: E402
from src.core.timeutil import to_ms  # noqa: E402
from src.progress.store import InMemoryProgressStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def fixed_now():
    """2024-03-15 12:00:00 UTC in epoch ms."""
    return to_ms(datetime(2024, 3, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def store():
    """Empty in-memory progress store."""
    return InMemoryProgressStore()


@pytest.fixture
def sample_manifest():
    """Two books: three lessons in book 1, one in book 2."""
    return {
        "version": 1,
        "generatedAt": "2024-01-01T00:00:00.000Z",
        "books": {
            "1": {
                "lessonCount": 3,
                "wordCount": 4,
                "grammarCount": 1,
                "exerciseCount": 7,
                "lessonIds": ["b1-l01", "b1-l02", "b1-l03"],
                "wordIds": ["w1", "w2", "w3", "w4"],
                "lessons": [
                    {
                        "id": "b1-l01",
                        "lesson": 1,
                        "title": "هذا",
                        "titleEn": "This",
                        "exerciseCount": 4,
                        "vocabularyIds": ["w1", "w2"],
                        "grammarPointIds": ["g1"],
                        "exercises": [
                            {"id": "b1-l01-ex01", "itemIds": ["w1", "w2"]},
                            {"id": "b1-l01-ex02", "itemIds": ["w1", "g1"]},
                        ],
                    },
                    {
                        "id": "b1-l02",
                        "lesson": 2,
                        "exerciseCount": 2,
                        "vocabularyIds": ["w3"],
                        "grammarPointIds": [],
                    },
                    {
                        "id": "b1-l03",
                        "lesson": 3,
                        "exerciseCount": 1,
                        "vocabularyIds": ["w4"],
                        "grammarPointIds": [],
                    },
                ],
            },
            "2": {
                "lessonCount": 1,
                "wordCount": 1,
                "grammarCount": 0,
                "exerciseCount": 0,
                "lessonIds": ["b2-l01"],
                "wordIds": ["w5"],
                "lessons": [
                    {
                        "id": "b2-l01",
                        "lesson": 1,
                        "exerciseCount": 0,
                        "vocabularyIds": ["w5"],
                        "grammarPointIds": [],
                    }
                ],
            },
        },
    }


@pytest.fixture
def sample_vocabulary():
    """Vocabulary entries matching sample_manifest."""
    return [
        {"id": "w1", "arabic": "كِتَابٌ", "english": "book", "root": "ك ت ب", "lesson": "b1-l01", "partOfSpeech": "noun"},
        {"id": "w2", "arabic": "قَلَمٌ", "english": "pen", "root": "ق ل م", "lesson": "b1-l01", "partOfSpeech": "noun"},
        {"id": "w3", "arabic": "مَكْتَبٌ", "english": "desk", "root": "ك ت ب", "lesson": "b1-l02", "partOfSpeech": "noun"},
        {"id": "w4", "arabic": "بَيْتٌ", "english": "house", "root": "ب ي ت", "lesson": "b1-l03", "partOfSpeech": "noun"},
        {"id": "w5", "arabic": "ذَهَبَ", "english": "he went", "lesson": "b2-l01", "partOfSpeech": "verb"},
    ]


@pytest.fixture
def content_index(sample_manifest):
    return ContentIndex.from_json(sample_manifest)


@pytest.fixture
def vocabulary(sample_vocabulary):
    return VocabularyIndex.from_json(sample_vocabulary)


@pytest.fixture
def content_files(tmp_path, sample_manifest, sample_vocabulary):
    """Manifest and vocabulary written to disk; returns (manifest_path, vocabulary_path)."""
    manifest_path = tmp_path / "content-manifest.json"
    vocabulary_path = tmp_path / "vocabulary.json"
    manifest_path.write_text(json.dumps(sample_manifest, ensure_ascii=False), encoding="utf-8")
    vocabulary_path.write_text(json.dumps(sample_vocabulary, ensure_ascii=False), encoding="utf-8")
    return manifest_path, vocabulary_path
