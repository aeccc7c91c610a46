"""
Content: read-only curriculum datasets.

Core modules:
- manifest: Book / lesson structure and content statistics
- vocabulary: Word lookups by id, lesson and root
- loader: Single-flight loading from local files or URLs
"""

from .loader import ContentLoader
from .manifest import BookContentStats, ContentIndex, ContentManifest, TotalContentStats
from .vocabulary import VocabularyIndex, WordData, WordLookup

__all__ = [
    "ContentLoader",
    "ContentIndex",
    "ContentManifest",
    "BookContentStats",
    "TotalContentStats",
    "VocabularyIndex",
    "WordData",
    "WordLookup",
]
