"""
Engine context.

Owns the long-lived pieces the engine's operations share: settings, the
progress store, the content datasets and the encompassing graph. The
context is a lazily created process singleton; tests swap or clear it with
reset_engine_context().
"""

from __future__ import annotations

import threading

from loguru import logger

from config import Settings, get_settings
from src.analysis.calibration import CalibrationAnalyzer
from src.analysis.weakness import WeaknessAnalyzer, WeaknessThresholds
from src.content.loader import ContentLoader
from src.content.manifest import ContentIndex
from src.content.vocabulary import VocabularyIndex
from src.core.exceptions import GraphFormatError, ManifestNotLoadedError
from src.core.mastery import StrengthModel
from src.db.database import Database
from src.graph.encompassing import (
    EncompassingEdge,
    EncompassingGraph,
    GraphBuildOptions,
    build_encompassing_graph,
    graph_from_dict,
)
from src.progress.service import ProgressService
from src.progress.store import GRAPH_KEY, ProgressStore, SqlProgressStore


class EngineContext:
    """Shared state for one learner's engine session."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: ProgressStore | None = None,
        loader: ContentLoader | None = None,
    ):
        """
        Initialize context.

        Args:
            settings: Application settings (defaults to get_settings())
            store: Progress store (defaults to a SqlProgressStore on settings.database_url)
            loader: Content loader (defaults to the configured manifest / vocabulary sources)
        """
        self.settings = settings or get_settings()
        self.database: Database | None = None
        if store is None:
            self.database = Database(self.settings.database_url)
            store = SqlProgressStore(self.database)
        self.store = store
        self.loader = loader or ContentLoader(
            self.settings.manifest_source,
            self.settings.vocabulary_source,
            timeout_seconds=self.settings.http_timeout_seconds,
        )
        self.strength_model = StrengthModel.from_settings(self.settings)
        self._content: ContentIndex | None = None
        self._vocabulary: VocabularyIndex | None = None
        self._graph: EncompassingGraph | None = None

    # ========================================================================
    # Content
    # ========================================================================

    async def load_content(self) -> None:
        """Load the manifest and vocabulary (each fetched at most once)."""
        self._content = await self.loader.load_manifest()
        self._vocabulary = await self.loader.load_vocabulary()

    @property
    def content(self) -> ContentIndex:
        if self._content is None:
            raise ManifestNotLoadedError()
        return self._content

    @property
    def vocabulary(self) -> VocabularyIndex:
        """Loaded vocabulary; an empty index (every lookup None) before loading."""
        if self._vocabulary is None:
            return VocabularyIndex()
        return self._vocabulary

    # ========================================================================
    # Encompassing graph
    # ========================================================================

    def get_graph(
        self,
        rebuild: bool = False,
        manual_overrides: list[EncompassingEdge] | None = None,
    ) -> EncompassingGraph:
        """
        Return the encompassing graph.

        Uses the in-memory copy, then the persisted copy, and otherwise builds
        it from the manifest and persists the result.

        Args:
            rebuild: Ignore cached copies and build from the manifest
            manual_overrides: Edges that replace computed weights when building
        """
        if not rebuild and self._graph is not None:
            return self._graph

        if not rebuild:
            stored = self.store.get_blob(GRAPH_KEY)
            if stored is not None:
                try:
                    self._graph = graph_from_dict(stored)
                    return self._graph
                except GraphFormatError as e:
                    logger.warning(f"Stored encompassing graph is unusable, rebuilding: {e}")

        options = GraphBuildOptions.from_settings(self.settings, manual_overrides)
        self._graph = build_encompassing_graph(self.content.lessons_for_graph(), options)
        self.store.set_blob(GRAPH_KEY, self._graph.to_dict())
        logger.info(f"Encompassing graph built with {self._graph.edge_count} edges")
        return self._graph

    # ========================================================================
    # Services
    # ========================================================================

    def progress_service(self) -> ProgressService:
        return ProgressService(self.store, self.content, self.strength_model)

    def weakness_analyzer(self) -> WeaknessAnalyzer:
        return WeaknessAnalyzer(
            self.store,
            self.vocabulary,
            thresholds=WeaknessThresholds.from_settings(self.settings),
        )

    def calibration_analyzer(self) -> CalibrationAnalyzer:
        return CalibrationAnalyzer.from_settings(self.store, self.settings)

    def reset_progress(self) -> None:
        """Delete stored progress (and the persisted graph) for this learner."""
        self.store.reset()
        self._graph = None

    def close(self) -> None:
        self.loader.reset()
        self._content = None
        self._vocabulary = None
        self._graph = None
        if self.database is not None:
            self.database.dispose()


_context: EngineContext | None = None
_context_lock = threading.Lock()


def get_engine_context() -> EngineContext:
    """Get or create the process-wide engine context."""
    global _context
    if _context is None:
        with _context_lock:
            if _context is None:
                _context = EngineContext()
    return _context


def set_engine_context(context: EngineContext) -> None:
    """Install a context (tests use this to inject in-memory stores)."""
    global _context
    with _context_lock:
        _context = context


def reset_engine_context() -> None:
    """Close and forget the current context."""
    global _context
    with _context_lock:
        if _context is not None:
            _context.close()
        _context = None
