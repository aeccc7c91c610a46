"""
Content loader for the manifest and vocabulary datasets.

Sources are local JSON paths or http(s) URLs. Loads are single-flight:
concurrent callers share one fetch, the result is cached, and a failed
fetch is forgotten so a later call retries.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from src.content.manifest import ContentIndex, ContentManifest
from src.content.vocabulary import VocabularyIndex, WordData
from src.core.exceptions import ContentLoadError
from src.core.single_flight import SingleFlight

MANIFEST_KEY = "manifest"
VOCABULARY_KEY = "vocabulary"


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class ContentLoader:
    """Fetch and parse content datasets into the engine's indexes."""

    def __init__(
        self,
        manifest_source: str,
        vocabulary_source: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize loader.

        Args:
            manifest_source: Path or URL of the content manifest JSON
            vocabulary_source: Path or URL of the vocabulary JSON (a list of words)
            timeout_seconds: HTTP timeout for remote sources
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.manifest_source = manifest_source
        self.vocabulary_source = vocabulary_source
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.flight = SingleFlight()

    async def _fetch_json(self, source: str) -> Any:
        if _is_url(source):
            try:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_seconds),
                    follow_redirects=True,
                    transport=self.transport,
                ) as client:
                    response = await client.get(source)
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPError as e:
                raise ContentLoadError(source, str(e)) from e
            except json.JSONDecodeError as e:
                raise ContentLoadError(source, f"invalid JSON: {e}") from e

        path = Path(source)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(text)
        except FileNotFoundError as e:
            raise ContentLoadError(source, "file not found") from e
        except json.JSONDecodeError as e:
            raise ContentLoadError(source, f"invalid JSON: {e}") from e

    async def _load_manifest(self) -> ContentIndex:
        raw = await self._fetch_json(self.manifest_source)
        try:
            index = ContentIndex(ContentManifest.model_validate(raw))
        except ValidationError as e:
            raise ContentLoadError(self.manifest_source, f"invalid manifest: {e}") from e
        logger.info(f"Loaded content manifest with {len(index.manifest.books)} books")
        return index

    async def _load_vocabulary(self) -> VocabularyIndex:
        raw = await self._fetch_json(self.vocabulary_source)
        if not isinstance(raw, list):
            raise ContentLoadError(self.vocabulary_source, "expected a list of words")
        try:
            index = VocabularyIndex(WordData.model_validate(entry) for entry in raw)
        except ValidationError as e:
            raise ContentLoadError(self.vocabulary_source, f"invalid word entry: {e}") from e
        logger.info(f"Loaded {index.word_count} vocabulary words")
        return index

    async def load_manifest(self) -> ContentIndex:
        return await self.flight.do(MANIFEST_KEY, self._load_manifest)

    async def load_vocabulary(self) -> VocabularyIndex:
        return await self.flight.do(VOCABULARY_KEY, self._load_vocabulary)

    def reset(self) -> None:
        self.flight.reset()
