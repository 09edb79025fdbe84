"""
Article persistence collaborator.

The generation pipeline only needs ``create_article``; the real CRUD store
lives behind this interface. An in-memory implementation ships for local
runs and tests.
"""

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from contentops.core.exceptions import ArticleCreationError
from contentops.services.ai.models import GenerationResult
from contentops.services.ai.requests import GenerationRequest

logger = logging.getLogger(__name__)

ARTICLE_STATUS_READY = "ready_for_editorial"


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-{2,}", "-", slug).strip("-")


def build_article_fields(request: GenerationRequest, result: GenerationResult) -> Dict[str, Any]:
    """Map a successful generation onto the article store's record fields"""
    parsed = result.parsed
    quality = result.quality
    return {
        "title": parsed.title,
        "content": parsed.body,
        "meta_description": parsed.meta_description,
        "slug": slugify(parsed.title),
        "status": ARTICLE_STATUS_READY,
        "target_keywords": list(request.keywords),
        "seo_score": quality.overall_score if quality else None,
        "word_count": quality.word_count if quality else len(parsed.body.split()),
        "reading_time": quality.reading_time if quality else None,
        "source_topic_id": request.topic_id,
    }


class ArticleRepository(ABC):
    @abstractmethod
    async def create_article(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new article and return the stored record

        Raises ArticleCreationError when the record cannot be written.
        """


class InMemoryArticleRepository(ArticleRepository):
    def __init__(self):
        self._articles: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def create_article(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not fields.get("title") or not fields.get("content"):
            raise ArticleCreationError("Article title and content are required")

        async with self._lock:
            slug = fields.get("slug") or slugify(fields["title"])
            if any(article["slug"] == slug for article in self._articles.values()):
                slug = f"{slug}-{uuid.uuid4().hex[:6]}"

            record = {
                **fields,
                "id": f"art_{uuid.uuid4().hex}",
                "slug": slug,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._articles[record["id"]] = record

        logger.info(f"Created article {record['id']} ({slug})")
        return dict(record)

    async def get(self, article_id: str) -> Optional[Dict[str, Any]]:
        record = self._articles.get(article_id)
        return dict(record) if record else None

    async def list(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self._articles.values()]
