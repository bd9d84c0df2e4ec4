from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from dotenv import load_dotenv

from catalog_search.utils.text_cleaning import clamp_integer, normalize_query

from .cache import SuggestCache
from .errors import SearchUnavailableError
from .matching import build_match_query, build_relevance_expression

if TYPE_CHECKING:
    from catalog_search.store.record_store import RecordStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchServiceConfig:
    min_query_length: int = 2
    suggest_default_limit: int = 8
    suggest_max_limit: int = 15
    results_default_limit: int = 12
    results_max_limit: int = 100
    results_max_page: int = 100000
    cache_max_entries: int = 300
    cache_ttl_ms: int = 60000

    @classmethod
    def from_env(cls) -> "SearchServiceConfig":
        """Read cache knobs from the environment.

        Env overrides:
          - SUGGEST_CACHE_MAX (default 300)
          - SUGGEST_CACHE_TTL_MS (default 60000)
        """
        load_dotenv(override=True)
        return cls(
            cache_max_entries=int(os.getenv("SUGGEST_CACHE_MAX", cls.cache_max_entries)),
            cache_ttl_ms=int(os.getenv("SUGGEST_CACHE_TTL_MS", cls.cache_ttl_ms)),
        )


def total_pages(total: int, limit: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / limit)


def _elapsed_ms(started_at: float) -> float:
    return (time.perf_counter() - started_at) * 1000.0


def _thaw(snapshot) -> List[Dict[str, Any]]:
    # Cached suggestions are read-only; every caller gets its own copies.
    return [dict(item) for item in snapshot]


class SearchService:
    """Application-layer product search.

    Implements:
      1) Autocomplete suggestions (short, cached)
      2) Paginated ranked results (never cached)

    The store is any RecordStore; the cache is owned by the caller and passed
    in, so one instance can be shared by every request in the process.
    """

    def __init__(
        self,
        store: "RecordStore",
        cache: Optional[SuggestCache] = None,
        config: SearchServiceConfig | None = None,
    ):
        self.config = config or SearchServiceConfig()
        self.store = store
        # An empty SuggestCache is falsy (__len__), so test for None explicitly.
        if cache is None:
            cache = SuggestCache(
                max_entries=self.config.cache_max_entries,
                ttl_ms=self.config.cache_ttl_ms,
            )
        self.cache = cache

    def suggest(self, raw_query: Any, raw_limit: Any = None) -> List[Dict[str, Any]]:
        """Return up to `limit` suggestion objects for a raw query string."""

        started_at = time.perf_counter()
        q = normalize_query(raw_query)
        limit = clamp_integer(
            raw_limit, 1, self.config.suggest_max_limit, self.config.suggest_default_limit
        )

        if len(q) < self.config.min_query_length:
            return []

        cache_key = f"{q}::{limit}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(
                "search.suggest q=%r limit=%d cache=hit ms=%.1f",
                q, limit, _elapsed_ms(started_at),
            )
            return _thaw(cached)

        predicate = build_match_query(q)
        rule = build_relevance_expression(q)
        try:
            items = self.store.query(predicate, rule, offset=0, limit=limit)
        except Exception as exc:
            logger.exception("search.suggest failed for q=%r", q)
            raise SearchUnavailableError("Error fetching suggestions") from exc

        snapshot = tuple(MappingProxyType(self._to_suggestion(item)) for item in items)
        self.cache.set(cache_key, snapshot)
        logger.info(
            "search.suggest q=%r limit=%d cache=miss ms=%.1f",
            q, limit, _elapsed_ms(started_at),
        )
        return _thaw(snapshot)

    def results(
        self,
        raw_query: Any,
        raw_page: Any = None,
        raw_limit: Any = None,
    ) -> Dict[str, Any]:
        """Return one page of ranked results plus the total match count."""

        started_at = time.perf_counter()
        q = normalize_query(raw_query)
        page = clamp_integer(raw_page, 1, self.config.results_max_page, 1)
        limit = clamp_integer(
            raw_limit, 1, self.config.results_max_limit, self.config.results_default_limit
        )

        if len(q) < self.config.min_query_length:
            return {"query": "", "total": 0, "page": page, "totalPages": 0, "items": []}

        skip = (page - 1) * limit
        predicate = build_match_query(q)
        rule = build_relevance_expression(q)
        try:
            items, total = self.store.search(predicate, rule, offset=skip, limit=limit)
        except Exception as exc:
            logger.exception("search.results failed for q=%r", q)
            raise SearchUnavailableError("Error fetching results") from exc

        logger.info(
            "search.results q=%r page=%d limit=%d total=%d ms=%.1f",
            q, page, limit, total, _elapsed_ms(started_at),
        )
        return {
            "query": q,
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
            "items": [item.to_result() for item in items],
        }

    def _to_suggestion(self, item) -> Dict[str, Any]:
        record = item.record
        return {
            "type": "product",
            "id": record.id,
            "label": record.name,
            "slug": record.slug,
            "thumbnail": record.thumbnail,
        }
