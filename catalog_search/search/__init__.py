"""Search application layer.

This package turns free-text queries into two responses used by the API:
- Autocomplete suggestions, served through a bounded LRU/TTL cache
- Paginated ranked results

Matching and ranking are declarative (see `matching`); stores live in
`catalog_search.store`.
"""

from .cache import SuggestCache
from .errors import SearchError, SearchUnavailableError
from .service import SearchService, SearchServiceConfig

__all__ = [
    "SearchError",
    "SearchService",
    "SearchServiceConfig",
    "SearchUnavailableError",
    "SuggestCache",
]
