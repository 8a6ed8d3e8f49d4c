"""
EntryQueryService - answer a similarity query against an entry list at a URL.

The entry list is a JSON array of ``{id, vector, payload}`` objects. It is
read from the cache when possible, otherwise fetched with ``requests`` and
cached. A fresh store is built for every query.
"""

import logging
from typing import Any, Optional, Sequence

import requests

from lshstore import config
from lshstore.adapter import create_vector_store
from lshstore.cache import EntryCache
from lshstore.errors import (
    DimensionMismatchError,
    EmptyInputError,
    FetchError,
    InvalidEntriesError,
)

logger = logging.getLogger(__name__)


def dedupe_entries(entries: Sequence[Any]) -> list[Any]:
    """Keep the first entry for each id; entries without an id are dropped."""
    seen = set()
    unique = []
    for entry in entries:
        entry_id = entry.get("id") if isinstance(entry, dict) else None
        if not entry_id or entry_id in seen:
            continue
        seen.add(entry_id)
        unique.append(entry)
    return unique


def _entry_dimension(entries: Sequence[dict[str, Any]]) -> Optional[int]:
    for entry in entries:
        vector = entry.get("vector")
        if isinstance(vector, list) and vector:
            return len(vector)
    return None


def _matching_dimension(entries: Sequence[dict[str, Any]], dim: int) -> list[dict[str, Any]]:
    """Drop entries whose vector is present but does not have ``dim`` elements."""
    kept = []
    for entry in entries:
        vector = entry.get("vector")
        if isinstance(vector, list) and len(vector) != dim:
            logger.warning(
                "Skipping entry %r with dimension %d, expected %d", entry.get("id"), len(vector), dim
            )
            continue
        kept.append(entry)
    return kept


class EntryQueryService:
    """
    Fetch, cache and query entry lists.

    Example:
        >>> service = EntryQueryService(cache=EntryCache(db_path="cache.db"))
        >>> results = service.query("https://example.com/entries.json", embedding, k=5)
    """

    def __init__(
        self,
        cache: Optional[EntryCache] = None,
        session: Optional[requests.Session] = None,
        timeout: float = config.FETCH_TIMEOUT,
        **store_options: Any,
    ):
        """
        Args:
            cache: Cache for fetched entry lists. No caching if None.
            session: HTTP session used for fetching.
            timeout: Request timeout in seconds.
            **store_options: Passed to the per-query store (tables, bits, ...).
        """
        self.cache = cache
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.store_options = store_options

    def fetch_entries(self, url: str) -> list[Any]:
        """
        Download and parse the entry list at ``url``.

        Raises:
            FetchError: On connection errors or a non-2xx response.
            InvalidEntriesError: If the body is not a JSON array.
        """
        logger.info("Fetching entries from %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"failed to fetch url: {e}") from e

        if not response.ok:
            raise FetchError(f"failed to fetch url: {response.status_code}")

        try:
            entries = response.json()
        except ValueError as e:
            raise InvalidEntriesError(f"failed to parse entries file as JSON array: {e}") from e
        if not isinstance(entries, list):
            raise InvalidEntriesError("failed to parse entries file as JSON array: not an array")
        return entries

    def load_entries(self, url: str) -> list[Any]:
        """Return the entries for ``url`` from the cache, fetching on a miss."""
        if self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                logger.info("Using cached entries for %s", url)
                self.cache.touch(url)
                return cached

        entries = self.fetch_entries(url)
        if self.cache is not None:
            self.cache.set(url, entries)
        return entries

    def query(self, url: str, query_embedding: Sequence[float], k: int = 10) -> list[dict[str, Any]]:
        """
        Rank the entries at ``url`` against ``query_embedding``.

        The dimension is taken from the first entry with a vector. Entries of
        any other dimension are skipped with a warning.

        Returns:
            Up to ``k`` ``{"id", "payload", "score"}`` dicts, best first.

        Raises:
            EmptyInputError: If ``url`` or ``query_embedding`` is missing.
            DimensionMismatchError: If the query and entry dimensions differ.
        """
        if not url or query_embedding is None or len(query_embedding) == 0:
            raise EmptyInputError("missing required fields: url and queryEmbedding (array)")

        entries = dedupe_entries(self.load_entries(url))
        dim = _entry_dimension(entries)
        if dim is None:
            return []
        if len(query_embedding) != dim:
            raise DimensionMismatchError(dim, len(query_embedding))

        entries = _matching_dimension(entries, dim)
        store = create_vector_store(dim=dim, expected_capacity=len(entries), **self.store_options)
        store.upsert(entries)
        return store.query(query_embedding, k)
