"""Per-domain cache of proven extraction selectors.

The cache may be wrong but never stays wrong: an extraction that fails with
cached selectors invalidates the entry, so the next run rediscovers them.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from ...config import settings
from ..models import SelectorSet

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached selectors for one domain."""

    selectors: SelectorSet
    success_count: int = 1
    created: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    invalidated: bool = False


def extract_domain(url_or_domain: str) -> str:
    """Normalize a URL or bare host to a cache key (lowercase, no ``www.``)."""
    if not url_or_domain:
        return ""
    value = url_or_domain.strip()
    hostname = urlparse(value).hostname if "://" in value else value.split("/")[0].split(":")[0]
    if not hostname:
        return ""
    hostname = hostname.lower()
    return hostname[4:] if hostname.startswith("www.") else hostname


class SelectorCache:
    """In-memory selector cache keyed by domain, bounded with LRU eviction."""

    def __init__(
        self,
        max_domains: Optional[int] = None,
        min_success_for_trust: Optional[int] = None,
        use_cache: Optional[bool] = None,
        enable_caching: Optional[bool] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize selector cache.

        Args:
            max_domains: Capacity; the least recently used quarter is evicted when full
            min_success_for_trust: Success count at which an entry is fully trusted
            use_cache: Whether ``get`` returns cached selectors at all
            enable_caching: Whether ``put`` stores new selectors
            clock: Time source for ``created``/``last_used``
        """
        self.max_domains = max_domains or settings.max_cached_domains
        self.min_success_for_trust = min_success_for_trust or settings.min_success_for_trust
        self.use_cache = settings.use_selector_cache if use_cache is None else use_cache
        self.enable_caching = (
            settings.enable_selector_caching if enable_caching is None else enable_caching
        )
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url_or_domain: str) -> bool:
        return extract_domain(url_or_domain) in self._entries

    def entry(self, url_or_domain: str) -> Optional[CacheEntry]:
        """Raw entry access, including invalidated entries."""
        return self._entries.get(extract_domain(url_or_domain))

    def get(self, url_or_domain: str) -> Optional[SelectorSet]:
        """Return usable cached selectors for a domain.

        Invalidated entries are ignored. A hit refreshes ``last_used``.
        """
        if not self.use_cache:
            return None
        domain = extract_domain(url_or_domain)
        if not domain:
            return None

        entry = self._entries.get(domain)
        if entry is None:
            return None
        if entry.invalidated:
            logger.info(f"Selector cache entry for {domain} was invalidated, ignoring")
            return None

        entry.last_used = self._clock()
        logger.info(
            f"Using cached selectors for {domain} "
            f"(successes={entry.success_count}, trusted={self._is_trusted(entry)})"
        )
        return entry.selectors.model_copy(deep=True)

    def _evict(self) -> None:
        by_age = sorted(self._entries, key=lambda d: self._entries[d].last_used)
        to_remove = by_age[: max(1, self.max_domains // 4)]
        for domain in to_remove:
            del self._entries[domain]
        logger.info(f"Evicted {len(to_remove)} old selector cache entries")

    def put(self, url_or_domain: str, selectors: SelectorSet) -> bool:
        """Store selectors after a clean extraction.

        Re-storing a valid entry counts as another success; storing over an
        invalidated entry starts it over.

        Returns:
            True if stored
        """
        if not self.enable_caching:
            return False
        domain = extract_domain(url_or_domain)
        if not domain or not selectors.is_usable:
            return False

        now = self._clock()
        existing = self._entries.get(domain)
        if existing is None and len(self._entries) >= self.max_domains:
            self._evict()

        if existing is not None and not existing.invalidated:
            existing.selectors = selectors.model_copy(deep=True)
            existing.success_count += 1
            existing.last_used = now
        else:
            self._entries[domain] = CacheEntry(
                selectors=selectors.model_copy(deep=True),
                success_count=1,
                created=now,
                last_used=now,
            )
        logger.info(f"Cached selectors for {domain}")
        return True

    def mark_success(self, url_or_domain: str) -> None:
        """Record another clean extraction with the cached selectors."""
        entry = self._entries.get(extract_domain(url_or_domain))
        if entry is None or entry.invalidated:
            return
        entry.success_count += 1
        entry.last_used = self._clock()

    def invalidate(self, url_or_domain: str) -> None:
        """Discard trust in a domain's selectors after a failed extraction."""
        domain = extract_domain(url_or_domain)
        entry = self._entries.get(domain)
        if entry is None:
            return
        entry.invalidated = True
        entry.success_count = 0
        logger.warning(f"Invalidated cached selectors for {domain}")

    def delete(self, url_or_domain: str) -> bool:
        return self._entries.pop(extract_domain(url_or_domain), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _is_trusted(self, entry: CacheEntry) -> bool:
        return not entry.invalidated and entry.success_count >= self.min_success_for_trust

    def should_trust(self, url_or_domain: str) -> bool:
        """Whether the domain's selectors have proven themselves repeatedly."""
        entry = self._entries.get(extract_domain(url_or_domain))
        return entry is not None and self._is_trusted(entry)

    def stats(self) -> Dict[str, int]:
        """Counts of cached, trusted and invalidated domains."""
        entries = list(self._entries.values())
        return {
            "domains": len(entries),
            "trusted": sum(1 for e in entries if self._is_trusted(e)),
            "invalidated": sum(1 for e in entries if e.invalidated),
            "max_domains": self.max_domains,
        }
