"""
pipeline_cache.py - Keyed cache of constructed annotation pipelines

Pipelines are expensive to build (model loading) and cheap to share, so one
instance is kept per distinct request configuration. Entries are reclaimed by
a bounded LRU policy with a time-to-live; callers must always be ready to
rebuild after a miss.
"""
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional

from annotators.base import AnnotationPipeline
from logger import get_logger
from metrics import pipeline_builds, pipeline_cache_hits, pipeline_cache_misses, pipeline_cache_size

logger = get_logger(__name__)

PipelineBuilder = Callable[[Any], AnnotationPipeline]


@dataclass
class CacheEntry:
    value: AnnotationPipeline
    expires: float
    last_accessed: float


class PipelineCache:
    """
    Thread-safe get-or-build cache for annotation pipelines.

    A short cache-wide lock guards the entry map. Construction happens under a
    striped build lock chosen by key hash, so at most one build runs per key
    while readers of present entries and builds of keys on other stripes
    proceed. Pipelines are executed by callers outside every lock here.
    """

    def __init__(self, builder: PipelineBuilder, max_size: int = 16, ttl: int = 3600,
                 stripes: int = 16, clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.builder = builder
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._build_locks = [threading.Lock() for _ in range(max(1, stripes))]
        self.hits = 0
        self.misses = 0
        self.builds = 0

    def _stripe_for(self, key: Hashable) -> threading.Lock:
        return self._build_locks[hash(key) % len(self._build_locks)]

    def get_if_present(self, key: Hashable) -> Optional[AnnotationPipeline]:
        """Return the cached pipeline for ``key`` or None; never builds"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            now = self._clock()
            if entry.expires <= now:
                del self._entries[key]
                pipeline_cache_size.set(len(self._entries))
                logger.debug("Pipeline cache entry expired")
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            return entry.value

    def put_if_absent(self, key: Hashable, pipeline: AnnotationPipeline) -> AnnotationPipeline:
        """
        Insert ``pipeline`` unless a live entry already exists.

        Returns whichever instance is cached afterwards so racing writers all
        end up using the same pipeline.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and entry.expires > now:
                entry.last_accessed = now
                self._entries.move_to_end(key)
                return entry.value

            self._entries[key] = CacheEntry(value=pipeline, expires=now + self.ttl, last_accessed=now)
            self._entries.move_to_end(key)
            self._evict_overflow()
            pipeline_cache_size.set(len(self._entries))
            return pipeline

    def _evict_overflow(self):
        """Drop least recently used entries beyond ``max_size``; caller holds the lock"""
        evicted = 0
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} pipeline cache entries")

    def get_or_build(self, key: Hashable) -> AnnotationPipeline:
        """Return the pipeline for ``key``, building it on a miss"""
        pipeline = self.get_if_present(key)
        if pipeline is not None:
            self._record_hit()
            return pipeline

        with self._stripe_for(key):
            # Another thread may have finished the build while we waited
            pipeline = self.get_if_present(key)
            if pipeline is not None:
                self._record_hit()
                return pipeline

            self._record_miss()
            start = time.time()
            try:
                pipeline = self.builder(key)
            except Exception:
                pipeline_builds.labels("failure").inc()
                raise
            pipeline_builds.labels("success").inc()
            with self._lock:
                self.builds += 1
            logger.info(f"Built pipeline {pipeline.get_name()} in {time.time() - start:.2f}s")

            return self.put_if_absent(key, pipeline)

    def _record_hit(self):
        pipeline_cache_hits.inc()
        with self._lock:
            self.hits += 1

    def _record_miss(self):
        pipeline_cache_misses.inc()
        with self._lock:
            self.misses += 1

    def __contains__(self, key: Hashable) -> bool:
        return self.get_if_present(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def evict(self, key: Hashable) -> bool:
        """Drop ``key`` from the cache"""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            pipeline_cache_size.set(len(self._entries))
        return removed

    def clear_expired(self) -> int:
        """Clear expired entries"""
        with self._lock:
            now = self._clock()
            expired: List[Hashable] = [k for k, v in self._entries.items() if v.expires <= now]
            for key in expired:
                del self._entries[key]
            pipeline_cache_size.set(len(self._entries))

        if expired:
            logger.info(f"Cleared {len(expired)} expired pipeline cache entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            return {
                'size': len(self._entries),
                'max_size': self.max_size,
                'ttl': self.ttl,
                'hits': self.hits,
                'misses': self.misses,
                'builds': self.builds,
            }

    def clear(self):
        """Drop every entry; pipelines still in use by requests stay valid"""
        with self._lock:
            self._entries.clear()
            pipeline_cache_size.set(0)
