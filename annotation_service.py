"""
annotation_service.py - Request orchestration for the annotation endpoint

Runs the five request steps in order: resolve configuration, load document,
negotiate output, annotate through the cached pipeline, serialize. Failures in
the first three steps are client errors; anything after that is a processing
failure.
"""
import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import document_loader
import properties
from exceptions import AnnotationFailure, SerializationFailure
from output_negotiator import negotiate
from pipeline_cache import PipelineCache
from properties import EffectiveConfiguration
from serializers.registry import SerializerRegistry, get_registry
from logger import get_logger
from metrics import annotation_duration

logger = get_logger(__name__)


@dataclass
class AnnotationResult:
    body: bytes
    content_type: str


def _describe(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class AnnotationService:
    """Turns one request (query string and body) into a serialized annotated document"""

    def __init__(self, defaults: EffectiveConfiguration, pipeline_cache: PipelineCache,
                 registry: Optional[SerializerRegistry] = None, max_workers: int = 4):
        self.defaults = defaults
        self.pipeline_cache = pipeline_cache
        self.registry = registry or get_registry()
        self.max_workers = max_workers
        self._executor = None

    def annotate(self, raw_query: str, body: bytes) -> AnnotationResult:
        """
        Handle one annotation request synchronously.

        Raises:
            ClientError: malformed configuration, input, or output format
            AnnotationFailure: pipeline construction or annotation failed
            SerializationFailure: the annotated document could not be written
        """
        config = properties.resolve(self.defaults, raw_query)
        document = document_loader.load(config, body, self.registry)
        outputter, content_type = negotiate(config, self.registry)

        start = time.time()
        try:
            pipeline = self.pipeline_cache.get_or_build(config)
            pipeline.annotate(document)
        except Exception as e:
            logger.error(f"Annotation failed: {e}", exc_info=True)
            raise AnnotationFailure(_describe(e), original_error=e)
        finally:
            annotation_duration.observe(time.time() - start)

        try:
            payload = outputter.write(document)
        except Exception as e:
            logger.error(f"Serialization failed: {e}", exc_info=True)
            raise SerializationFailure(_describe(e), original_error=e)

        logger.debug(f"Annotated {len(document.text)} chars as {content_type} ({len(payload)} bytes)")
        return AnnotationResult(body=payload, content_type=content_type)

    async def annotate_async(self, raw_query: str, body: bytes) -> AnnotationResult:
        """Run ``annotate`` on the worker pool so the event loop stays free"""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="annotate")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.annotate, raw_query, body)

    def close(self):
        """Stop accepting work and release worker threads"""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
