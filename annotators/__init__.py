"""
Annotation engine: spaCy pipelines built from a request configuration
"""
from annotators.base import AnnotationPipeline
from annotators.spacy_pipeline import SpacyPipeline, build_pipeline

__all__ = ["AnnotationPipeline", "SpacyPipeline", "build_pipeline"]
