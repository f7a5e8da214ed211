"""
Base abstract interface for annotation pipelines
"""
from abc import ABC, abstractmethod
from typing import List

from document import Document


class AnnotationPipeline(ABC):
    """
    Expensive-to-build, reusable annotator chain.

    Instances are shared by every request with an equal configuration, so
    ``annotate`` must not keep per-document state on the pipeline.
    """

    def __init__(self, annotators: List[str]):
        self.annotators = list(annotators)

    @abstractmethod
    def get_name(self) -> str:
        """Get pipeline name"""
        pass

    @abstractmethod
    def annotate(self, document: Document) -> Document:
        """Attach annotations to ``document`` in place and return it"""
        pass
