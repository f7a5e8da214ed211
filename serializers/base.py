"""
Base abstract interface for document serializers
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, Tuple

from document import Document


class DocumentSerializer(ABC):
    """Reads and writes whole documents to byte streams"""

    @abstractmethod
    def get_name(self) -> str:
        """Get the name clients use to select this serializer"""
        pass

    @abstractmethod
    def read(self, stream: BinaryIO) -> Tuple[Document, BinaryIO]:
        """
        Read one document from ``stream``.

        Returns the document and a stream positioned at whatever input follows
        it, which may be empty.
        """
        pass

    @abstractmethod
    def write(self, document: Document, stream: BinaryIO) -> None:
        """Write ``document`` to ``stream``"""
        pass
