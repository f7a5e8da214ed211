"""
spaCy DocBin serializer - the compact binary form
"""
import io
from typing import BinaryIO, Tuple

from spacy.tokens import DocBin
from spacy.vocab import Vocab

from document import Document
from serializers.base import DocumentSerializer


class DocBinSerializer(DocumentSerializer):
    """Reads and writes a single spaCy ``Doc`` packed in a ``DocBin``"""

    def get_name(self) -> str:
        return "docbin"

    def read(self, stream: BinaryIO) -> Tuple[Document, BinaryIO]:
        doc_bin = DocBin().from_bytes(stream.read())
        docs = list(doc_bin.get_docs(Vocab()))
        if not docs:
            raise ValueError("DocBin payload contains no documents")

        doc = docs[0]
        # DocBin has no framing for trailing data, the whole stream is consumed
        return Document(text=doc.text, doc=doc), io.BytesIO()

    def write(self, document: Document, stream: BinaryIO) -> None:
        if document.doc is None:
            raise ValueError("Document has no spaCy Doc to serialize")

        doc_bin = DocBin(docs=[document.doc])
        stream.write(doc_bin.to_bytes())
