"""
JSON document serializer - the generic serialized form
"""
import io
import json
from typing import BinaryIO, Tuple

from document import Document
from serializers.base import DocumentSerializer


class JSONDocumentSerializer(DocumentSerializer):
    """
    Stores ``{"text": ..., "annotations": {...}}`` as UTF-8 JSON.

    Several documents may be concatenated in one stream; ``read`` consumes the
    first and hands back the rest.
    """

    def get_name(self) -> str:
        return "json"

    def read(self, stream: BinaryIO) -> Tuple[Document, BinaryIO]:
        raw = stream.read().decode("utf-8").lstrip()
        payload, end = json.JSONDecoder().raw_decode(raw)
        remainder = raw[end:]

        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise ValueError("Serialized document must be an object with a 'text' string")

        annotations = payload.get("annotations") or {}
        if not isinstance(annotations, dict):
            raise ValueError("Serialized document 'annotations' must be an object")

        document = Document(text=payload["text"], annotations=annotations)
        return document, io.BytesIO(remainder.encode("utf-8"))

    def write(self, document: Document, stream: BinaryIO) -> None:
        payload = {"text": document.text, "annotations": document.annotations}
        stream.write(json.dumps(payload, ensure_ascii=False).encode("utf-8"))
