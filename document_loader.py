"""
document_loader.py - Turn a request body into a Document according to inputFormat
"""
import io
from typing import Mapping, Optional

from document import Document
from exceptions import DeserializationFailure, UnsupportedInputFormat
from serializers.registry import SerializerRegistry, get_registry
from logger import get_logger

logger = get_logger(__name__)

INPUT_FORMATS = ("text", "serialized")


def load_text(body: bytes) -> Document:
    try:
        return Document(text=body.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DeserializationFailure(f"Request body is not valid UTF-8: {e}", original_error=e)


def load_serialized(config: Mapping[str, str], body: bytes,
                    registry: SerializerRegistry) -> Document:
    serializer_name = config.get("inputSerializer")
    if not serializer_name:
        raise DeserializationFailure("inputFormat 'serialized' requires an inputSerializer")

    try:
        serializer = registry.create(serializer_name)
    except ValueError as e:
        raise DeserializationFailure(str(e), original_error=e)

    try:
        document, _remaining = serializer.read(io.BytesIO(body))
    except Exception as e:
        logger.warning(f"Serializer '{serializer_name}' failed to read request body: {e}")
        raise DeserializationFailure(
            f"Could not read document with serializer '{serializer_name}': {e}",
            original_error=e
        )
    return document


def load(config: Mapping[str, str], body: bytes,
         registry: Optional[SerializerRegistry] = None) -> Document:
    """
    Build the request's Document from ``body``.

    Raises:
        UnsupportedInputFormat: inputFormat is not 'text' or 'serialized'
        DeserializationFailure: the body could not be decoded
    """
    input_format = config.get("inputFormat", "text")

    if input_format == "text":
        return load_text(body)
    if input_format == "serialized":
        return load_serialized(config, body, registry or get_registry())

    raise UnsupportedInputFormat(
        f"Could not parse input format: {input_format}. "
        f"Valid formats: {', '.join(INPUT_FORMATS)}"
    )
