"""
output_negotiator.py - Choose the outputter and content type for a request
"""
from enum import Enum
from typing import Mapping, Optional, Tuple

from exceptions import UnknownOutputFormat
from outputters import (
    CoNLLOutputter,
    JSONOutputter,
    Outputter,
    SerializedOutputter,
    TextOutputter,
    XMLOutputter,
)
from serializers.registry import SerializerRegistry, get_registry

OCTET_STREAM = "application/octet-stream"
DEFAULT_OUTPUT_SERIALIZER = "json"

# outputSerializer values with a dedicated media type
BINARY_CONTENT_TYPES = {
    "docbin": "application/x-spacy-docbin",
}


class OutputFormat(Enum):
    """Closed set of output formats"""
    TEXT = "text"
    XML = "xml"
    CONLL = "conll"
    JSON = "json"
    SERIALIZED = "serialized"

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self]

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise UnknownOutputFormat(f"Unknown output format: {value}. Valid formats: {valid}")


CONTENT_TYPES = {
    OutputFormat.TEXT: "text/plain; charset=utf-8",
    OutputFormat.XML: "text/xml; charset=utf-8",
    OutputFormat.CONLL: "text/plain; charset=utf-8",
    OutputFormat.JSON: "application/json",
    OutputFormat.SERIALIZED: OCTET_STREAM,
}


def get_content_type(config: Mapping[str, str], output_format: OutputFormat) -> str:
    if output_format is OutputFormat.SERIALIZED:
        serializer_name = config.get("outputSerializer")
        return BINARY_CONTENT_TYPES.get(serializer_name, OCTET_STREAM)
    return output_format.content_type


def negotiate(config: Mapping[str, str],
              registry: Optional[SerializerRegistry] = None) -> Tuple[Outputter, str]:
    """
    Map ``outputFormat`` (case-insensitive) to an outputter and content type.

    Raises:
        UnknownOutputFormat: unrecognized outputFormat, or an outputSerializer
            that is not registered
    """
    output_format = OutputFormat.parse(config.get("outputFormat", ""))

    if output_format is OutputFormat.TEXT:
        outputter = TextOutputter()
    elif output_format is OutputFormat.XML:
        outputter = XMLOutputter()
    elif output_format is OutputFormat.CONLL:
        outputter = CoNLLOutputter()
    elif output_format is OutputFormat.JSON:
        outputter = JSONOutputter()
    else:
        registry = registry or get_registry()
        serializer_name = config.get("outputSerializer", DEFAULT_OUTPUT_SERIALIZER)
        if serializer_name not in registry:
            raise UnknownOutputFormat(
                f"Unknown output serializer: {serializer_name}. "
                f"Available serializers: {', '.join(registry.list_serializers())}"
            )
        outputter = SerializedOutputter(registry.create(serializer_name))

    return outputter, get_content_type(config, output_format)
