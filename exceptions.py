"""
Annotation server exception hierarchy

Every failure carries the HTTP status it maps to so the request boundary can
render it without inspecting the concrete type.
"""
from typing import Optional


class AnnotationServerError(Exception):
    """
    Base class for request failures

    Attributes:
        message: Human-readable, single-line error message
        status_code: HTTP status the failure is reported with
        original_error: Original exception if wrapped
    """

    status_code = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def __str__(self):
        return self.message


class ClientError(AnnotationServerError):
    """Request could not be understood; the client must change it before retrying"""

    status_code = 400


class MalformedRequest(ClientError):
    """
    Query string or configuration payload is not well-formed

    Examples: bad percent escape, missing braces, mapping entry without a colon
    """


class UnsupportedInputFormat(ClientError):
    """Configured inputFormat is not one the loader knows"""


class UnknownOutputFormat(ClientError):
    """Configured outputFormat (or outputSerializer) is not recognized"""


class DeserializationFailure(ClientError):
    """Named deserializer not found, or the request body could not be read"""


class ProcessingError(AnnotationServerError):
    """Failure after the request was accepted"""

    status_code = 500


class AnnotationFailure(ProcessingError):
    """Pipeline construction or the annotation engine failed"""


class SerializationFailure(ProcessingError):
    """Annotated document could not be written in the negotiated format"""


def single_line(message: str) -> str:
    """Collapse a message onto one line for plain-text error bodies"""
    collapsed = " ".join(str(message).split())
    return collapsed or "Unknown error"
