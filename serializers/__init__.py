"""
Document serializers selectable by name through ``inputSerializer`` and
``outputSerializer``
"""
from serializers.base import DocumentSerializer
from serializers.registry import SerializerRegistry, get_registry

__all__ = ["DocumentSerializer", "SerializerRegistry", "get_registry"]
