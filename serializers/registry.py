"""
Serializer registry and factory
"""
from typing import Dict, List, Optional, Type

from serializers.base import DocumentSerializer
from serializers.docbin_serializer import DocBinSerializer
from serializers.json_serializer import JSONDocumentSerializer
from logger import get_logger

logger = get_logger(__name__)


class SerializerRegistry:
    """Registry mapping serializer names to implementations"""

    def __init__(self):
        self._serializers: Dict[str, Type[DocumentSerializer]] = {}
        self._register_builtin_serializers()

    def _register_builtin_serializers(self):
        """Register built-in serializers"""
        self.register("json", JSONDocumentSerializer)
        self.register("docbin", DocBinSerializer)

        logger.info(f"Registered {len(self._serializers)} built-in serializers")

    def register(self, name: str, serializer_class: Type[DocumentSerializer]):
        """Register a new serializer"""
        if not issubclass(serializer_class, DocumentSerializer):
            raise ValueError(f"{serializer_class} must inherit from DocumentSerializer")

        self._serializers[name] = serializer_class
        logger.debug(f"Registered serializer: {name}")

    def unregister(self, name: str):
        """Unregister a serializer"""
        if self._serializers.pop(name, None) is not None:
            logger.info(f"Unregistered serializer: {name}")

    def __contains__(self, name: str) -> bool:
        return name in self._serializers

    def list_serializers(self) -> List[str]:
        """List all registered serializers"""
        return list(self._serializers.keys())

    def get_serializer_class(self, name: str) -> Optional[Type[DocumentSerializer]]:
        """Get serializer class by name"""
        return self._serializers.get(name)

    def create(self, name: str) -> DocumentSerializer:
        """Instantiate the serializer registered under ``name``"""
        if name not in self._serializers:
            raise ValueError(
                f"Serializer '{name}' not registered. "
                f"Available serializers: {', '.join(self.list_serializers())}"
            )
        return self._serializers[name]()


_registry = None


def get_registry() -> SerializerRegistry:
    """Get the process-wide serializer registry"""
    global _registry
    if _registry is None:
        _registry = SerializerRegistry()
    return _registry
