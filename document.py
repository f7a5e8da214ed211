"""
In-memory document passed through one annotation request
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Document:
    """
    Input text plus the annotations attached by the pipeline.

    ``doc`` holds the engine's native spaCy ``Doc`` once the document has been
    annotated (or when it was deserialized from a ``DocBin``).
    """
    text: str
    annotations: Dict[str, Any] = field(default_factory=dict)
    doc: Optional[Any] = None

    @property
    def sentences(self) -> List[Dict[str, Any]]:
        return self.annotations.get("sentences", [])

    @property
    def entities(self) -> List[Dict[str, Any]]:
        return self.annotations.get("entities", [])

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, **self.annotations}
