"""
outputters.py - Render annotated documents in the supported output formats
"""
import io
import json
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from document import Document
from serializers.base import DocumentSerializer

CONLL_COLUMNS = ("index", "word", "lemma", "pos", "ner", "head", "dep")


class Outputter(ABC):
    """Writes an annotated document as response bytes"""

    @abstractmethod
    def write(self, document: Document) -> bytes:
        pass


class TextOutputter(Outputter):
    """Human-readable listing of sentences, tokens and dependencies"""

    def write(self, document: Document) -> bytes:
        lines: List[str] = []
        for sentence in document.sentences:
            tokens = sentence["tokens"]
            lines.append(f"Sentence #{sentence['index'] + 1} ({len(tokens)} tokens):")
            lines.append(sentence["text"])
            lines.append("")
            lines.append("Tokens:")
            for token in tokens:
                lines.append(self._format_token(token))

            if any("dep" in token for token in tokens):
                lines.append("")
                lines.append("Dependency Parse:")
                for token in tokens:
                    lines.append(self._format_dependency(token, tokens))
            lines.append("")

        if document.entities:
            lines.append("Extracted the following NER entity mentions:")
            for entity in document.entities:
                lines.append(f"{entity['text']}\t{entity['label']}")
            lines.append("")

        return "\n".join(lines).encode("utf-8")

    @staticmethod
    def _format_token(token: Dict[str, Any]) -> str:
        parts = [
            f"Text={token['word']}",
            f"CharacterOffsetBegin={token['start_char']}",
            f"CharacterOffsetEnd={token['end_char']}",
        ]
        if "pos" in token:
            parts.append(f"PartOfSpeech={token['pos']}")
        if "lemma" in token:
            parts.append(f"Lemma={token['lemma']}")
        if "ner" in token:
            parts.append(f"NamedEntityTag={token['ner']}")
        return f"[{' '.join(parts)}]"

    @staticmethod
    def _format_dependency(token: Dict[str, Any], tokens: List[Dict[str, Any]]) -> str:
        head = token["head"]
        governor = "ROOT" if head == 0 else tokens_by_index(tokens).get(head, {}).get("word", "?")
        return f"{token['dep']}({governor}-{head}, {token['word']}-{token['index']})"


def tokens_by_index(tokens: List[Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    return {token["index"]: token for token in tokens}


class XMLOutputter(Outputter):
    """XML document with one element per sentence, token and dependency"""

    def write(self, document: Document) -> bytes:
        root = ET.Element("root")
        doc_elem = ET.SubElement(root, "document")
        ET.SubElement(doc_elem, "text").text = document.text

        sentences_elem = ET.SubElement(doc_elem, "sentences")
        for sentence in document.sentences:
            sentence_elem = ET.SubElement(sentences_elem, "sentence", {
                "id": str(sentence["index"] + 1),
                "characterOffsetBegin": str(sentence["start_char"]),
                "characterOffsetEnd": str(sentence["end_char"]),
            })
            tokens_elem = ET.SubElement(sentence_elem, "tokens")
            for token in sentence["tokens"]:
                self._add_token(tokens_elem, token)

            if any("dep" in token for token in sentence["tokens"]):
                self._add_dependencies(sentence_elem, sentence["tokens"])

        if "entities" in document.annotations:
            entities_elem = ET.SubElement(doc_elem, "entities")
            for entity in document.entities:
                ET.SubElement(entities_elem, "entity", {
                    "type": entity["label"],
                    "characterOffsetBegin": str(entity["start_char"]),
                    "characterOffsetEnd": str(entity["end_char"]),
                }).text = entity["text"]

        ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    @staticmethod
    def _add_token(parent: ET.Element, token: Dict[str, Any]):
        token_elem = ET.SubElement(parent, "token", {"id": str(token["index"])})
        ET.SubElement(token_elem, "word").text = token["word"]
        if "lemma" in token:
            ET.SubElement(token_elem, "lemma").text = token["lemma"]
        ET.SubElement(token_elem, "CharacterOffsetBegin").text = str(token["start_char"])
        ET.SubElement(token_elem, "CharacterOffsetEnd").text = str(token["end_char"])
        if "pos" in token:
            ET.SubElement(token_elem, "POS").text = token["pos"]
        if "ner" in token:
            ET.SubElement(token_elem, "NER").text = token["ner"]

    @staticmethod
    def _add_dependencies(parent: ET.Element, tokens: List[Dict[str, Any]]):
        by_index = tokens_by_index(tokens)
        deps_elem = ET.SubElement(parent, "dependencies", {"type": "basic-dependencies"})
        for token in tokens:
            dep_elem = ET.SubElement(deps_elem, "dep", {"type": token["dep"]})
            head = token["head"]
            governor = "ROOT" if head == 0 else by_index.get(head, {}).get("word", "")
            ET.SubElement(dep_elem, "governor", {"idx": str(head)}).text = governor
            ET.SubElement(dep_elem, "dependent", {"idx": str(token["index"])}).text = token["word"]


class CoNLLOutputter(Outputter):
    """Tab-separated token table, one blank line between sentences"""

    def write(self, document: Document) -> bytes:
        blocks = []
        for sentence in document.sentences:
            rows = [
                "\t".join(str(token.get(column, "_")) for column in CONLL_COLUMNS)
                for token in sentence["tokens"]
            ]
            blocks.append("\n".join(rows))
        output = "\n\n".join(blocks)
        return (output + "\n" if output else "").encode("utf-8")


class JSONOutputter(Outputter):
    """Annotations as a JSON object"""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def write(self, document: Document) -> bytes:
        return json.dumps(document.to_dict(), ensure_ascii=False, indent=self.indent).encode("utf-8")


class SerializedOutputter(Outputter):
    """Delegates to a named document serializer"""

    def __init__(self, serializer: DocumentSerializer):
        self.serializer = serializer

    def write(self, document: Document) -> bytes:
        stream = io.BytesIO()
        self.serializer.write(document, stream)
        return stream.getvalue()
