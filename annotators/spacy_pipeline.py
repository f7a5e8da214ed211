"""
spaCy annotation pipeline built from a request configuration
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

import spacy
from spacy.tokens import Doc

from annotators.base import AnnotationPipeline
from document import Document
from logger import get_logger
from config import settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnnotatorInfo:
    """spaCy components an annotator needs and annotators that must precede it"""
    components: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()


ANNOTATORS: Dict[str, AnnotatorInfo] = {
    "tokenize": AnnotatorInfo(),
    "ssplit": AnnotatorInfo(requires=("tokenize",)),
    "pos": AnnotatorInfo(("tok2vec", "tagger", "attribute_ruler"), ("tokenize", "ssplit")),
    "lemma": AnnotatorInfo(("lemmatizer",), ("pos",)),
    "ner": AnnotatorInfo(("tok2vec", "ner"), ("tokenize", "ssplit")),
    "depparse": AnnotatorInfo(("tok2vec", "parser"), ("tokenize", "ssplit", "pos")),
}
ANNOTATORS["parse"] = ANNOTATORS["depparse"]

# Trained components shipped in the standard pipeline packages
KNOWN_COMPONENTS = {
    "tok2vec", "tagger", "morphologizer", "parser", "senter",
    "attribute_ruler", "lemmatizer", "trainable_lemmatizer", "ner",
}
OPTIONAL_COMPONENTS = {"tok2vec"}


def parse_annotators(value: str) -> List[str]:
    """Split a comma-separated annotator chain, dropping blanks and repeats"""
    annotators: List[str] = []
    for name in value.split(","):
        name = name.strip().lower()
        if name and name not in annotators:
            annotators.append(name)
    return annotators


def validate_annotators(annotators: List[str]):
    """Check every annotator is known and appears after its requirements"""
    if not annotators:
        raise ValueError("No annotators requested")

    seen = set()
    for name in annotators:
        info = ANNOTATORS.get(name)
        if info is None:
            raise ValueError(
                f"Unknown annotator '{name}'. Valid annotators: {', '.join(sorted(ANNOTATORS))}"
            )
        missing = [req for req in info.requires if req not in seen]
        if missing:
            raise ValueError(f"Annotator '{name}' requires annotator(s) {', '.join(missing)} earlier in the chain")
        seen.add(name)
        # depparse and parse satisfy each other's requirements
        if name in ("depparse", "parse"):
            seen.update(("depparse", "parse"))


def required_components(annotators: List[str]) -> List[str]:
    components: List[str] = []
    for name in annotators:
        for component in ANNOTATORS[name].components:
            if component not in components:
                components.append(component)
    return components


class SpacyPipeline(AnnotationPipeline):
    """Annotator chain backed by a loaded spaCy ``Language`` object"""

    def __init__(self, nlp, annotators: List[str], model_name: str = None):
        super().__init__(annotators)
        self.nlp = nlp
        self.model_name = model_name

    def get_name(self) -> str:
        source = self.model_name or f"blank:{self.nlp.lang}"
        return f"spaCy ({source}) [{','.join(self.annotators)}]"

    def annotate(self, document: Document) -> Document:
        if document.doc is not None:
            doc = self._annotate_existing(document.doc)
        else:
            doc = self.nlp(document.text)
        document.doc = doc
        document.annotations.update({
            "language": doc.lang_,
            "annotators": list(self.annotators),
            "sentences": self._extract_sentences(doc),
        })
        if "ner" in self.annotators:
            document.annotations["entities"] = self._extract_entities(doc)
        return document

    def _annotate_existing(self, source):
        """
        Run the components over a deserialized ``Doc``.

        The uploaded tokens and annotations are kept; each component only
        overwrites what it produces itself.
        """
        # Rebind to this pipeline's vocab so component string lookups resolve
        doc = Doc(self.nlp.vocab).from_bytes(source.to_bytes())
        for _, component in self.nlp.pipeline:
            doc = component(doc)
        return doc

    def _extract_sentences(self, doc) -> List[Dict[str, Any]]:
        """Extract sentences with tokens"""
        if len(doc) == 0:
            return []

        if doc.has_annotation("SENT_START"):
            spans = list(doc.sents)
        else:
            spans = [doc[:]]

        has_tags = doc.has_annotation("TAG") or doc.has_annotation("POS")
        has_lemmas = doc.has_annotation("LEMMA")
        has_deps = doc.has_annotation("DEP")
        has_ents = "ner" in self.annotators

        sentences = []
        for index, sent in enumerate(spans):
            tokens = []
            for token in sent:
                if token.is_space:
                    continue
                token_data = {
                    "index": token.i - sent.start + 1,
                    "word": token.text,
                    "start_char": token.idx,
                    "end_char": token.idx + len(token.text),
                }
                if has_lemmas:
                    token_data["lemma"] = token.lemma_
                if has_tags:
                    token_data["pos"] = token.tag_ or token.pos_
                    token_data["upos"] = token.pos_
                if has_ents:
                    token_data["ner"] = token.ent_type_ or "O"
                if has_deps:
                    token_data["head"] = 0 if token.head.i == token.i else token.head.i - sent.start + 1
                    token_data["dep"] = token.dep_
                tokens.append(token_data)

            sentences.append({
                "index": index,
                "text": sent.text.strip(),
                "start_char": sent.start_char,
                "end_char": sent.end_char,
                "tokens": tokens,
            })
        return sentences

    def _extract_entities(self, doc) -> List[Dict[str, Any]]:
        return [
            {
                "text": ent.text,
                "label": ent.label_,
                "start_char": ent.start_char,
                "end_char": ent.end_char,
            }
            for ent in doc.ents
        ]


def _load_model(model_name: str, components: List[str]):
    """Load a pipeline package keeping only ``components``"""
    exclude = sorted(KNOWN_COMPONENTS - set(components))
    try:
        nlp = spacy.load(model_name, exclude=exclude)
    except OSError as e:
        raise RuntimeError(
            f"spaCy model '{model_name}' is not installed; "
            f"install it with: python -m spacy download {model_name}"
        ) from e

    available = set(nlp.component_names)
    missing = [c for c in components if c not in available and c not in OPTIONAL_COMPONENTS]
    if missing:
        raise RuntimeError(f"spaCy model '{model_name}' has no component(s): {', '.join(missing)}")

    for name in nlp.disabled:
        if name in components:
            nlp.enable_pipe(name)
    return nlp


def build_pipeline(config: Mapping[str, str], max_length: int = None) -> SpacyPipeline:
    """
    Construct the pipeline described by ``config``.

    Chains needing only tokenization and sentence splitting run on a blank
    ``language`` pipeline; anything else loads the ``model`` package.
    """
    annotators = parse_annotators(config.get("annotators", ""))
    validate_annotators(annotators)
    components = required_components(annotators)

    language = config.get("language", settings.get("language", "en"))
    model_name = None
    if components:
        model_name = config.get("model", settings.get("spacy_model", "en_core_web_sm"))
        nlp = _load_model(model_name, components)
    else:
        nlp = spacy.blank(language)

    if "ssplit" in annotators and "parser" not in nlp.pipe_names:
        nlp.add_pipe("sentencizer", first=True)

    nlp.max_length = max_length or settings.get("max_text_length", 100000)

    pipeline = SpacyPipeline(nlp, annotators, model_name)
    logger.info(f"Built pipeline {pipeline.get_name()} with components {nlp.pipe_names}")
    return pipeline
