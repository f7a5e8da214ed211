"""
Test suite for the annotation server endpoints
"""
import json

import pytest
import spacy
from defusedxml import ElementTree as SafeET
from fastapi.testclient import TestClient

from annotators.base import AnnotationPipeline
from app import create_app


def props(**items) -> dict:
    """Query parameters carrying a properties literal"""
    return {"properties": json.dumps(items)}


@pytest.mark.parametrize("method", ["get", "post"])
def test_ping(client, method):
    response = getattr(client, method)("/ping")
    assert response.status_code == 200
    assert response.text == "pong\n"


def test_annotate_with_defaults(client):
    """Plain text with no properties uses the server defaults"""
    response = client.post("/", content=b"Hello world.")
    assert response.status_code == 200
    assert "json" in response.headers["content-type"]
    assert int(response.headers["content-length"]) == len(response.content)

    data = response.json()
    assert data["text"] == "Hello world."
    assert len(data["sentences"]) == 1
    assert [t["word"] for t in data["sentences"][0]["tokens"]] == ["Hello", "world", "."]


def test_get_with_empty_body(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["sentences"] == []


def test_xml_output(client):
    response = client.post("/", params=props(outputFormat="xml"), content=b"Hello world. Goodbye.")
    assert response.status_code == 200
    assert "xml" in response.headers["content-type"]

    root = SafeET.fromstring(response.content)
    assert len(root.findall("./document/sentences/sentence")) == 2


def test_output_format_is_case_insensitive(client):
    response = client.post("/", params=props(outputFormat="CoNLL"), content=b"Hello world.")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.splitlines()[0].split("\t")[:2] == ["1", "Hello"]


def test_unknown_output_format_is_rejected_before_annotation(app, client, builder):
    response = client.post("/", params=props(outputFormat="bogus"), content=b"Hello world.")
    assert response.status_code == 400
    assert "bogus" in response.text
    assert "\n" not in response.text
    assert builder.calls == 0
    assert len(app.state.pipeline_cache) == 0


@pytest.mark.parametrize("literal", ['"outputFormat":"xml"', '{"outputFormat"}', '{"a":"b'])
def test_malformed_properties(client, builder, literal):
    response = client.post("/", params={"properties": literal}, content=b"Hello world.")
    assert response.status_code == 400
    assert builder.calls == 0


def test_bad_percent_escape(client):
    response = client.post("/?properties=%zz", content=b"Hello world.")
    assert response.status_code == 400


def test_unsupported_input_format(client, builder):
    response = client.post("/", params=props(inputFormat="pdf"), content=b"%PDF-1.4")
    assert response.status_code == 400
    assert "pdf" in response.text
    assert builder.calls == 0


def test_invalid_utf8_body(client):
    response = client.post("/", content=b"\xff\xfe\xfd")
    assert response.status_code == 400


def test_identical_configurations_share_a_pipeline(app, client, builder):
    for _ in range(2):
        response = client.post("/", params=props(outputFormat="json"), content=b"Hello world.")
        assert response.status_code == 200

    assert builder.calls == 1
    stats = app.state.pipeline_cache.get_stats()
    assert stats["hits"] >= 1
    assert stats["size"] == 1


def test_different_configurations_build_separately(client, builder):
    client.post("/", params=props(outputFormat="json"), content=b"Hello world.")
    client.post("/", params=props(outputFormat="xml"), content=b"Hello world.")
    assert builder.calls == 2


def test_pipeline_build_failure(app, builder):
    builder.fail_with = RuntimeError("model exploded")

    with TestClient(app) as client:
        first = client.post("/", content=b"Hello world.")
        second = client.post("/", content=b"Hello world.")
        ping = client.get("/ping")

    assert first.status_code == 500
    assert "model exploded" in first.text
    assert second.status_code == 500
    # Failed builds are retried rather than cached
    assert builder.calls == 2
    assert len(app.state.pipeline_cache) == 0
    assert ping.status_code == 200


class CrashingPipeline(AnnotationPipeline):
    """Builds fine, fails while annotating"""

    def get_name(self):
        return "crashing"

    def annotate(self, document):
        raise RuntimeError("tagger crashed\nwhile reading token 3")


class UnrenderablePipeline(AnnotationPipeline):
    """Leaves entities the text outputter cannot render"""

    def get_name(self):
        return "unrenderable"

    def annotate(self, document):
        document.annotations.update({"sentences": [], "entities": [{"bad": 1}]})
        return document


def test_annotation_failure(test_settings):
    app = create_app(test_settings, pipeline_builder=lambda config: CrashingPipeline(["tokenize"]))

    with TestClient(app) as client:
        response = client.post("/", content=b"Hello world.")
        # The pipeline built successfully and stays cached
        assert len(app.state.pipeline_cache) == 1

    assert response.status_code == 500
    assert response.text == "tagger crashed while reading token 3"


def test_serialization_failure(test_settings):
    app = create_app(test_settings, pipeline_builder=lambda config: UnrenderablePipeline(["tokenize"]))

    with TestClient(app) as client:
        failed = client.post("/", params=props(outputFormat="text"), content=b"Hello world.")
        rendered = client.post("/", params=props(outputFormat="json"), content=b"Hello world.")

    assert failed.status_code == 500
    assert failed.text
    assert "\n" not in failed.text
    assert rendered.status_code == 200
    assert rendered.json()["entities"] == [{"bad": 1}]


def test_unknown_annotator(client):
    response = client.post("/", params=props(annotators="tokenize,telepathy"), content=b"Hello world.")
    assert response.status_code == 500
    assert "telepathy" in response.text


def test_serialized_json_output(client):
    response = client.post("/", params=props(outputFormat="serialized"), content=b"Hello world.")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/octet-stream"
    assert json.loads(response.content)["text"] == "Hello world."


def test_docbin_round_trip(client):
    """A docbin response can be posted back as serialized input"""
    first = client.post(
        "/",
        params=props(outputFormat="serialized", outputSerializer="docbin"),
        content=b"Hello world. Goodbye.",
    )
    assert first.status_code == 200
    assert first.headers["content-type"] == "application/x-spacy-docbin"

    second = client.post(
        "/",
        params=props(inputFormat="serialized", inputSerializer="docbin"),
        content=first.content,
    )
    assert second.status_code == 200
    assert second.json()["text"] == "Hello world. Goodbye."


def test_unknown_input_serializer(client):
    response = client.post("/", params=props(inputFormat="serialized", inputSerializer="pickle"),
                           content=b"")
    assert response.status_code == 400


def test_ping_after_failed_request(client):
    client.post("/", params={"properties": "not a literal"}, content=b"x")
    response = client.post("/ping")
    assert response.text == "pong\n"


def test_request_id_header(client):
    response = client.get("/ping", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers


def test_unknown_route(client):
    assert client.get("/health").status_code == 404


@pytest.mark.skipif(not spacy.util.is_package("en_core_web_sm"), reason="en_core_web_sm not installed")
def test_full_default_chain(test_settings):
    """Part-of-speech, lemma and dependency annotations from the trained model"""
    test_settings.default_annotators = "tokenize,ssplit,pos,lemma,depparse"
    app = create_app(test_settings)

    with TestClient(app) as client:
        response = client.post("/", content=b"The quick brown fox jumps over the lazy dog.")

    assert response.status_code == 200
    tokens = response.json()["sentences"][0]["tokens"]
    assert all("pos" in t and "lemma" in t and "head" in t for t in tokens)
    assert sum(1 for t in tokens if t["head"] == 0) == 1
