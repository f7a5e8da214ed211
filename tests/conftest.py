"""
Shared fixtures for annotation server tests
"""
import threading

import pytest
from fastapi.testclient import TestClient

from annotators.spacy_pipeline import build_pipeline
from app import create_app
from config import Settings


class CountingBuilder:
    """Pipeline builder that records how often it runs"""

    def __init__(self, build=build_pipeline, fail_with: Exception = None):
        self._build = build
        self.fail_with = fail_with
        self.calls = 0
        self.configs = []
        self._lock = threading.Lock()

    def __call__(self, config):
        with self._lock:
            self.calls += 1
            self.configs.append(config)
        if self.fail_with is not None:
            raise self.fail_with
        return self._build(config)


@pytest.fixture
def test_settings():
    """Settings whose default chain runs on a blank spaCy pipeline"""
    return Settings(
        environment="testing",
        default_annotators="tokenize,ssplit",
        enable_metrics=False,
        annotation_workers=2,
    )


@pytest.fixture
def builder():
    return CountingBuilder()


@pytest.fixture
def app(test_settings, builder):
    return create_app(test_settings, pipeline_builder=builder)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
