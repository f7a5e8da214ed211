"""
Test settings validation and settings-driven logging
"""
import logging

import pytest

import logger as logger_module
from config import SafeSettings, Settings


def test_default_properties_come_from_settings():
    settings = Settings(default_annotators="tokenize", default_output_format="xml", language="de")
    properties = settings.default_properties()
    assert properties["annotators"] == "tokenize"
    assert properties["outputFormat"] == "xml"
    assert properties["inputFormat"] == "text"
    assert properties["language"] == "de"


@pytest.mark.parametrize("overrides", [
    {"port": 0},
    {"environment": "staging"},
    {"default_annotators": "  "},
    {"pipeline_cache_size": 0},
    {"annotation_workers": 0},
])
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)


def test_debug_forces_debug_logging(monkeypatch, tmp_path):
    debug_settings = SafeSettings(Settings(debug=True, log_level="WARNING", log_dir=str(tmp_path)))
    monkeypatch.setattr(logger_module, "settings", debug_settings)

    assert logger_module.get_logger("annotation.debug-check").level == logging.DEBUG


def test_log_level_applies_without_debug(monkeypatch, tmp_path):
    quiet_settings = SafeSettings(Settings(debug=False, log_level="WARNING", log_dir=str(tmp_path)))
    monkeypatch.setattr(logger_module, "settings", quiet_settings)

    assert logger_module.get_logger("annotation.level-check").level == logging.WARNING
