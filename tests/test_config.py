"""
Tests for YAML engine configuration.
"""

import textwrap

import pytest
from valueobs.config import ConfigError, EngineConfig, config_from_dict, config_from_yaml, load_config
from valueobs.model import TypeCapabilities
from valueobs.syntax import ComparisonVariant
from valueobs.capabilities import select_comparison


def test_defaults():
    config = EngineConfig()
    assert config.record_directive == "observable_value"
    assert config.observing_marker == "Observing"
    assert config.ignoring_marker == "Ignoring"
    assert config.runtime_module == "valueobs.runtime"
    assert config.capabilities == {}


def test_from_yaml():
    config = config_from_yaml(textwrap.dedent(
        """
        record_directive: observed
        runtime_module: myapp.observation
        capabilities:
          Decimal: {equatable: true}
          Node: {identity: true}
        """
    ))
    assert config.record_directive == "observed"
    assert config.runtime_module == "myapp.observation"
    assert config.capabilities["Decimal"] == TypeCapabilities(equatable=True)
    assert config.capabilities["Node"] == TypeCapabilities(identity=True)


def test_capabilities_reach_resolver():
    config = config_from_dict({"capabilities": {"Node": {"identity": True}}})
    resolver = config.resolver(observable_types=["Model"])
    assert select_comparison(resolver.resolve("Node")) == ComparisonVariant.IDENTITY
    assert resolver.resolve("Model").observable


def test_empty_yaml_gives_defaults():
    assert config_from_yaml("") == EngineConfig()


@pytest.mark.parametrize(
    "text,message",
    [
        ("unknown: 1", "Unknown configuration keys"),
        ("record_directive: ''", "non-empty string"),
        ("record_directive: 3", "non-empty string"),
        ("capabilities: [Decimal]", "must be a mapping"),
        ("capabilities: {Decimal: {ordered: true}}", "Unknown capability keys"),
        ("capabilities: {Decimal: true}", "must be a mapping"),
        ("- a\n- b", "Configuration must be a mapping"),
        ("key: [unclosed", "Invalid YAML"),
    ],
)
def test_invalid_config(text, message):
    with pytest.raises(ConfigError, match=message):
        config_from_yaml(text)


def test_load_config(tmp_path):
    path = tmp_path / "valueobs.yaml"
    path.write_text("observing_marker: Tracked\n", encoding="utf-8")
    assert load_config(path).observing_marker == "Tracked"
    assert load_config(None) == EngineConfig()


def test_load_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_config(tmp_path / "missing.yaml")
