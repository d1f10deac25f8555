"""Unit tests for analyzer configuration."""

import pytest
import yaml
from pydantic import ValidationError

from ad_sentinel.audit.analyzers.config import (
    AnalysisConfig,
    ClassifierConfig,
    ConfigManager,
    ConfigurationError,
    IdleNetworkConfig,
)
from ad_sentinel.audit.models import ResourceType


ENV_VARS = (
    "AD_SENTINEL_ENVIRONMENT",
    "AD_SENTINEL_NOTEWORTHY_GAP_MS",
    "AD_SENTINEL_FAILING_GAP_MS",
    "AD_SENTINEL_FAILING_TOTAL_IDLE_MS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestAnalysisConfig:
    """Test cases for AnalysisConfig model."""

    def test_default_config_creation(self):
        """Test default thresholds."""
        config = AnalysisConfig()

        assert config.environment == "production"
        assert config.is_production
        assert config.idle_network.noteworthy_gap_ms == 150
        assert config.idle_network.failing_gap_ms == 400
        assert config.idle_network.failing_total_idle_ms == 1500
        assert config.idle_network.overlap_threshold == 0.80
        assert config.idle_network.proximity_ms == 50
        assert config.idle_network.long_task_ms == 100
        assert ResourceType.STYLESHEET not in config.idle_network.blocking_resource_types

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            AnalysisConfig(environment="qa")

    def test_invalid_threshold(self):
        with pytest.raises(ValidationError):
            IdleNetworkConfig(overlap_threshold=1.5)

    def test_custom_bidders_checked_first(self):
        """Test that custom bidder patterns take precedence over the defaults."""
        config = ClassifierConfig(bidders=[{
            "label": "House Rubicon",
            "patterns": [r"^https://fastlane\.rubiconproject\.com/"],
        }])

        classifier = config.build_classifier()

        assert classifier.bidder_labels[0] == "House Rubicon"
        assert "Criteo" in classifier.bidder_labels
        assert classifier.get_header_bidder(
            "https://fastlane.rubiconproject.com/a/api/fastlane.json") == "House Rubicon"

    def test_without_default_bidders(self):
        config = ClassifierConfig(use_default_bidders=False)

        assert config.build_classifier().bidder_labels == []


class TestConfigManager:
    """Test cases for ConfigManager."""

    def setup_method(self):
        self.manager = ConfigManager()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(yaml.safe_dump({
            "environment": "staging",
            "idle_network": {"noteworthy_gap_ms": 200, "blocking_resource_types": ["Script", "XHR"]},
        }))

        config = self.manager.load_config(path)

        assert config.environment == "staging"
        assert config.idle_network.noteworthy_gap_ms == 200
        assert config.idle_network.failing_gap_ms == 400
        assert config.idle_network.blocking_resource_types == [ResourceType.SCRIPT, ResourceType.XHR]
        assert self.manager.get_config() is config

    def test_environment_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "analysis.yaml"
        path.write_text(yaml.safe_dump({"idle_network": {"noteworthy_gap_ms": 200}}))
        monkeypatch.setenv("AD_SENTINEL_ENVIRONMENT", "development")
        monkeypatch.setenv("AD_SENTINEL_NOTEWORTHY_GAP_MS", "75")

        config = self.manager.load_config(path)

        assert config.environment == "development"
        assert config.idle_network.noteworthy_gap_ms == 75

    def test_defaults_without_file(self):
        assert self.manager.get_config() == AnalysisConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            self.manager.load_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("idle_network: [unclosed\n")

        with pytest.raises(ConfigurationError):
            self.manager.load_config(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            self.manager.load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "invalid.yaml"
        path.write_text(yaml.safe_dump({"idle_network": {"noteworthy_gap_ms": -5}}))

        with pytest.raises(ConfigurationError):
            self.manager.load_config(path)

    def test_invalid_environment_number(self, monkeypatch):
        monkeypatch.setenv("AD_SENTINEL_FAILING_GAP_MS", "soon")

        with pytest.raises(ConfigurationError):
            self.manager.load_config()

    def test_validate_config(self):
        assert self.manager.validate_config({"environment": "test"}) == []
        assert len(self.manager.validate_config({"environment": "qa"})) == 1

    def test_create_default_config_round_trips(self, tmp_path):
        path = tmp_path / "out" / "analysis.yaml"

        self.manager.create_default_config(path)

        assert self.manager.load_config(path) == AnalysisConfig()
