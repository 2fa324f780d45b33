"""Tests for scan configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from file_inventory.config import ConfigError, ScanConfig, load_config
from file_inventory.models import PathFilterSet


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "scan.yaml"
    path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data)
    return path


@pytest.fixture
def minimal() -> dict:
    return {
        "targets": ["srv01", "srv02"],
        "paths": [
            {"root": "/data", "extensions": [".txt", ".csv"]},
            {"root": "/logs", "extensions": [".log"]},
        ],
        "timeout": 120,
    }


class TestScanConfig:
    def test_filter_set_keeps_declared_order(self, minimal):
        filters = ScanConfig.model_validate(minimal).filter_set()
        assert isinstance(filters, PathFilterSet)
        assert filters.roots == ["/data", "/logs"]
        assert filters.extensions_for("/data") == (".txt", ".csv")

    def test_requires_a_target_source(self, minimal):
        del minimal["targets"]
        with pytest.raises(ValueError, match="targets"):
            ScanConfig.model_validate(minimal)

    def test_ldap_alone_is_enough(self, minimal):
        del minimal["targets"]
        minimal["ldap"] = {"uri": "ldap://dc", "base_dn": "OU=Servers,DC=x"}
        config = ScanConfig.model_validate(minimal)
        assert config.ldap.attribute == "dNSHostName"

    def test_duplicate_roots_rejected(self, minimal):
        minimal["paths"].append({"root": "/data", "extensions": [".md"]})
        with pytest.raises(ValueError, match="duplicate root"):
            ScanConfig.model_validate(minimal)

    @pytest.mark.parametrize("extensions", [["txt"], ["."], []])
    def test_bad_extensions_rejected(self, minimal, extensions):
        minimal["paths"][0]["extensions"] = extensions
        with pytest.raises(ValueError):
            ScanConfig.model_validate(minimal)

    def test_blank_root_rejected(self, minimal):
        minimal["paths"][0]["root"] = "   "
        with pytest.raises(ValueError, match="root"):
            ScanConfig.model_validate(minimal)

    def test_zero_timeout_means_none(self, minimal):
        minimal["timeout"] = 0
        assert ScanConfig.model_validate(minimal).timeout is None

    def test_concurrency_must_be_positive(self, minimal):
        minimal["concurrency"] = 0
        with pytest.raises(ValueError):
            ScanConfig.model_validate(minimal)

    def test_mail_needs_admin_recipients(self, minimal):
        minimal["mail"] = {"sender": "a@x", "recipients": ["b@x"], "admin_recipients": []}
        with pytest.raises(ValueError):
            ScanConfig.model_validate(minimal)


class TestLoadConfig:
    def test_loads_yaml(self, tmp_path, minimal):
        config = load_config(_write(tmp_path, minimal))
        assert config.targets == ["srv01", "srv02"]
        assert config.timeout == 120

    def test_overrides_take_precedence(self, tmp_path, minimal):
        config = load_config(
            _write(tmp_path, minimal), concurrency=1, timeout=None, output_dir=str(tmp_path)
        )
        assert config.concurrency == 1
        assert config.timeout == 120
        assert config.output_dir == tmp_path

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(_write(tmp_path, "paths: [unclosed"))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_config(_write(tmp_path, "- just\n- a list\n"))

    def test_validation_error_wrapped(self, tmp_path, minimal):
        del minimal["paths"]
        with pytest.raises(ConfigError) as exc_info:
            load_config(_write(tmp_path, minimal))
        assert exc_info.value.path.name == "scan.yaml"

    def test_packaged_example_is_valid(self):
        import file_inventory.config as config_pkg

        example = Path(config_pkg.__file__).parent / "example.yaml"
        config = load_config(example)
        assert config.targets == ["local"]
        assert config.mail.admin_recipients == ["sysadmin@example.org"]
