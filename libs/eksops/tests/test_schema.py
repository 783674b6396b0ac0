"""Tests for eksops schema loading and validation."""

import pytest
import yaml

from eksops.schema import (
    find_deploy_yaml,
    get_schema_path,
    load_deploy_yaml,
    validate_deploy_yaml,
)
from eksops.types import DeployConfig


class TestValidateDeployYaml:
    def test_schema_file_bundled(self):
        assert get_schema_path().name == "deploy-schema.json"

    def test_valid_config(self, sample_deploy_yaml):
        assert validate_deploy_yaml(sample_deploy_yaml) == []

    def test_missing_required_section(self, sample_deploy_yaml):
        del sample_deploy_yaml["gitops"]
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any("gitops" in e for e in errors)

    def test_unknown_key(self, sample_deploy_yaml):
        sample_deploy_yaml["app"]["replica"] = 2
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("app:") and "replica" in e for e in errors)

    def test_invalid_service_type(self, sample_deploy_yaml):
        sample_deploy_yaml["app"]["service_type"] = "Ingress"
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("app.service_type") for e in errors)

    def test_port_out_of_range(self, sample_deploy_yaml):
        sample_deploy_yaml["app"]["container_port"] = 70000
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("app.container_port") for e in errors)

    def test_numeric_cluster_version_rejected(self, sample_deploy_yaml):
        sample_deploy_yaml["cluster"]["version"] = 1.3
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("cluster.version") for e in errors)

    def test_numeric_image_tag_rejected(self, sample_deploy_yaml):
        sample_deploy_yaml["image"]["tag"] = 2
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("image.tag") for e in errors)

    def test_unquoted_version_in_yaml_rejected(self, tmp_path):
        path = tmp_path / "deploy.yaml"
        path.write_text(
            "cluster:\n  name: demo\n  version: 1.30\n"
            "image:\n  repository: api\n"
            "gitops:\n  repo_url: https://example.com/repo.git\n"
        )
        with pytest.raises(ValueError, match="cluster.version"):
            load_deploy_yaml(str(path))

    def test_namespace_characters(self, sample_deploy_yaml):
        sample_deploy_yaml["app"]["namespace"] = "BG_Remove"
        assert validate_deploy_yaml(sample_deploy_yaml) == []

        sample_deploy_yaml["app"]["namespace"] = "bg.remove"
        sample_deploy_yaml["gitops"]["namespace"] = "argo cd"
        errors = validate_deploy_yaml(sample_deploy_yaml)
        assert any(e.startswith("app.namespace") for e in errors)
        assert any(e.startswith("gitops.namespace") for e in errors)

    def test_not_a_mapping(self):
        assert validate_deploy_yaml(["cluster"]) == ["deploy.yaml must be a mapping"]
        assert validate_deploy_yaml(None) == ["deploy.yaml must be a mapping"]


class TestLoadDeployYaml:
    def test_load_valid(self, deploy_yaml_file):
        config = load_deploy_yaml(deploy_yaml_file)
        assert isinstance(config, DeployConfig)
        assert config.cluster.region == "eu-west-1"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_deploy_yaml(str(tmp_path / "nope.yaml"))

    def test_load_invalid(self, sample_deploy_yaml, tmp_path):
        sample_deploy_yaml["cluster"]["nodes"] = -1
        path = tmp_path / "deploy.yaml"
        path.write_text(yaml.dump(sample_deploy_yaml))

        with pytest.raises(ValueError, match="validation failed"):
            load_deploy_yaml(str(path))

    def test_load_without_validation(self, sample_deploy_yaml, tmp_path):
        sample_deploy_yaml["extra"] = True
        path = tmp_path / "deploy.yaml"
        path.write_text(yaml.dump(sample_deploy_yaml))

        config = load_deploy_yaml(str(path), validate=False)
        assert config.app.name == "bgremove_api"


class TestFindDeployYaml:
    def test_find_in_parent(self, deploy_yaml_file, tmp_path, monkeypatch):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert find_deploy_yaml() == tmp_path / "deploy.yaml"
