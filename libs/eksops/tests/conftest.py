"""Shared fixtures for eksops tests."""

import pytest
import yaml

from eksops.bundle import BundlePaths
from eksops.types import DeployConfig


@pytest.fixture
def sample_deploy_yaml():
    """Create sample deploy.yaml content."""
    return {
        "version": "1",
        "cluster": {
            "name": "bgremove",
            "region": "eu-west-1",
            "version": "1.29",
            "instance_type": "t3.large",
            "nodes": 2,
        },
        "image": {
            "registry": "docker.io/acme",
            "repository": "bgremove-api",
            "tag": "v1",
        },
        "app": {
            "name": "bgremove_api",
            "namespace": "bgremove",
            "replicas": 3,
            "container_port": 8000,
            "service_port": 80,
            "environment": {
                "LOG_LEVEL": "INFO",
                "PREDICT_DELAY_SECONDS": 1,
            },
        },
        "gitops": {
            "repo_url": "https://github.com/acme/bgremove-deploy.git",
            "path": "k8s",
        },
        "tools": {
            "sudo": False,
            "install_dir": "/opt/bin",
        },
    }


@pytest.fixture
def deploy_config(sample_deploy_yaml):
    return DeployConfig.from_dict(sample_deploy_yaml)


@pytest.fixture
def minimal_config():
    return DeployConfig.from_dict({
        "cluster": {"name": "demo"},
        "image": {"repository": "bgremove-api"},
        "gitops": {"repo_url": "https://github.com/acme/demo.git"},
    })


@pytest.fixture
def deploy_yaml_file(sample_deploy_yaml, tmp_path):
    """Create temporary deploy.yaml file."""
    file_path = tmp_path / "deploy.yaml"
    with open(file_path, "w") as f:
        yaml.dump(sample_deploy_yaml, f)
    return str(file_path)


@pytest.fixture
def bundle_paths(tmp_path):
    return BundlePaths(tmp_path / "bundle")
