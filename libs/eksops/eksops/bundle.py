"""
Writes the generated deployment bundle to disk.

Layout (relative to the bundle directory)::

    cluster.yaml                 eksctl ClusterConfig
    Dockerfile                   API image recipe
    manifests/<app>.<fmt>        Namespace, Deployment, Service
    argocd/application.<fmt>     Argo CD Application
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from .generators import (
    _to_k8s_name,
    generate_app_manifests,
    generate_application,
    generate_cluster_config,
    generate_dockerfile,
    render_documents,
)
from .types import DeployConfig

logger = logging.getLogger(__name__)


@dataclass
class BundlePaths:
    """Locations of the bundle files."""
    root: Path
    output_format: str = "yaml"

    @property
    def cluster(self) -> Path:
        # eksctl only reads YAML
        return self.root / "cluster.yaml"

    @property
    def dockerfile(self) -> Path:
        return self.root / "Dockerfile"

    @property
    def manifests_dir(self) -> Path:
        return self.root / "manifests"

    @property
    def application(self) -> Path:
        return self.root / "argocd" / f"application.{self.output_format}"

    def app_manifests(self, app_name: str) -> Path:
        return self.manifests_dir / f"{_to_k8s_name(app_name)}.{self.output_format}"


def write_bundle(
    config: DeployConfig,
    output_dir: str,
    output_format: str = "yaml",
) -> BundlePaths:
    """
    Generate every file of the bundle and write it under ``output_dir``.

    Returns:
        BundlePaths pointing at the written files
    """
    paths = BundlePaths(Path(output_dir), output_format)
    paths.manifests_dir.mkdir(parents=True, exist_ok=True)
    paths.application.parent.mkdir(parents=True, exist_ok=True)

    paths.cluster.write_text(
        yaml.dump(generate_cluster_config(config), default_flow_style=False, sort_keys=False)
    )
    paths.dockerfile.write_text(generate_dockerfile(config))
    paths.app_manifests(config.app.name).write_text(
        render_documents(generate_app_manifests(config), output_format)
    )
    paths.application.write_text(
        render_documents([generate_application(config)], output_format)
    )

    logger.debug(f"Bundle written to {paths.root}")
    return paths
