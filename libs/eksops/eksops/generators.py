"""
Manifest generators for the EKS GitOps deployment.

Generates the eksctl ClusterConfig, the API Dockerfile, the app Namespace,
Deployment and Service, and the Argo CD Application that tracks them.
"""

import json
from typing import Any, Dict, List

import yaml

from .types import (
    AppConfig,
    DeployConfig,
    ProbeConfig,
    _to_k8s_name,
)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY = "eksops"


def _labels(app: AppConfig) -> Dict[str, str]:
    name = _to_k8s_name(app.name)
    return {
        "app": name,
        MANAGED_BY_LABEL: MANAGED_BY,
    }


def _build_probe(probe: ProbeConfig, default_port: int) -> Dict[str, Any]:
    """Build Kubernetes HTTP probe spec."""
    result: Dict[str, Any] = {
        "httpGet": {
            "path": probe.path,
            "port": probe.port or default_port,
        },
        "periodSeconds": probe.period,
        "timeoutSeconds": probe.timeout,
        "failureThreshold": probe.failure_threshold,
    }

    if probe.initial_delay > 0:
        result["initialDelaySeconds"] = probe.initial_delay

    return result


def generate_namespace(name: str) -> Dict[str, Any]:
    """Generate Kubernetes Namespace manifest."""
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": _to_k8s_name(name),
            "labels": {
                MANAGED_BY_LABEL: MANAGED_BY,
            },
        },
    }


def generate_deployment(config: DeployConfig) -> Dict[str, Any]:
    """
    Generate Kubernetes Deployment manifest for the API.

    Args:
        config: Root deploy.yaml config

    Returns:
        Deployment manifest dict
    """
    app = config.app
    name = _to_k8s_name(app.name)
    resources = app.resources
    labels = _labels(app)

    container: Dict[str, Any] = {
        "name": name,
        "image": config.image.reference,
        "imagePullPolicy": "Always" if config.image.tag == "latest" else "IfNotPresent",
        "ports": [
            {
                "name": "http",
                "containerPort": app.container_port,
                "protocol": "TCP",
            },
        ],
        "resources": {
            "requests": {
                "memory": resources.memory,
                "cpu": resources.cpu,
            },
            "limits": {
                "memory": resources.memory_limit,
            },
        },
    }

    if resources.cpu_limit:
        container["resources"]["limits"]["cpu"] = resources.cpu_limit

    # PORT keeps the server and the containerPort in agreement
    env_vars = {"PORT": str(app.container_port)}
    env_vars.update(app.environment)
    container["env"] = [{"name": k, "value": v} for k, v in env_vars.items()]

    if app.probes.readiness:
        container["readinessProbe"] = _build_probe(app.probes.readiness, app.container_port)
    if app.probes.liveness:
        container["livenessProbe"] = _build_probe(app.probes.liveness, app.container_port)

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": app.k8s_namespace,
            "labels": labels,
        },
        "spec": {
            "replicas": app.replicas,
            "selector": {
                "matchLabels": {
                    "app": name,
                },
            },
            "template": {
                "metadata": {
                    "labels": labels,
                },
                "spec": {
                    "containers": [container],
                },
            },
        },
    }


def generate_service(config: DeployConfig) -> Dict[str, Any]:
    """
    Generate Kubernetes Service manifest for the API.

    Args:
        config: Root deploy.yaml config

    Returns:
        Service manifest dict
    """
    app = config.app
    name = _to_k8s_name(app.name)

    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": name,
            "namespace": app.k8s_namespace,
            "labels": _labels(app),
        },
        "spec": {
            "type": app.service_type.value,
            "selector": {
                "app": name,
            },
            "ports": [
                {
                    "name": "http",
                    "port": app.service_port,
                    "targetPort": app.container_port,
                    "protocol": "TCP",
                },
            ],
        },
    }


def generate_application(config: DeployConfig) -> Dict[str, Any]:
    """
    Generate Argo CD Application manifest (the sync target).

    Args:
        config: Root deploy.yaml config

    Returns:
        Application manifest dict
    """
    gitops = config.gitops
    name = _to_k8s_name(config.app.name)

    sync_policy: Dict[str, Any] = {}
    if gitops.auto_sync:
        sync_policy["automated"] = {
            "prune": gitops.prune,
            "selfHeal": gitops.self_heal,
        }
    if gitops.sync_options:
        sync_policy["syncOptions"] = list(gitops.sync_options)

    spec: Dict[str, Any] = {
        "project": gitops.project,
        "source": {
            "repoURL": gitops.repo_url,
            "targetRevision": gitops.target_revision,
            "path": gitops.path,
        },
        "destination": {
            "server": gitops.destination_server,
            "namespace": config.app.k8s_namespace,
        },
    }
    if sync_policy:
        spec["syncPolicy"] = sync_policy

    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {
            "name": name,
            "namespace": gitops.k8s_namespace,
            "labels": {
                MANAGED_BY_LABEL: MANAGED_BY,
            },
        },
        "spec": spec,
    }


def generate_cluster_config(config: DeployConfig) -> Dict[str, Any]:
    """
    Generate eksctl ClusterConfig with a single managed node group.

    Args:
        config: Root deploy.yaml config

    Returns:
        ClusterConfig dict consumed by ``eksctl create cluster -f``
    """
    cluster = config.cluster
    return {
        "apiVersion": "eksctl.io/v1alpha5",
        "kind": "ClusterConfig",
        "metadata": {
            "name": cluster.name,
            "region": cluster.region,
            "version": cluster.version,
        },
        "managedNodeGroups": [
            {
                "name": cluster.node_group,
                "instanceType": cluster.instance_type,
                "desiredCapacity": cluster.nodes,
                "minSize": cluster.nodes_min,
                "maxSize": cluster.nodes_max,
                "volumeSize": cluster.volume_size,
                "labels": {
                    "role": cluster.node_group,
                },
            },
        ],
    }


def generate_dockerfile(
    config: DeployConfig,
    app_path: str = "apps/bgremove",
    base_image: str = "python:3.12-slim",
) -> str:
    """Generate the Dockerfile for the API image (built from the project root)."""
    port = config.app.container_port
    return f"""# Auto-generated Dockerfile for {config.app.name}
# Build from the project root: docker build -f {config.image.dockerfile} .

FROM {base_image}

WORKDIR /app

ENV PYTHONDONTWRITEBYTECODE=1 \\
    PYTHONUNBUFFERED=1 \\
    U2NET_HOME=/app/.u2net

RUN pip install --no-cache-dir fastapi uvicorn pydantic pillow "rembg[cpu]"

COPY {app_path}/bgremove /app/bgremove

# Fetch the default model at build time so pods start without downloading it
RUN python -c "from rembg import new_session; new_session('u2net')"

ENV PORT={port}
EXPOSE {port}

CMD ["python", "-m", "bgremove.main"]
"""


def generate_app_manifests(config: DeployConfig) -> List[Dict[str, Any]]:
    """
    Generate the manifests the GitOps controller tracks for the app.

    Args:
        config: Root deploy.yaml config

    Returns:
        List of manifest dicts (Namespace first when not ``default``)
    """
    manifests = []

    if config.app.k8s_namespace != "default":
        manifests.append(generate_namespace(config.app.k8s_namespace))

    manifests.append(generate_deployment(config))
    manifests.append(generate_service(config))

    return manifests


def render_documents(manifests: List[Dict[str, Any]], output_format: str = "yaml") -> str:
    """Render manifests as multi-document YAML or a JSON list."""
    if output_format == "json":
        return json.dumps(manifests, indent=2)
    if output_format != "yaml":
        raise ValueError(f"Unsupported output format: {output_format}")

    docs = [yaml.dump(m, default_flow_style=False, sort_keys=False) for m in manifests]
    return "---\n" + "---\n".join(docs)
