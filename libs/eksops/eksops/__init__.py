"""
EKS Ops - runbook tooling for deploying the background removal API

Generates the eksctl cluster config, Kubernetes manifests and Argo CD
Application from deploy.yaml, and runs the install/provision/build/sync
command sequence.
"""

__version__ = "0.1.0"

from .types import (
    ServiceType,
    Phase,
    ToolsConfig,
    ClusterConfig,
    ImageConfig,
    ResourcesConfig,
    ProbeConfig,
    ProbesConfig,
    AppConfig,
    GitOpsConfig,
    DeployConfig,
)

from .schema import (
    load_deploy_yaml,
    validate_deploy_yaml,
    find_deploy_yaml,
)

from .generators import (
    generate_namespace,
    generate_deployment,
    generate_service,
    generate_application,
    generate_cluster_config,
    generate_dockerfile,
    generate_app_manifests,
)

from .runbook import (
    Step,
    StepFailedError,
    Runner,
    build_runbook,
    run_runbook,
)

__all__ = [
    # Types
    "ServiceType",
    "Phase",
    "ToolsConfig",
    "ClusterConfig",
    "ImageConfig",
    "ResourcesConfig",
    "ProbeConfig",
    "ProbesConfig",
    "AppConfig",
    "GitOpsConfig",
    "DeployConfig",
    # Schema
    "load_deploy_yaml",
    "validate_deploy_yaml",
    "find_deploy_yaml",
    # Generators
    "generate_namespace",
    "generate_deployment",
    "generate_service",
    "generate_application",
    "generate_cluster_config",
    "generate_dockerfile",
    "generate_app_manifests",
    # Runbook
    "Step",
    "StepFailedError",
    "Runner",
    "build_runbook",
    "run_runbook",
]
