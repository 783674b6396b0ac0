"""
Type definitions for EKS Ops deployment configuration.

These dataclasses represent the deploy.yaml v1 schema.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


def _to_k8s_name(name: str) -> str:
    """Convert name to valid K8s resource name."""
    return name.replace("_", "-").lower()


class ServiceType(str, Enum):
    """Kubernetes Service type."""
    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"


class Phase(str, Enum):
    """Runbook phase, in execution order."""
    TOOLS = "tools"
    CLUSTER = "cluster"
    IMAGE = "image"
    MANIFESTS = "manifests"
    GITOPS = "gitops"
    REGISTER = "register"

    @classmethod
    def ordered(cls) -> List["Phase"]:
        return list(cls)


@dataclass
class ToolsConfig:
    """Where and which versions of the third-party CLIs to install.

    Versions are release tags (``v0.180.0``) or ``latest``.
    """
    os: str = "linux"
    arch: str = "amd64"
    install_dir: str = "/usr/local/bin"
    sudo: bool = True
    eksctl_version: str = "latest"
    kubectl_version: str = "latest"
    argocd_version: str = "latest"

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ToolsConfig":
        if not data:
            return cls()
        return cls(
            os=data.get("os", "linux"),
            arch=data.get("arch", "amd64"),
            install_dir=data.get("install_dir", "/usr/local/bin"),
            sudo=data.get("sudo", True),
            eksctl_version=data.get("eksctl_version", "latest"),
            kubectl_version=data.get("kubectl_version", "latest"),
            argocd_version=data.get("argocd_version", "latest"),
        )


@dataclass
class ClusterConfig:
    """Managed cluster created through eksctl."""
    name: str
    region: str = "us-east-1"
    version: str = "1.29"
    node_group: str = "workers"
    instance_type: str = "t3.medium"
    nodes: int = 2
    nodes_min: int = 1
    nodes_max: int = 3
    volume_size: int = 20

    def __post_init__(self):
        if not (self.nodes_min <= self.nodes <= self.nodes_max):
            raise ValueError(
                f"cluster nodes must satisfy nodes_min <= nodes <= nodes_max "
                f"(got {self.nodes_min} <= {self.nodes} <= {self.nodes_max})"
            )

    @classmethod
    def from_dict(cls, data: Dict) -> "ClusterConfig":
        return cls(
            name=data["name"],
            region=data.get("region", "us-east-1"),
            version=str(data.get("version", "1.29")),
            node_group=data.get("node_group", "workers"),
            instance_type=data.get("instance_type", "t3.medium"),
            nodes=data.get("nodes", 2),
            nodes_min=data.get("nodes_min", 1),
            nodes_max=data.get("nodes_max", 3),
            volume_size=data.get("volume_size", 20),
        )


@dataclass
class ImageConfig:
    """Container image build and push settings."""
    repository: str
    registry: str = ""
    tag: str = "latest"
    context: str = "."
    dockerfile: str = "apps/bgremove/Dockerfile"
    platform: Optional[str] = "linux/amd64"

    @property
    def local_name(self) -> str:
        """Image name as built locally, before tagging for the registry."""
        return f"{self.repository}:{self.tag}"

    @property
    def reference(self) -> str:
        """Full image reference used by the Deployment."""
        if self.registry:
            return f"{self.registry.rstrip('/')}/{self.repository}:{self.tag}"
        return self.local_name

    @classmethod
    def from_dict(cls, data: Dict) -> "ImageConfig":
        return cls(
            repository=data["repository"],
            registry=data.get("registry", ""),
            tag=str(data.get("tag", "latest")),
            context=data.get("context", "."),
            dockerfile=data.get("dockerfile", "apps/bgremove/Dockerfile"),
            platform=data.get("platform", "linux/amd64"),
        )


@dataclass
class ResourcesConfig:
    """Resource requests and limits."""
    memory: str = "1Gi"
    cpu: str = "500m"
    memory_limit: Optional[str] = None
    cpu_limit: Optional[str] = None

    def __post_init__(self):
        if self.memory_limit is None:
            self.memory_limit = self.memory

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ResourcesConfig":
        if not data:
            return cls()
        return cls(
            memory=data.get("memory", "1Gi"),
            cpu=data.get("cpu", "500m"),
            memory_limit=data.get("memory_limit"),
            cpu_limit=data.get("cpu_limit"),
        )


@dataclass
class ProbeConfig:
    """HTTP health check probe configuration."""
    path: str = "/health"
    port: Optional[int] = None  # Defaults to the container port
    initial_delay: int = 0
    period: int = 10
    timeout: int = 1
    failure_threshold: int = 3

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["ProbeConfig"]:
        if not data:
            return None
        return cls(
            path=data.get("path", "/health"),
            port=data.get("port"),
            initial_delay=data.get("initial_delay", 0),
            period=data.get("period", 10),
            timeout=data.get("timeout", 1),
            failure_threshold=data.get("failure_threshold", 3),
        )


@dataclass
class ProbesConfig:
    """Readiness and liveness probes.

    Both default to ``GET /health``; the model download on first request can
    be slow, so the readiness probe gets a longer initial delay.
    """
    readiness: Optional[ProbeConfig] = field(
        default_factory=lambda: ProbeConfig(initial_delay=10)
    )
    liveness: Optional[ProbeConfig] = field(
        default_factory=lambda: ProbeConfig(initial_delay=30, period=20)
    )

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ProbesConfig":
        if data is None:
            return cls()
        return cls(
            readiness=ProbeConfig.from_dict(data.get("readiness")),
            liveness=ProbeConfig.from_dict(data.get("liveness")),
        )


@dataclass
class AppConfig:
    """The API workload: Deployment and Service."""
    name: str = "bgremove-api"
    namespace: str = "default"
    replicas: int = 2
    container_port: int = 8000
    service_port: int = 80
    service_type: ServiceType = ServiceType.LOAD_BALANCER
    environment: Dict[str, str] = field(default_factory=dict)
    resources: ResourcesConfig = field(default_factory=ResourcesConfig)
    probes: ProbesConfig = field(default_factory=ProbesConfig)

    def __post_init__(self):
        if self.replicas < 0:
            raise ValueError(f"replicas must be >= 0 (got {self.replicas})")

    @property
    def k8s_namespace(self) -> str:
        return _to_k8s_name(self.namespace)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "AppConfig":
        if not data:
            return cls()
        service_type = data.get("service_type", "LoadBalancer")
        environment = {
            str(k): str(v) for k, v in (data.get("environment") or {}).items()
        }
        return cls(
            name=data.get("name", "bgremove-api"),
            namespace=data.get("namespace", "default"),
            replicas=data.get("replicas", 2),
            container_port=data.get("container_port", 8000),
            service_port=data.get("service_port", 80),
            service_type=ServiceType(service_type) if service_type else ServiceType.LOAD_BALANCER,
            environment=environment,
            resources=ResourcesConfig.from_dict(data.get("resources")),
            probes=ProbesConfig.from_dict(data.get("probes")),
        )


DEFAULT_ARGOCD_INSTALL_MANIFEST = (
    "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
)


@dataclass
class GitOpsConfig:
    """Argo CD installation and the Application that tracks the manifests repo."""
    repo_url: str
    path: str = "k8s"
    target_revision: str = "HEAD"
    namespace: str = "argocd"
    install_manifest: str = DEFAULT_ARGOCD_INSTALL_MANIFEST
    server_service_type: ServiceType = ServiceType.LOAD_BALANCER
    server: Optional[str] = None  # Resolved from the argocd-server Service if unset
    insecure: bool = True
    project: str = "default"
    destination_server: str = "https://kubernetes.default.svc"
    kube_context: Optional[str] = None  # Current kubectl context if unset
    auto_sync: bool = True
    prune: bool = True
    self_heal: bool = True
    sync_options: List[str] = field(default_factory=lambda: ["CreateNamespace=true"])

    @property
    def k8s_namespace(self) -> str:
        return _to_k8s_name(self.namespace)

    @classmethod
    def from_dict(cls, data: Dict) -> "GitOpsConfig":
        server_type = data.get("server_service_type", "LoadBalancer")
        return cls(
            repo_url=data["repo_url"],
            path=data.get("path", "k8s"),
            target_revision=data.get("target_revision", "HEAD"),
            namespace=data.get("namespace", "argocd"),
            install_manifest=data.get("install_manifest", DEFAULT_ARGOCD_INSTALL_MANIFEST),
            server_service_type=ServiceType(server_type) if server_type else ServiceType.LOAD_BALANCER,
            server=data.get("server"),
            insecure=data.get("insecure", True),
            project=data.get("project", "default"),
            destination_server=data.get("destination_server", "https://kubernetes.default.svc"),
            kube_context=data.get("kube_context"),
            auto_sync=data.get("auto_sync", True),
            prune=data.get("prune", True),
            self_heal=data.get("self_heal", True),
            sync_options=data.get("sync_options", ["CreateNamespace=true"]),
        )


@dataclass
class DeployConfig:
    """Root deploy.yaml configuration."""
    cluster: ClusterConfig
    image: ImageConfig
    gitops: GitOpsConfig
    app: AppConfig = field(default_factory=AppConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    version: str = "1"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeployConfig":
        missing = [k for k in ("cluster", "image", "gitops") if not data.get(k)]
        if missing:
            raise ValueError(f"deploy.yaml is missing required sections: {', '.join(missing)}")
        return cls(
            version=str(data.get("version", "1")),
            cluster=ClusterConfig.from_dict(data["cluster"]),
            image=ImageConfig.from_dict(data["image"]),
            gitops=GitOpsConfig.from_dict(data["gitops"]),
            app=AppConfig.from_dict(data.get("app")),
            tools=ToolsConfig.from_dict(data.get("tools")),
        )
