"""
Operational checks against the deployed resources.

Interprets ``kubectl get svc -o json`` and ``argocd app get -o json`` output
and probes the API through its load balancer address.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .generators import _to_k8s_name
from .types import DeployConfig

logger = logging.getLogger(__name__)


@dataclass
class AppStatus:
    """Argo CD Application sync and health state."""
    sync: str = "Unknown"
    health: str = "Unknown"
    revision: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.sync == "Synced" and self.health == "Healthy"


def service_query(config: DeployConfig) -> List[str]:
    """kubectl command that fetches the API Service as JSON."""
    return [
        "kubectl", "get", "svc", _to_k8s_name(config.app.name),
        "-n", config.app.k8s_namespace, "-o", "json",
    ]


def application_query(config: DeployConfig) -> List[str]:
    """argocd command that fetches the Application as JSON."""
    return ["argocd", "app", "get", _to_k8s_name(config.app.name), "-o", "json"]


def service_endpoint(service: Dict[str, Any]) -> Optional[str]:
    """
    Get the external address of a LoadBalancer Service.

    Args:
        service: Service object as returned by ``kubectl get svc -o json``

    Returns:
        Hostname or IP, or None while the address is pending
    """
    ingress = (service.get("status") or {}).get("loadBalancer", {}).get("ingress") or []
    for entry in ingress:
        address = entry.get("hostname") or entry.get("ip")
        if address:
            return address
    return None


def service_url(service: Dict[str, Any]) -> Optional[str]:
    """Base URL of the Service's first port on its external address."""
    address = service_endpoint(service)
    if not address:
        return None
    ports = (service.get("spec") or {}).get("ports") or []
    port = ports[0].get("port", 80) if ports else 80
    if port == 80:
        return f"http://{address}"
    return f"http://{address}:{port}"


def diagnose_service(service: Dict[str, Any]) -> List[str]:
    """
    Explain why a Service has no usable external address.

    Returns:
        List of hints (empty when an external address is assigned)
    """
    spec = service.get("spec") or {}
    service_type = spec.get("type", "ClusterIP")
    name = (service.get("metadata") or {}).get("name", "service")
    hints = []

    if service_type != "LoadBalancer":
        hints.append(
            f"{name}: type is {service_type}, not LoadBalancer; "
            "no external address will be provisioned"
        )
        return hints

    if service_endpoint(service):
        return hints

    hints.append(
        f"{name}: external address is pending; the cloud load balancer has "
        "not been provisioned yet"
    )
    if spec.get("loadBalancerIP"):
        hints.append(
            f"{name}: static loadBalancerIP {spec['loadBalancerIP']} is set; "
            "the provider may not support static IP assignment for this "
            "load balancer type, which leaves the address pending"
        )
    hints.append(
        f"Check events with: kubectl describe svc {name} "
        f"-n {(service.get('metadata') or {}).get('namespace', 'default')}"
    )
    return hints


def application_status(app: Dict[str, Any]) -> AppStatus:
    """Extract sync and health state from an Argo CD Application object."""
    status = app.get("status") or {}
    sync = status.get("sync") or {}
    health = status.get("health") or {}
    operation = status.get("operationState") or {}
    return AppStatus(
        sync=sync.get("status", "Unknown"),
        health=health.get("status", "Unknown"),
        revision=sync.get("revision"),
        message=health.get("message") or operation.get("message"),
    )


def check_endpoint(base_url: str, timeout: float = 5.0) -> bool:
    """
    Check that the API answers ``GET /health`` at the given base URL.

    Returns:
        True if the endpoint returned 200, False if unreachable or unhealthy
    """
    url = f"{base_url.rstrip('/')}/health"
    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning(f"{url} unreachable: {e}")
        return False

    if response.status_code != 200:
        logger.warning(f"{url} returned {response.status_code}")
        return False
    return True
