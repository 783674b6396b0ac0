"""
Runbook: the ordered command sequence that takes a fresh workstation to a
GitOps-managed deployment of the API.

Each phase is a list of Steps. A Step wraps one invocation of an external
tool (eksctl, aws, docker, kubectl, argocd); the Runner executes it through
subprocess and stops the run at the first failure.
"""

import json
import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import yaml

from .bundle import BundlePaths
from .generators import _to_k8s_name, generate_namespace
from .types import DeployConfig, Phase, ToolsConfig

logger = logging.getLogger(__name__)


ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
ARGOCD_SERVER = "argocd-server"


class StepFailedError(RuntimeError):
    """An external command exited with a non-zero status."""

    def __init__(self, step: "Step", returncode: int, stderr: str = ""):
        self.step = step
        self.returncode = returncode
        self.stderr = stderr
        message = f"Step '{step.name}' failed with exit code {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


@dataclass
class Step:
    """One command of the runbook."""
    name: str
    phase: Optional[Phase]  # None for read-only queries
    description: str
    argv: List[str]
    stdin: Optional[str] = None
    # Skip when this executable is already on PATH
    skip_if_present: Optional[str] = None

    @property
    def command_line(self) -> str:
        """Shell-quoted command for display."""
        return shlex.join(self.argv)


def _shell(script: str) -> List[str]:
    return ["sh", "-c", script]


# ============================================================================
# tools
# ============================================================================

def _release_url(repo: str, version: str, asset: str) -> str:
    if version == "latest":
        return f"https://github.com/{repo}/releases/latest/download/{asset}"
    return f"https://github.com/{repo}/releases/download/{version}/{asset}"


def _install_cmd(tools: ToolsConfig, source: str, binary: str) -> str:
    sudo = "sudo " if tools.sudo else ""
    target = f"{tools.install_dir.rstrip('/')}/{binary}"
    return f"{sudo}install -m 0755 {source} {target}"


def eksctl_install_script(tools: ToolsConfig) -> str:
    """eksctl ships as a tarball named ``eksctl_<OS>_<arch>.tar.gz``."""
    asset = f"eksctl_{tools.os.capitalize()}_{tools.arch}.tar.gz"
    url = _release_url("eksctl-io/eksctl", tools.eksctl_version, asset)
    install = _install_cmd(tools, "\"$tmp\"/eksctl", "eksctl")
    return (
        "set -e; tmp=$(mktemp -d); "
        f"curl -sSfL {url} | tar -xz -C \"$tmp\"; "
        f"{install}; "
        "rm -rf \"$tmp\""
    )


def kubectl_install_script(tools: ToolsConfig) -> str:
    """kubectl is a single binary on dl.k8s.io; ``latest`` resolves stable.txt."""
    if tools.kubectl_version == "latest":
        version = "$(curl -sSfL https://dl.k8s.io/release/stable.txt)"
    else:
        version = tools.kubectl_version
    url = f"https://dl.k8s.io/release/{version}/bin/{tools.os}/{tools.arch}/kubectl"
    install = _install_cmd(tools, "\"$tmp\"/kubectl", "kubectl")
    return (
        "set -e; tmp=$(mktemp -d); "
        f"curl -sSfL -o \"$tmp\"/kubectl \"{url}\"; "
        f"{install}; "
        "rm -rf \"$tmp\""
    )


def argocd_install_script(tools: ToolsConfig) -> str:
    asset = f"argocd-{tools.os}-{tools.arch}"
    url = _release_url("argoproj/argo-cd", tools.argocd_version, asset)
    install = _install_cmd(tools, "\"$tmp\"/argocd", "argocd")
    return (
        "set -e; tmp=$(mktemp -d); "
        f"curl -sSfL -o \"$tmp\"/argocd {url}; "
        f"{install}; "
        "rm -rf \"$tmp\""
    )


def tools_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    tools = config.tools
    return [
        Step(
            name="install-eksctl",
            phase=Phase.TOOLS,
            description="Install the eksctl cluster-provisioning CLI",
            argv=_shell(eksctl_install_script(tools)),
            skip_if_present="eksctl",
        ),
        Step(
            name="install-kubectl",
            phase=Phase.TOOLS,
            description="Install the kubectl Kubernetes CLI",
            argv=_shell(kubectl_install_script(tools)),
            skip_if_present="kubectl",
        ),
        Step(
            name="install-argocd",
            phase=Phase.TOOLS,
            description="Install the argocd GitOps CLI",
            argv=_shell(argocd_install_script(tools)),
            skip_if_present="argocd",
        ),
    ]


# ============================================================================
# cluster
# ============================================================================

def cluster_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    cluster = config.cluster
    return [
        Step(
            name="create-cluster",
            phase=Phase.CLUSTER,
            description=f"Create EKS cluster '{cluster.name}' in {cluster.region}",
            argv=["eksctl", "create", "cluster", "-f", str(paths.cluster)],
        ),
        Step(
            name="update-kubeconfig",
            phase=Phase.CLUSTER,
            description="Point kubectl at the new cluster",
            argv=[
                "aws", "eks", "update-kubeconfig",
                "--region", cluster.region,
                "--name", cluster.name,
            ],
        ),
        Step(
            name="get-nodes",
            phase=Phase.CLUSTER,
            description="Verify the worker nodes joined",
            argv=["kubectl", "get", "nodes", "-o", "wide"],
        ),
    ]


# ============================================================================
# image
# ============================================================================

def image_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    image = config.image
    build = ["docker", "build", "-f", image.dockerfile, "-t", image.local_name]
    if image.platform:
        build += ["--platform", image.platform]
    build.append(image.context)

    steps = [
        Step(
            name="build-image",
            phase=Phase.IMAGE,
            description=f"Build image {image.local_name}",
            argv=build,
        ),
    ]

    if image.reference != image.local_name:
        steps.append(Step(
            name="tag-image",
            phase=Phase.IMAGE,
            description=f"Tag image as {image.reference}",
            argv=["docker", "tag", image.local_name, image.reference],
        ))

    steps.append(Step(
        name="push-image",
        phase=Phase.IMAGE,
        description=f"Push {image.reference} to the registry",
        argv=["docker", "push", image.reference],
    ))
    return steps


# ============================================================================
# manifests
# ============================================================================

def manifests_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    app = config.app
    name = _to_k8s_name(app.name)
    return [
        Step(
            name="apply-manifests",
            phase=Phase.MANIFESTS,
            description="Apply the Deployment and Service",
            argv=["kubectl", "apply", "-f", str(paths.app_manifests(app.name))],
        ),
        Step(
            name="rollout-status",
            phase=Phase.MANIFESTS,
            description=f"Wait for deployment/{name} to roll out",
            argv=[
                "kubectl", "rollout", "status", f"deployment/{name}",
                "-n", app.k8s_namespace, "--timeout=300s",
            ],
        ),
    ]


# ============================================================================
# gitops
# ============================================================================

def gitops_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    gitops = config.gitops
    ns = gitops.k8s_namespace
    patch = {"spec": {"type": gitops.server_service_type.value}}
    return [
        Step(
            name="create-argocd-namespace",
            phase=Phase.GITOPS,
            description=f"Create namespace {ns}",
            argv=["kubectl", "apply", "-f", "-"],
            stdin=yaml.dump(generate_namespace(ns), default_flow_style=False, sort_keys=False),
        ),
        Step(
            name="apply-argocd-install",
            phase=Phase.GITOPS,
            description="Apply the Argo CD installation manifest",
            argv=["kubectl", "apply", "-n", ns, "-f", gitops.install_manifest],
        ),
        Step(
            name="expose-argocd-server",
            phase=Phase.GITOPS,
            description=f"Change {ARGOCD_SERVER} Service type to {gitops.server_service_type.value}",
            argv=[
                "kubectl", "patch", "svc", ARGOCD_SERVER, "-n", ns,
                "-p", json.dumps(patch),
            ],
        ),
        Step(
            name="wait-argocd-server",
            phase=Phase.GITOPS,
            description=f"Wait for {ARGOCD_SERVER} to become available",
            argv=[
                "kubectl", "rollout", "status", f"deployment/{ARGOCD_SERVER}",
                "-n", ns, "--timeout=300s",
            ],
        ),
    ]


# ============================================================================
# register
# ============================================================================

def argocd_server_expr(namespace: str) -> str:
    """Shell expression that resolves the argocd-server LoadBalancer address."""
    jsonpath = "{.status.loadBalancer.ingress[0].hostname}{.status.loadBalancer.ingress[0].ip}"
    return f"$(kubectl get svc {ARGOCD_SERVER} -n {namespace} -o jsonpath='{jsonpath}')"


def admin_password_expr(namespace: str) -> str:
    """Shell expression that reads the initial admin password."""
    return (
        f"$(kubectl get secret {ARGOCD_ADMIN_SECRET} -n {namespace} "
        "-o jsonpath='{.data.password}' | base64 -d)"
    )


def register_steps(config: DeployConfig, paths: BundlePaths) -> List[Step]:
    gitops = config.gitops
    app_name = _to_k8s_name(config.app.name)

    if gitops.server:
        server = shlex.quote(gitops.server)
    else:
        server = f"\"{argocd_server_expr(gitops.k8s_namespace)}\""
    login = (
        f"argocd login {server} --username admin "
        f"--password \"{admin_password_expr(gitops.k8s_namespace)}\""
    )
    if gitops.insecure:
        login += " --insecure"

    if gitops.kube_context:
        cluster_add = ["argocd", "cluster", "add", gitops.kube_context, "--yes"]
    else:
        cluster_add = _shell("argocd cluster add \"$(kubectl config current-context)\" --yes")

    create = [
        "argocd", "app", "create", app_name,
        "--repo", gitops.repo_url,
        "--path", gitops.path,
        "--revision", gitops.target_revision,
        "--project", gitops.project,
        "--dest-server", gitops.destination_server,
        "--dest-namespace", config.app.k8s_namespace,
        "--upsert",
    ]
    if gitops.auto_sync:
        create += ["--sync-policy", "automated"]
        if gitops.prune:
            create.append("--auto-prune")
        if gitops.self_heal:
            create.append("--self-heal")
    for option in gitops.sync_options:
        create += ["--sync-option", option]

    return [
        Step(
            name="argocd-login",
            phase=Phase.REGISTER,
            description="Log in to Argo CD with the initial admin password",
            argv=_shell(login),
        ),
        Step(
            name="argocd-cluster-add",
            phase=Phase.REGISTER,
            description="Register the cluster with Argo CD",
            argv=cluster_add,
        ),
        Step(
            name="argocd-app-create",
            phase=Phase.REGISTER,
            description=f"Declare sync target {gitops.repo_url} ({gitops.path}@{gitops.target_revision})",
            argv=create,
        ),
        Step(
            name="argocd-app-sync",
            phase=Phase.REGISTER,
            description=f"Sync application {app_name}",
            argv=["argocd", "app", "sync", app_name],
        ),
        Step(
            name="argocd-app-wait",
            phase=Phase.REGISTER,
            description=f"Wait for application {app_name} to become healthy",
            argv=["argocd", "app", "wait", app_name, "--health", "--timeout", "300"],
        ),
    ]


PHASE_BUILDERS: Dict[Phase, Callable[[DeployConfig, BundlePaths], List[Step]]] = {
    Phase.TOOLS: tools_steps,
    Phase.CLUSTER: cluster_steps,
    Phase.IMAGE: image_steps,
    Phase.MANIFESTS: manifests_steps,
    Phase.GITOPS: gitops_steps,
    Phase.REGISTER: register_steps,
}


def build_runbook(
    config: DeployConfig,
    paths: BundlePaths,
    phases: Optional[Iterable[Phase]] = None,
) -> List[Step]:
    """
    Build the ordered step list.

    Args:
        config: Root deploy.yaml config
        paths: Location of the generated bundle the steps reference
        phases: Phases to include (default: all). Always run in canonical order.

    Returns:
        List of Steps
    """
    selected = set(phases) if phases else set(Phase)
    steps: List[Step] = []
    for phase in Phase.ordered():
        if phase in selected:
            steps.extend(PHASE_BUILDERS[phase](config, paths))
    return steps


# ============================================================================
# execution
# ============================================================================

class Runner:
    """Executes Steps with subprocess."""

    def __init__(self, dry_run: bool = False, cwd: Optional[str] = None):
        self.dry_run = dry_run
        self.cwd = cwd

    def run(self, step: Step) -> Optional[subprocess.CompletedProcess]:
        """Run one step; returns None when skipped or in dry-run mode."""
        if step.skip_if_present and shutil.which(step.skip_if_present):
            logger.info(f"[{step.phase.value}] {step.name}: {step.skip_if_present} already installed, skipping")
            return None

        logger.info(f"[{step.phase.value}] {step.name}: {step.description}")
        logger.debug(f"Running: {step.command_line}")

        if self.dry_run:
            logger.info(f"  (dry-run) {step.command_line}")
            return None

        try:
            result = subprocess.run(
                step.argv,
                input=step.stdin,
                cwd=self.cwd,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise StepFailedError(step, 127, str(e)) from e

        if result.stdout:
            logger.debug(result.stdout.rstrip())
        if result.returncode != 0:
            raise StepFailedError(step, result.returncode, result.stderr or "")
        return result

    def capture(self, argv: List[str]) -> str:
        """Run a read-only query and return its stdout.

        Queries run even in dry-run mode since they change nothing.
        """
        logger.debug(f"Querying: {shlex.join(argv)}")
        try:
            result = subprocess.run(argv, cwd=self.cwd, text=True, capture_output=True)
        except FileNotFoundError as e:
            raise StepFailedError(_query_step(argv), 127, str(e)) from e
        if result.returncode != 0:
            raise StepFailedError(_query_step(argv), result.returncode, result.stderr or "")
        return result.stdout


def _query_step(argv: List[str]) -> Step:
    return Step(name=argv[0] if argv else "query", phase=None, description="query", argv=argv)


def run_runbook(
    steps: List[Step],
    runner: Runner,
    start_at: Optional[str] = None,
) -> List[Step]:
    """
    Run steps in order, stopping at the first failure.

    Args:
        steps: Steps from build_runbook
        runner: Runner to execute them with
        start_at: Name of the step to resume from

    Returns:
        The steps that were executed (or skipped as already satisfied)

    Raises:
        ValueError: If start_at names no step
        StepFailedError: On the first failing step
    """
    if start_at is not None:
        names = [s.name for s in steps]
        if start_at not in names:
            raise ValueError(f"Unknown step '{start_at}'. Steps: {', '.join(names)}")
        steps = steps[names.index(start_at):]

    done = []
    for step in steps:
        runner.run(step)
        done.append(step)
    return done
