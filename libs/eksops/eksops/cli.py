"""
CLI for eksops - EKS + Argo CD deployment runbook.

Commands:
    validate    Validate deploy.yaml schema
    generate    Write cluster config, Dockerfile and manifests
    plan        Print the runbook steps
    run         Execute the runbook
    status      Show Service address and Application sync/health
    smoke       Send an image through the deployed API
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from .bundle import BundlePaths, write_bundle
from .client import predict_file
from .runbook import Runner, StepFailedError, build_runbook, run_runbook
from .schema import find_deploy_yaml, load_deploy_yaml, read_deploy_yaml, validate_deploy_yaml
from .status import (
    application_query,
    application_status,
    check_endpoint,
    diagnose_service,
    service_query,
    service_url,
)
from .types import DeployConfig, Phase

PHASE_CHOICES = [p.value for p in Phase]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="eksops",
        description="Deploy the background removal API to EKS with Argo CD",
    )
    parser.add_argument(
        "-f", "--file",
        default=None,
        help="Path to deploy.yaml (default: search up from cwd)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # validate command
    subparsers.add_parser(
        "validate",
        help="Validate deploy.yaml schema",
    )

    # generate command
    gen_parser = subparsers.add_parser(
        "generate",
        help="Write cluster config, Dockerfile and manifests",
    )
    gen_parser.add_argument(
        "-o", "--output",
        required=True,
        help="Output directory",
    )
    gen_parser.add_argument(
        "--format",
        choices=["yaml", "json"],
        default="yaml",
        help="Manifest format (default: yaml)",
    )

    # plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Print the runbook steps without executing them",
    )
    plan_parser.add_argument(
        "-p", "--phase",
        action="append",
        choices=PHASE_CHOICES,
        help="Only include this phase (repeatable)",
    )
    plan_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Execute the runbook",
    )
    run_parser.add_argument(
        "-p", "--phase",
        action="append",
        choices=PHASE_CHOICES,
        help="Only run this phase (repeatable)",
    )
    run_parser.add_argument(
        "--start-at",
        help="Resume from this step name",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log commands without executing them",
    )
    run_parser.add_argument(
        "-w", "--workdir",
        default=".eksops",
        help="Directory for the generated bundle, relative to deploy.yaml (default: .eksops)",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show Service address and Application sync/health",
    )
    status_parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Endpoint check timeout in seconds (default: 5)",
    )

    # smoke command
    smoke_parser = subparsers.add_parser(
        "smoke",
        help="Send an image through the deployed API",
    )
    smoke_parser.add_argument("--url", required=True, help="API base URL")
    smoke_parser.add_argument("--image", required=True, help="Input image file")
    smoke_parser.add_argument("--out", required=True, help="Output PNG file")
    smoke_parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Request timeout in seconds (default: 60)",
    )

    return parser


def _resolve_file(args: argparse.Namespace) -> str:
    if args.file:
        return args.file
    found = find_deploy_yaml()
    return str(found) if found else "deploy.yaml"


def _project_dir(args: argparse.Namespace) -> Path:
    """Directory holding deploy.yaml; relative paths in it resolve from here."""
    return Path(_resolve_file(args)).resolve().parent


def _load(args: argparse.Namespace) -> Optional[DeployConfig]:
    """Load deploy.yaml, printing the error and returning None on failure."""
    path = _resolve_file(args)
    try:
        return load_deploy_yaml(path)
    except FileNotFoundError:
        print(f"Error: deploy.yaml not found at {path}", file=sys.stderr)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
    return None


def _phases(args: argparse.Namespace) -> Optional[List[Phase]]:
    return [Phase(p) for p in args.phase] if args.phase else None


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle validate command."""
    path = _resolve_file(args)
    try:
        data = read_deploy_yaml(path)
    except FileNotFoundError:
        print(f"Error: deploy.yaml not found at {path}", file=sys.stderr)
        return 1

    errors = validate_deploy_yaml(data)
    if errors:
        print("Validation errors:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    try:
        config = DeployConfig.from_dict(data)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"✓ {path} is valid")
    print(f"  Cluster: {config.cluster.name} ({config.cluster.region})")
    print(f"  Image:   {config.image.reference}")
    print(f"  App:     {config.app.name} -> {config.app.k8s_namespace}")
    print(f"  GitOps:  {config.gitops.repo_url} ({config.gitops.path})")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Handle generate command."""
    config = _load(args)
    if config is None:
        return 1

    paths = write_bundle(config, args.output, args.format)
    for written in (paths.cluster, paths.dockerfile, paths.app_manifests(config.app.name), paths.application):
        print(f"Written: {written}", file=sys.stderr)
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Handle plan command."""
    config = _load(args)
    if config is None:
        return 1

    # Paths only; nothing is written for a plan
    steps = build_runbook(config, BundlePaths(Path(".eksops")), _phases(args))

    if args.json:
        print(json.dumps([
            {
                "name": s.name,
                "phase": s.phase.value,
                "description": s.description,
                "command": s.command_line,
            }
            for s in steps
        ], indent=2))
        return 0

    current = None
    for i, step in enumerate(steps, 1):
        if step.phase != current:
            current = step.phase
            print(f"\n# {current.value}")
        print(f"{i:>2}. {step.name}: {step.description}")
        print(f"    $ {step.command_line}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Handle run command."""
    config = _load(args)
    if config is None:
        return 1

    project_dir = _project_dir(args)
    paths = write_bundle(config, str(project_dir / args.workdir))
    steps = build_runbook(config, paths, _phases(args))
    runner = Runner(dry_run=args.dry_run, cwd=str(project_dir))

    try:
        done = run_runbook(steps, runner, start_at=args.start_at)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except StepFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Resume with: eksops run --start-at {e.step.name}", file=sys.stderr)
        return 1

    print(f"Completed {len(done)} steps", file=sys.stderr)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Handle status command."""
    config = _load(args)
    if config is None:
        return 1

    runner = Runner(cwd=str(_project_dir(args)))
    healthy = True

    try:
        service = json.loads(runner.capture(service_query(config)))
    except (StepFailedError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    url = service_url(service)
    print(f"Service: {url or '<pending>'}")
    for hint in diagnose_service(service):
        print(f"  ! {hint}")
        healthy = False

    if url:
        if check_endpoint(url, timeout=args.timeout):
            print(f"  {url}/health OK")
        else:
            print(f"  ! {url} is not reachable; check the security group and node health")
            healthy = False

    try:
        app = json.loads(runner.capture(application_query(config)))
    except (StepFailedError, ValueError) as e:
        print(f"Application: unavailable ({e})")
        return 1

    app_status = application_status(app)
    print(f"Application: sync={app_status.sync} health={app_status.health}")
    if app_status.revision:
        print(f"  revision: {app_status.revision}")
    if app_status.message:
        print(f"  message: {app_status.message}")

    return 0 if healthy and app_status.ok else 1


def cmd_smoke(args: argparse.Namespace) -> int:
    """Handle smoke command."""
    try:
        status = predict_file(args.url, args.image, args.out, timeout=args.timeout)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (httpx.HTTPError, ValueError) as e:
        print(f"Error: predict request failed: {e}", file=sys.stderr)
        return 1

    print(f"{args.out}: {status}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "validate": cmd_validate,
        "generate": cmd_generate,
        "plan": cmd_plan,
        "run": cmd_run,
        "status": cmd_status,
        "smoke": cmd_smoke,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
