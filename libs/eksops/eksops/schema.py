"""
Schema loading and validation for deploy.yaml.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

from .types import DeployConfig


def get_schema_path() -> Path:
    """Get path to the bundled JSON schema file."""
    schema_path = Path(__file__).parent / "schemas" / "deploy-schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Could not find deploy-schema.json at {schema_path}")
    return schema_path


def load_schema() -> Dict[str, Any]:
    """Load the JSON schema for deploy.yaml."""
    with open(get_schema_path()) as f:
        return json.load(f)


def validate_deploy_yaml(data: Any) -> List[str]:
    """
    Validate deploy.yaml data against JSON schema.

    Returns list of validation errors (empty if valid).
    """
    if not isinstance(data, dict):
        return ["deploy.yaml must be a mapping"]

    validator = jsonschema.Draft7Validator(load_schema())
    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path]):
        path = ".".join(str(p) for p in error.absolute_path)
        errors.append(f"{path}: {error.message}" if path else error.message)
    return errors


def read_deploy_yaml(path: str) -> Any:
    """Read raw deploy.yaml content without validation."""
    deploy_path = Path(path)
    if not deploy_path.exists():
        raise FileNotFoundError(f"deploy.yaml not found at {path}")

    with open(deploy_path) as f:
        return yaml.safe_load(f)


def load_deploy_yaml(
    path: str = "deploy.yaml",
    validate: bool = True,
) -> DeployConfig:
    """
    Load and parse deploy.yaml file.

    Args:
        path: Path to deploy.yaml file
        validate: Whether to validate against schema

    Returns:
        Parsed DeployConfig

    Raises:
        FileNotFoundError: If deploy.yaml not found
        ValueError: If validation fails
    """
    data = read_deploy_yaml(path)

    if validate:
        errors = validate_deploy_yaml(data)
        if errors:
            raise ValueError("deploy.yaml validation failed:\n" + "\n".join(errors))

    return DeployConfig.from_dict(data)


def find_deploy_yaml() -> Optional[Path]:
    """
    Find deploy.yaml by searching up from current directory.

    Returns:
        Path to deploy.yaml or None if not found
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / "deploy.yaml"
        if candidate.exists():
            return candidate
    return None
