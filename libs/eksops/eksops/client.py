"""
Smoke-test client for the deployed background removal API.
"""

import base64
import logging
from pathlib import Path
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)


def predict(base_url: str, image_bytes: bytes, timeout: float = 60.0) -> Dict[str, Any]:
    """
    Send raw image bytes to ``POST /predict``.

    Returns:
        Decoded JSON response (``image`` and ``status``)

    Raises:
        httpx.HTTPStatusError: On a non-2xx response
    """
    payload = {"image": base64.b64encode(image_bytes).decode("ascii")}
    url = f"{base_url.rstrip('/')}/predict"
    response = httpx.post(url, json=payload, timeout=timeout)
    response.raise_for_status()
    return response.json()


def predict_file(
    base_url: str,
    in_path: str,
    out_path: str,
    timeout: float = 60.0,
) -> str:
    """
    Remove the background of an image file through the API.

    Args:
        base_url: API base URL (``http://<load-balancer>``)
        in_path: Input image file
        out_path: Where to write the returned PNG
        timeout: Request timeout in seconds

    Returns:
        The status string returned by the API
    """
    source = Path(in_path)
    if not source.exists():
        raise FileNotFoundError(f"Image not found at {in_path}")

    result = predict(base_url, source.read_bytes(), timeout=timeout)
    if "image" not in result:
        raise ValueError(f"Unexpected response from {base_url}: missing 'image'")

    target = Path(out_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(base64.b64decode(result["image"]))
    logger.info(f"Wrote {target} ({target.stat().st_size} bytes)")
    return result.get("status", "unknown")
