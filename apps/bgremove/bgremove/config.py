"""
Environment configuration for the background removal API.
"""

import os
from dataclasses import dataclass


def parse_port(env_var: str, default: int) -> int:
    """Parse port from environment variable.

    Handles Kubernetes service discovery format like 'tcp://10.100.27.255:80'
    as well as plain port numbers.
    """
    value = os.getenv(env_var, str(default))
    if value.startswith("tcp://"):
        # Kubernetes service discovery format: tcp://ip:port
        return int(value.split(":")[-1])
    return int(value)


def parse_bool(env_var: str, default: bool = False) -> bool:
    return os.getenv(env_var, str(default)).lower() in ("1", "true", "yes")


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    # Blocking delay per predict request, in seconds
    predict_delay: float = 1.0
    rembg_model: str = "u2net"
    reload: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=parse_port("PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            predict_delay=float(os.getenv("PREDICT_DELAY_SECONDS", "1.0")),
            rembg_model=os.getenv("REMBG_MODEL", "u2net"),
            reload=parse_bool("RELOAD"),
        )
