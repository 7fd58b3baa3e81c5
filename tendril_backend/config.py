"""
Runtime settings read from the environment.

TENDRIL_HOST / TENDRIL_PORT      address the API binds to (and clients call)
TENDRIL_STATE_FILE               JSON file used by save/load; in-memory if unset
TENDRIL_LOG_LEVEL                logging level name for `serve`
TENDRIL_CORS_ORIGINS             comma-separated origins allowed by CORS
TENDRIL_API_BASE                 base URL the CLI and MCP tools talk to
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173")


@dataclass(frozen=True)
class Settings:
    """Server and client configuration."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    state_file: Optional[Path] = None
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    api_base: Optional[str] = None

    @property
    def api_url(self) -> str:
        """Base URL of the REST API."""
        if self.api_base:
            return self.api_base.rstrip("/")
        return f"http://{self.host}:{self.port}/api"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        state_file = env.get("TENDRIL_STATE_FILE")
        origins = env.get("TENDRIL_CORS_ORIGINS")
        try:
            port = int(env.get("TENDRIL_PORT", DEFAULT_PORT))
        except ValueError as e:
            raise ValueError(f"TENDRIL_PORT must be an integer: {e}") from e

        return cls(
            host=env.get("TENDRIL_HOST", DEFAULT_HOST),
            port=port,
            state_file=Path(state_file).expanduser() if state_file else None,
            log_level=env.get("TENDRIL_LOG_LEVEL", "INFO").upper(),
            cors_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip())
                if origins else DEFAULT_CORS_ORIGINS
            ),
            api_base=env.get("TENDRIL_API_BASE"),
        )
