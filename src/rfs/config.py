"""Process settings, read from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import DEFAULT_REGISTRY_PATH

REGISTRY_PATH_ENV = "RFS_CONFIG"
LOG_LEVEL_ENV = "RFS_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Settings shared by the rfs-server and rfs-client commands."""
    registry_path: str = DEFAULT_REGISTRY_PATH
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            registry_path=env.get(REGISTRY_PATH_ENV, DEFAULT_REGISTRY_PATH),
            log_level=env.get(LOG_LEVEL_ENV, "INFO").upper(),
        )
