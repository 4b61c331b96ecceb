"""
Runtime configuration and logging setup.

Everything is read from environment variables so the HTTP app and the MCP
server start the same way:

  SYNAPSE_LIBRARY_PATH   JSON library snapshot (unset -> empty library)
  SYNAPSE_PROFILE        scoring profile name (default "balanced")
  SYNAPSE_RESULT_LIMIT   override the profile's result cap
  SYNAPSE_CANDIDATE_CAP  override the profile's candidate pool cap
  SYNAPSE_PORT           HTTP port (default 8888)
  SYNAPSE_LOG_LEVEL      loguru level (default INFO)
"""

import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel

from .profiles import DEFAULT_PROFILE, ScoringProfile, get_profile


def _int_env(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default
    if value < 1:
        logger.warning(f"{name}={value} must be positive, using {default}")
        return default
    return value


class Settings(BaseModel):
    library_path: Optional[Path] = None
    profile_name: str = DEFAULT_PROFILE
    result_limit: Optional[int] = None
    candidate_cap: Optional[int] = None
    port: int = 8888
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        library = env.get("SYNAPSE_LIBRARY_PATH")
        return cls(
            library_path=Path(library) if library else None,
            profile_name=env.get("SYNAPSE_PROFILE", DEFAULT_PROFILE) or DEFAULT_PROFILE,
            result_limit=_int_env(env, "SYNAPSE_RESULT_LIMIT", None),
            candidate_cap=_int_env(env, "SYNAPSE_CANDIDATE_CAP", None),
            port=_int_env(env, "SYNAPSE_PORT", 8888),
            log_level=(env.get("SYNAPSE_LOG_LEVEL") or "INFO").upper(),
        )

    def scoring_profile(self, name: Optional[str] = None) -> ScoringProfile:
        """The named (or configured) profile with any env overrides applied."""
        profile = get_profile(name or self.profile_name)
        overrides = {}
        if self.result_limit is not None:
            overrides["result_limit"] = self.result_limit
        if self.candidate_cap is not None:
            overrides["candidate_cap"] = self.candidate_cap
        return profile.model_copy(update=overrides) if overrides else profile


def configure_logging(level: str = "INFO") -> None:
    """Send loguru output to stderr at ``level`` (stdout is reserved for MCP stdio)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )
