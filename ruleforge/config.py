import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ruleforge.engine.preconditions import UnrecognizedPolicy

logger = logging.getLogger(__name__)


class EngineSettings(BaseModel):
    """Runtime settings, read from the environment (and a .env file if present)."""

    rulesets_dir: str = Field("Rulesets", description="Directory holding <id>.json ruleset files")
    unrecognized_precondition: UnrecognizedPolicy = Field(
        UnrecognizedPolicy.ALLOW,
        description="How preconditions outside the built-in grammar are resolved",
    )
    log_level: str = "DEBUG"
    script_seed: Optional[int] = Field(None, description="Seed for the sandbox dice roller")

    @field_validator("unrecognized_precondition", mode="before")
    @classmethod
    def _normalize_policy(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def from_env(cls, load_env_file: bool = True, env_file: Optional[str] = None) -> "EngineSettings":
        if load_env_file:
            load_dotenv(env_file)

        values = {}
        rulesets_dir = os.environ.get("RULEFORGE_RULESETS_DIR")
        if rulesets_dir:
            values["rulesets_dir"] = rulesets_dir
        policy = os.environ.get("RULEFORGE_UNRECOGNIZED_PRECONDITION")
        if policy:
            values["unrecognized_precondition"] = policy
        log_level = os.environ.get("RULEFORGE_LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level
        seed = os.environ.get("RULEFORGE_SCRIPT_SEED")
        if seed:
            values["script_seed"] = seed

        settings = cls(**values)
        logger.debug(f"Engine settings: {settings.model_dump()}")
        return settings
