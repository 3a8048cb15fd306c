"""
Runtime settings, read from FLOWGRAPH_* environment variables and a .env file.

    FLOWGRAPH_MAX_CALL_DEPTH=64
    FLOWGRAPH_STRING_BUFFER_SIZE=128
    FLOWGRAPH_LOG_LEVEL=debug
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlowgraphSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLOWGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_call_depth: int = Field(default=256, ge=1)
    """Maximum nested function calls before a run fails"""

    string_buffer_size: int = Field(default=256, ge=1)
    """char[] size for string locals in generated C"""

    indent_width: int = Field(default=4, ge=1)

    structured_conditionals: bool = False
    """Stop both if/else branches at their shared Merge in generated C"""

    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        return value.strip().upper()

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'FlowgraphSettings':
        """Read settings from the environment and `env_file` (default: ./.env)."""
        if env_file is None:
            return cls()
        return cls(_env_file=env_file)


@lru_cache(maxsize=1)
def get_settings() -> FlowgraphSettings:
    return FlowgraphSettings()


def configure_logging(level: Optional[str] = None):
    """Install a basic handler for hosts that do not configure logging themselves."""
    name = (level or get_settings().log_level).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{name}'")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
