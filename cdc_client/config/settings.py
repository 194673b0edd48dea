"""
CDC Client Configuration Settings
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from cdc_client.errors import ConfigurationError


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default value"""
    return os.getenv(key, default)


def get_env_int(key: str, default: int = 0) -> int:
    """Get environment variable as integer"""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get environment variable as float"""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass
class Neo4jSettings:
    """Neo4j connection settings"""

    uri: str = field(default_factory=lambda: get_env("NEO4J_URI", "neo4j://localhost:7687"))
    user: str = field(default_factory=lambda: get_env("NEO4J_USER", "neo4j"))
    password: str = field(default_factory=lambda: get_env("NEO4J_PASSWORD", "password"))
    database: Optional[str] = field(default_factory=lambda: get_env("NEO4J_DATABASE") or None)

    # Driver pool
    max_connection_pool_size: int = field(default_factory=lambda: get_env_int("NEO4J_MAX_CONNECTION_POOL_SIZE", 100))


@dataclass
class CDCSettings:
    """Change feed polling settings"""

    poll_interval: float = field(default_factory=lambda: get_env_float("CDC_POLL_INTERVAL", 1.0))


@dataclass
class Settings:
    """Main settings class that combines all configuration sections"""

    neo4j: Neo4jSettings = field(default_factory=Neo4jSettings)
    cdc: CDCSettings = field(default_factory=CDCSettings)


class ClientConfig(BaseModel):
    """Runtime options of a CDC client."""
    name: str = "cdc-client"
    poll_interval: float = Field(default=1.0, ge=0)

    @classmethod
    def build(cls, **values) -> "ClientConfig":
        """Validate values, raising ConfigurationError instead of ValidationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientConfig":
        return cls.build(poll_interval=settings.cdc.poll_interval)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load .env (if present) and build the settings once."""
    load_dotenv()
    return Settings()
