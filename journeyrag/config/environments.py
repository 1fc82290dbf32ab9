"""
Environment Configuration
=========================

Manages test/prod environment separation for JourneyRAG storage.

Usage:
    from journeyrag.config import get_environment_config, TEST_ENV, PROD_ENV

    config = get_environment_config(TEST_ENV)
    print(config.database_url)  # "sqlite+aiosqlite:///:memory:"

    # Switch global environment
    set_current_environment(PROD_ENV)
    config = get_current_environment()
    print(config.name)  # "prod"
"""

import os
from dataclasses import dataclass
from enum import Enum


class Environment(Enum):
    """Available environments."""
    TEST = "test"
    PROD = "prod"


# Convenience aliases
TEST_ENV = Environment.TEST
PROD_ENV = Environment.PROD


@dataclass(frozen=True)
class EnvironmentConfig:
    """
    Configuration for a specific environment.

    Attributes:
        name: Environment name ("test" or "prod")
        database_url: Async SQLAlchemy URL of the chunk/edge store
        embedding_dimension: Vector length fixed for the deployment
        default_tenant: Tenant assigned to chunks ingested without one
        description: Human-readable description
    """
    name: str
    database_url: str
    description: str
    embedding_dimension: int = 1536
    default_tenant: str = "default"


_ENVIRONMENTS = {
    Environment.TEST: EnvironmentConfig(
        name="test",
        database_url="sqlite+aiosqlite:///:memory:",
        description="In-memory store for tests and local experiments",
    ),
    Environment.PROD: EnvironmentConfig(
        name="prod",
        database_url="sqlite+aiosqlite:///journeyrag.db",
        description="File-backed store with validated data",
    ),
}

# Current active environment (default: test for safety)
_current_environment: Environment = Environment.TEST


def get_environment_config(env: Environment) -> EnvironmentConfig:
    """Get configuration for a specific environment."""
    return _ENVIRONMENTS[env]


def get_current_environment() -> EnvironmentConfig:
    """
    Get configuration for the currently active environment.

    The current environment can be set via:
    1. set_current_environment() function
    2. JOURNEYRAG_ENV environment variable

    Returns:
        EnvironmentConfig for current environment
    """
    env_var = os.environ.get("JOURNEYRAG_ENV", "").lower()
    if env_var == "prod":
        return _ENVIRONMENTS[Environment.PROD]
    elif env_var == "test":
        return _ENVIRONMENTS[Environment.TEST]

    return _ENVIRONMENTS[_current_environment]


def set_current_environment(env: Environment) -> None:
    """Set the current active environment."""
    global _current_environment
    _current_environment = env


def get_all_environments() -> dict:
    """Get all available environment configurations."""
    return _ENVIRONMENTS.copy()
