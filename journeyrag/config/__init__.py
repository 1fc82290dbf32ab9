"""
Configuration module for JourneyRAG.
"""

from .environments import (
    EnvironmentConfig,
    Environment,
    get_environment_config,
    get_current_environment,
    set_current_environment,
    get_all_environments,
    TEST_ENV,
    PROD_ENV,
)

__all__ = [
    "EnvironmentConfig",
    "Environment",
    "get_environment_config",
    "get_current_environment",
    "set_current_environment",
    "get_all_environments",
    "TEST_ENV",
    "PROD_ENV",
]
