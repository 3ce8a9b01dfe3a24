"""Centralized path resolution for bincover.

Config lookup honors BINCOVER_CONFIG so harnesses can point every collector at
one shared bincover.yml.
"""
import os
from functools import lru_cache
from pathlib import Path

CONFIG_FILENAME = "bincover.yml"
CONFIG_ENV_VAR = "BINCOVER_CONFIG"


@lru_cache(maxsize=None)
def get_package_dir() -> Path:
    """Get the bincover/ package directory."""
    return Path(__file__).resolve().parent.parent


def get_config_path() -> Path:
    """Get the bincover.yml config file path.

    Resolution order:
      1) Environment variable BINCOVER_CONFIG (if set)
      2) Current working directory bincover.yml
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return (Path.cwd() / CONFIG_FILENAME).resolve()


def get_instrument_omit_pattern() -> str:
    """Glob matching bincover's own sources, excluded from callee coverage."""
    return str(get_package_dir() / "*")

