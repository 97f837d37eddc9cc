from streamkeeper.env.env import (
    ConfigError,
    Environment,
    apply_dotenv,
    get_env,
    get_logging_env,
    read_dotenv,
    reset_env_caches,
)
from streamkeeper.env.paths import PROJECT_ROOT

__all__ = [
    "ConfigError",
    "Environment",
    "PROJECT_ROOT",
    "apply_dotenv",
    "get_env",
    "get_logging_env",
    "read_dotenv",
    "reset_env_caches",
]
