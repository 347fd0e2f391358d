import os
from typing import Optional


def remove_trailing_slash(host):
    if host.endswith("/"):
        return host[:-1]
    return host


def from_env(value: Optional[str], env_var: str, default: Optional[str] = None):
    """Returns `value` if set, else the environment variable, else `default`."""
    if value:
        return value
    return os.environ.get(env_var) or default
