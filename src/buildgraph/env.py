"""Environment handling: ``.env`` files and publishing credentials."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

_REF_SANITIZER = re.compile(r"[^A-Za-z0-9]+")


@dataclass(frozen=True)
class Credentials:
    """Credentials for one publication target.

    Either ``token`` (sent as a bearer token) or ``username``/``password``
    (sent as HTTP basic auth) is set.
    """

    username: str | None = None
    password: str | None = None
    token: str | None = None

    @property
    def basic_auth(self) -> tuple[str, str] | None:
        if self.username is None or self.password is None:
            return None
        return (self.username, self.password)


def load_dotenv(path: Path) -> dict[str, str]:
    """Load environment variables from a .env file. Returns empty dict if file doesn't exist."""
    if not path.exists():
        return {}

    env: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        env[key] = value

    return env


def get_project_env(project_root: Path) -> dict[str, str]:
    """Get combined environment from .env file and OS (dotenv takes precedence)."""
    return {**os.environ, **load_dotenv(project_root / ".env")}


def credentials_prefix(reference: str) -> str:
    """Turn a credentials reference into its environment variable prefix.

    ``cloud-repo`` becomes ``CLOUD_REPO``; the variables looked up are then
    ``CLOUD_REPO_USERNAME``, ``CLOUD_REPO_PASSWORD`` and ``CLOUD_REPO_TOKEN``.
    """
    return _REF_SANITIZER.sub("_", reference).strip("_").upper()


def resolve_credentials(reference: str | None, env: dict[str, str]) -> Credentials | None:
    """Look up the credentials named by a target's credentials reference.

    Args:
        reference: Credentials reference from the target declaration, or None
        env: Environment to read variables from

    Returns:
        Credentials, or None when the reference is empty or nothing is set
    """
    if not reference:
        return None

    prefix = credentials_prefix(reference)
    token = env.get(f"{prefix}_TOKEN")
    username = env.get(f"{prefix}_USERNAME")
    password = env.get(f"{prefix}_PASSWORD")

    if token is None and username is None and password is None:
        return None

    return Credentials(username=username, password=password, token=token)
