"""Load sandbox settings from a per-user ``.env`` file.

Values in ``~/.config/remotion-sandbox-mcp/.env`` (or the file named by
``SANDBOX_ENV_FILE``) fill in ``SANDBOX_*`` and ``MLFLOW_*`` variables the
process environment leaves unset. Other keys in the file are ignored so a
shared ``.env`` cannot change unrelated settings of the host process.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_ENV_PATH = Path.home() / ".config" / "remotion-sandbox-mcp" / ".env"
ENV_FILE_VAR = "SANDBOX_ENV_FILE"
MANAGED_PREFIXES = ("SANDBOX_", "MLFLOW_")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    # Unquoted values may carry a trailing ` # comment`.
    head, sep, _ = value.partition(" #")
    return head.rstrip() if sep else value


def _needs_value(key: str, current: str | None) -> bool:
    """True when *current* is missing, blank, or an unexpanded ``${KEY}`` placeholder.

    MCP hosts sometimes forward ``KEY="${KEY}"`` verbatim when the user's
    shell never defined it; those count as unset.
    """
    if current is None:
        return True
    text = _unquote(current.strip()).strip()
    if not text:
        return True
    if text in (f"${key}", f"${{{key}}}"):
        return True
    return text.startswith(f"${{{key}:-") and text.endswith("}")


def resolve_env_path() -> Path:
    """The ``.env`` file to read: ``$SANDBOX_ENV_FILE`` if set, else the default."""
    override = os.environ.get(ENV_FILE_VAR, "").strip()
    return Path(override).expanduser() if override else DEFAULT_ENV_PATH


def parse_dotenv(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from *path*; a missing file yields ``{}``.

    Accepts ``export`` prefixes, single or double quotes, ``#`` comment
    lines and trailing comments on unquoted values. Lines without ``=``
    are skipped. No variable expansion.
    """
    if not path.is_file():
        return {}

    pairs: dict[str, str] = {}
    for lineno, raw in enumerate(path.read_text().splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            logger.debug("%s:%d: skipping malformed line", path, lineno)
            continue
        pairs[key] = _unquote(value.strip())
    return pairs


def load_dotenv(path: Path | None = None) -> dict[str, str]:
    """Copy managed keys from *path* into ``os.environ`` where they are unset.

    Args:
        path: File to read. Defaults to :func:`resolve_env_path`.

    Returns:
        The variables that were injected.
    """
    path = path or resolve_env_path()
    injected: dict[str, str] = {}
    for key, value in parse_dotenv(path).items():
        if not key.startswith(MANAGED_PREFIXES):
            logger.debug("Ignoring %s from %s (not a sandbox setting)", key, path)
            continue
        if _needs_value(key, os.environ.get(key)):
            os.environ[key] = value
            injected[key] = value
    return injected
