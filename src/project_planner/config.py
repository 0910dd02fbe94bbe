"""Load optional planner configuration from `.project_planner/config.yaml`.

Environment variables take precedence over the file so a deployment can
override a checked-in config without editing it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import CONFIG_FILE, DEFAULT_HOST, DEFAULT_LOG_LEVEL, DEFAULT_PORT, STATE_DIR_NAME
from .io_utils import _load_yaml_with_error

ENV_API_KEY = "PROJECT_PLANNER_API_KEY"
ENV_HOST = "PROJECT_PLANNER_HOST"
ENV_PORT = "PROJECT_PLANNER_PORT"
ENV_LOG_LEVEL = "PROJECT_PLANNER_LOG_LEVEL"
ENV_STRICT_ORDERING = "PROJECT_PLANNER_STRICT_ORDERING"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_planner_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional planner config file.

    Args:
        project_dir: Directory holding the planner state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    data, err = _load_yaml_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _parse_bool(raw: Any, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return default
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return default


def _parse_port(raw: Any, default: int) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError):
        return default
    return port if 0 < port < 65536 else default


@dataclass(frozen=True)
class PlannerSettings:
    """Resolved runtime settings for the server and CLI."""

    project_dir: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    api_key: Optional[str] = None
    strict_ordering: bool = True
    config_error: Optional[str] = None

    @property
    def state_dir(self) -> Path:
        return self.project_dir / STATE_DIR_NAME

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_key)


def resolve_settings(
    project_dir: Path,
    env: Optional[Mapping[str, str]] = None,
) -> PlannerSettings:
    """Merge defaults, `config.yaml` and environment into :class:`PlannerSettings`."""
    env = os.environ if env is None else env
    project_dir = project_dir.resolve()
    config, err = load_planner_config(project_dir)

    host = env.get(ENV_HOST) or _get_nested(config, "server", "host") or DEFAULT_HOST
    port = _parse_port(env.get(ENV_PORT) or _get_nested(config, "server", "port"), DEFAULT_PORT)
    log_level = str(env.get(ENV_LOG_LEVEL) or config.get("log_level") or DEFAULT_LOG_LEVEL).upper()
    api_key = env.get(ENV_API_KEY) or config.get("api_key") or None
    strict = _parse_bool(
        env.get(ENV_STRICT_ORDERING, _get_nested(config, "plan", "strict_ordering")),
        True,
    )

    return PlannerSettings(
        project_dir=project_dir,
        host=str(host),
        port=port,
        log_level=log_level,
        api_key=str(api_key) if api_key else None,
        strict_ordering=strict,
        config_error=err,
    )
