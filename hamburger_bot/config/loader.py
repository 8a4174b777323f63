"""
Configuration Loader.

Reads a bots file (YAML), layers an optional environment overlay on top,
expands ``${VAR}`` / ``${VAR:default}`` references and validates the result
into a BotsFileConfig.
"""

import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from hamburger_bot.bots.hamburger.models import GridConfig
from hamburger_bot.core.logger import set_log_level

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .models import BotsFileConfig

# ${VAR} or ${VAR:default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

_TRUE_WORDS = ("true", "yes", "on")
_FALSE_WORDS = ("false", "no", "off")


class ConfigLoader:
    """
    Bots file loader.

    An overlay ``<stem>.<env><suffix>`` next to the base file is merged on
    top when ``env`` is given. Mappings merge recursively; entries of the
    ``bots`` list are matched on ``bot_id`` so an overlay can tune one bot
    without repeating the others.

    Example:
        >>> loader = ConfigLoader()
        >>> config = loader.load("config/hamburger.yaml", env="production")
        >>> grid_config = config.get_bot("btc-grid").to_grid_config()
    """

    def __init__(self, env_file: Optional[str | Path] = None):
        """
        Args:
            env_file: Explicit .env file; otherwise .env is looked up next
                      to the config file, one directory up, then in the cwd.
        """
        self._env_file = Path(env_file) if env_file else None
        self._env_loaded = False

    def load(self, path: str | Path, env: Optional[str] = None) -> BotsFileConfig:
        """
        Load and validate a bots file.

        Raises:
            ConfigFileNotFoundError: Base file missing
            ConfigParseError: Invalid YAML or a non-mapping document
            ConfigValidationError: Schema or cross-field validation failed
        """
        path = Path(path)
        self._load_env_file(path.parent)

        raw = self.load_yaml(path)
        if env:
            overlay_path = path.with_name(f"{path.stem}.{env}{path.suffix}")
            if overlay_path.exists():
                raw = self.merge_configs(raw, self.load_yaml(overlay_path))

        try:
            return BotsFileConfig(**self.substitute_env_vars(raw))
        except ValidationError as e:
            raise ConfigValidationError(
                [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
            ) from e

    def load_yaml(self, path: str | Path) -> dict[str, Any]:
        """Parse one YAML document; an empty file is an empty mapping."""
        path = Path(path)
        if not path.exists():
            raise ConfigFileNotFoundError(str(path))

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigParseError(str(path), str(e)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigParseError(str(path), "top level must be a mapping")
        return data

    def merge_configs(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """
        Overlay ``override`` on ``base`` without mutating either.

        Example:
            >>> loader.merge_configs(
            ...     {"bots": [{"bot_id": "a", "leverage": 5}]},
            ...     {"bots": [{"bot_id": "a", "leverage": 3}, {"bot_id": "b"}]},
            ... )
            {'bots': [{'bot_id': 'a', 'leverage': 3}, {'bot_id': 'b'}]}
        """
        merged = deepcopy(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(current, value)
            elif key == "bots" and isinstance(current, list) and isinstance(value, list):
                merged[key] = self._merge_bots(current, value)
            else:
                merged[key] = deepcopy(value)
        return merged

    def _merge_bots(self, base: list, override: list) -> list:
        by_id = {
            entry["bot_id"]: index
            for index, entry in enumerate(base)
            if isinstance(entry, dict) and "bot_id" in entry
        }
        merged = deepcopy(base)
        for entry in override:
            index = by_id.get(entry.get("bot_id")) if isinstance(entry, dict) else None
            if index is None:
                merged.append(deepcopy(entry))
            else:
                merged[index] = self.merge_configs(merged[index], entry)
        return merged

    def substitute_env_vars(self, data: Any) -> Any:
        """Expand ${VAR} / ${VAR:default} in every string of a parsed document."""
        if isinstance(data, dict):
            return {key: self.substitute_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self.substitute_env_vars(item) for item in data]
        if isinstance(data, str):
            return self._substitute_string(data)
        return data

    def _substitute_string(self, value: str) -> Any:
        whole = ENV_VAR_PATTERN.fullmatch(value)
        if whole:
            name, default = whole.groups()
            resolved = os.environ.get(name, default)
            # Unset without default: leave the reference for validation to report
            return value if resolved is None else self._convert_value(resolved)

        def expand(match: re.Match) -> str:
            name, default = match.groups()
            fallback = default if default is not None else match.group(0)
            return os.environ.get(name, fallback)

        return ENV_VAR_PATTERN.sub(expand, value)

    def _convert_value(self, value: str) -> Any:
        """
        Type a substituted value: booleans and integers are converted,
        other numbers stay strings so Decimal fields keep their exact digits.
        """
        lowered = value.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        if re.fullmatch(r"[+-]?\d+", value.strip()):
            return int(value)
        return value

    def _load_env_file(self, config_dir: Path) -> None:
        if self._env_loaded:
            return

        candidates = [config_dir / ".env", config_dir.parent / ".env", Path.cwd() / ".env"]
        if self._env_file is not None:
            candidates.insert(0, self._env_file)

        for candidate in candidates:
            if candidate.exists():
                load_dotenv(candidate)
                self._env_loaded = True
                return


def load_config(
    path: str | Path,
    env: Optional[str] = None,
    env_file: Optional[str | Path] = None,
    apply_log_level: bool = False,
) -> BotsFileConfig:
    """
    Load a bots file.

    Args:
        path: Base YAML file
        env: Overlay name (loads <stem>.<env>.yaml when present)
        env_file: Explicit .env file
        apply_log_level: Set the file's log_level on every package logger
    """
    config = ConfigLoader(env_file=env_file).load(path, env=env)
    if apply_log_level:
        set_log_level(config.log_level)
    return config


def load_grid_configs(
    path: str | Path,
    env: Optional[str] = None,
    env_file: Optional[str | Path] = None,
) -> dict[str, GridConfig]:
    """GridConfig per enabled bot, keyed by bot_id, in file order."""
    config = load_config(path, env=env, env_file=env_file)
    return {bot.bot_id: bot.to_grid_config() for bot in config.enabled_bots}
