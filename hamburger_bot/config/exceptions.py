"""
Configuration Exceptions.

Errors raised while reading a bots file. All are ConfigError, so callers can
catch load failures and GridConfig validation failures together.
"""

from hamburger_bot.core.exceptions import ConfigError


class ConfigFileNotFoundError(ConfigError):
    """Bots file or overlay path does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Bots file not found: {path}", code="CONFIG_NOT_FOUND")


class ConfigParseError(ConfigError):
    """YAML syntax error, or a document whose top level is not a mapping."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Cannot parse bots file {path}",
            code="CONFIG_PARSE",
            details={"reason": reason},
        )


class ConfigValidationError(ConfigError):
    """Schema validation failed; ``errors`` holds one "field.path: message" per problem."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        lines = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"Invalid bots file ({len(errors)} errors):\n{lines}", code="CONFIG_INVALID")
