"""
Configuration Models.

Pydantic models for the bots configuration file. Each bot entry converts to
the immutable GridConfig the bot runs with.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hamburger_bot.bots.hamburger.models import Aggressiveness, GridConfig, PositionSizing
from hamburger_bot.core.exceptions import ConfigError


class BaseConfig(BaseModel):
    """Base configuration model: immutable, unknown keys ignored."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )


class FeedSettings(BaseConfig):
    """Polling feed settings."""

    interval_seconds: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="Seconds between market data polls",
    )
    candle_limit: int = Field(
        default=100,
        ge=10,
        le=1000,
        description="Candles fetched per poll for signal computation",
    )


class BotSettings(BaseConfig):
    """
    One hamburger bot entry.

    Example:
        >>> settings = BotSettings(
        ...     bot_id="btc-grid",
        ...     symbol="BTC",
        ...     total_investment=Decimal("1000"),
        ...     leverage=5,
        ... )
        >>> config = settings.to_grid_config()
    """

    bot_id: str = Field(min_length=1, description="Unique bot identifier")
    enabled: bool = Field(default=True, description="Skip the bot when false")
    symbol: str = Field(min_length=1)
    total_investment: Decimal = Field(gt=Decimal("0"), description="USD capital")
    leverage: int = Field(default=5, ge=1, le=125)

    # Grid
    grid_spacing_pct: Decimal = Field(default=Decimal("0.01"), gt=Decimal("0"), lt=Decimal("0.5"))
    levels_per_side: int = Field(default=25, ge=1, le=500)

    # Position limits
    min_positions: int = Field(default=2, ge=0)
    max_positions: int = Field(default=4, ge=1)
    max_active_positions: int = Field(default=1, ge=1)

    # Sizing
    position_sizing: PositionSizing = PositionSizing.PERCENTAGE
    position_size: Optional[Decimal] = Field(default=None, gt=Decimal("0"))
    active_capital_pct: Decimal = Field(default=Decimal("0.5"), gt=Decimal("0"), le=Decimal("1"))
    min_position_usd: Decimal = Field(default=Decimal("10"), ge=Decimal("0"))

    # Risk
    stop_loss_pct: Decimal = Field(default=Decimal("0.02"), gt=Decimal("0"), lt=Decimal("1"))
    take_profit_pct: Decimal = Field(default=Decimal("0.04"), gt=Decimal("0"), lt=Decimal("1"))
    rebalance_threshold_pct: Decimal = Field(default=Decimal("0.005"), ge=Decimal("0"))
    max_capital_utilization: Decimal = Field(
        default=Decimal("0.95"), gt=Decimal("0"), le=Decimal("1")
    )
    max_position_bias_pct: Decimal = Field(
        default=Decimal("0.6"), gt=Decimal("0"), le=Decimal("1")
    )

    # Filters
    use_trend_filter: bool = True
    min_volume_multiplier: Decimal = Field(default=Decimal("1.0"), ge=Decimal("0"))
    use_reversal_confirmation: bool = False

    # Reactive mode
    use_reactive_mode: bool = False
    reaction_lookback: int = Field(default=10, ge=1)
    reaction_threshold_pct: Decimal = Field(
        default=Decimal("0.001"), gt=Decimal("0"), lt=Decimal("1")
    )

    # Exits
    use_trailing_stop: bool = True
    use_dynamic_sltp: bool = False
    sl_atr_multiplier: Decimal = Field(default=Decimal("2.0"), gt=Decimal("0"))
    tp_atr_multiplier: Decimal = Field(default=Decimal("4.0"), gt=Decimal("0"))
    use_break_even_stop: bool = False
    break_even_threshold_pct: Decimal = Field(
        default=Decimal("0.5"), gt=Decimal("0"), le=Decimal("1")
    )

    # Adaptive grid
    use_adaptive_grid: bool = False
    adaptive_spacing_min: Decimal = Field(default=Decimal("0.5"), gt=Decimal("0"))
    adaptive_spacing_max: Decimal = Field(default=Decimal("2.0"), gt=Decimal("0"))

    # AI
    ai_confidence_threshold: int = Field(default=75, ge=0, le=100)
    ai_aggressiveness: Aggressiveness = Aggressiveness.MEDIUM

    level_cooldown_seconds: int = Field(default=300, ge=0)
    fee_rate: Decimal = Field(default=Decimal("0.0005"), ge=Decimal("0"), lt=Decimal("0.1"))

    @field_validator(
        "total_investment", "grid_spacing_pct", "position_size", "active_capital_pct",
        "min_position_usd", "stop_loss_pct", "take_profit_pct", "rebalance_threshold_pct",
        "max_capital_utilization", "max_position_bias_pct", "min_volume_multiplier",
        "reaction_threshold_pct", "sl_atr_multiplier", "tp_atr_multiplier",
        "break_even_threshold_pct", "adaptive_spacing_min", "adaptive_spacing_max",
        "fee_rate",
        mode="before",
    )
    @classmethod
    def coerce_to_decimal(cls, v):
        """Coerce numeric values to Decimal with validation."""
        if v is None:
            return v
        if isinstance(v, (int, float, str)):
            try:
                decimal_val = Decimal(str(v))
            except Exception as e:
                raise ValueError(f"Cannot convert '{v}' to Decimal: {e}")
            # Reject NaN and Infinity
            if not decimal_val.is_finite():
                raise ValueError(f"Invalid value: {v} (NaN or Infinity not allowed)")
            return decimal_val
        return v

    @model_validator(mode="after")
    def validate_grid_config(self) -> "BotSettings":
        """Run the GridConfig cross-field checks at load time."""
        try:
            self.to_grid_config()
        except ConfigError as e:
            raise ValueError(e.message) from e
        return self

    def to_grid_config(self) -> GridConfig:
        """
        Build the bot's GridConfig.

        Raises:
            ConfigError: If cross-field validation fails
        """
        data = self.model_dump(exclude={"bot_id", "enabled"})
        return GridConfig(**data)


class BotsFileConfig(BaseConfig):
    """
    Root of a bots configuration file.

    Example YAML:
        log_level: INFO
        feed:
          interval_seconds: 5
        bots:
          - bot_id: btc-grid
            symbol: BTC
            total_investment: 1000
    """

    log_level: str = Field(default="INFO", description="Logging level")
    feed: FeedSettings = Field(default_factory=FeedSettings)
    bots: list[BotSettings] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "BotsFileConfig":
        ids = [bot.bot_id for bot in self.bots]
        duplicates = sorted({bot_id for bot_id in ids if ids.count(bot_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate bot_id: {', '.join(duplicates)}")
        return self

    @property
    def enabled_bots(self) -> list[BotSettings]:
        return [bot for bot in self.bots if bot.enabled]

    def get_bot(self, bot_id: str) -> Optional[BotSettings]:
        for bot in self.bots:
            if bot.bot_id == bot_id:
                return bot
        return None
