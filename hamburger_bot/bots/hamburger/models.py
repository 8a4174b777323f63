"""
Hamburger Grid Bot Data Models.

Provides data models for the virtual-grid futures bot: an unbounded ladder of
virtual price levels around a center price, of which only a small,
capital-bounded subset is ever converted into real leveraged positions.
"""

import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from hamburger_bot.core.exceptions import ConfigError


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class PositionSide(str, Enum):
    """Side of a virtual level or real position."""

    LONG = "long"
    SHORT = "short"


class LevelStatus(str, Enum):
    """Virtual level lifecycle status."""

    PENDING = "pending"      # Waiting for price to cross
    FILLED = "filled"        # Backed by a real position
    COOLDOWN = "cooldown"    # Recently closed, not yet eligible again


class GridAction(str, Enum):
    """Risk actions the AI layer may choose."""

    HOLD = "hold"
    CLOSE_ALL = "close_all"
    CUT_LONG = "cut_long"
    CUT_SHORT = "cut_short"
    EMERGENCY_REBALANCE = "emergency_rebalance"


class Aggressiveness(str, Enum):
    """AI aggressiveness, scales the confidence score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def factor(self) -> Decimal:
        return _AGGRESSIVENESS_FACTORS[self]


_AGGRESSIVENESS_FACTORS = {
    Aggressiveness.LOW: Decimal("0.8"),
    Aggressiveness.MEDIUM: Decimal("1.0"),
    Aggressiveness.HIGH: Decimal("1.2"),
}


class ReactiveBias(str, Enum):
    """Bias state of the reactive (price-action) trend filter."""

    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"


class TrendDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class VolatilityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PositionSizing(str, Enum):
    """How position_size is interpreted."""

    PERCENTAGE = "percentage"  # Fraction of active capital
    FIXED = "fixed"            # USD margin per position


class ExitReason(str, Enum):
    """Reason for closing a real position."""

    STOP_LOSS = "stop_loss"
    TRAILING_STOP = "trailing_stop"
    TAKE_PROFIT = "take_profit"
    LIQUIDATION_RISK = "liquidation_risk"
    CUT_LONG = "cut_long"
    CUT_SHORT = "cut_short"
    CLOSE_ALL = "close_all"
    EMERGENCY_REBALANCE = "emergency_rebalance"
    BOT_STOP = "bot_stop"


class RejectReason(str, Enum):
    """Reason a crossed level was not converted into a real position."""

    VOLUME_FILTER = "volume_filter"
    TREND_FILTER = "trend_filter"
    REACTIVE_FILTER = "reactive_filter"
    CAPACITY = "capacity"
    CAPITAL_UTILIZATION = "capital_utilization"
    EXCHANGE_REJECTED = "exchange_rejected"


# =============================================================================
# Leverage Tiers
# =============================================================================


LEVERAGE_LIMITS: Dict[int, tuple] = {
    40: ("BTC", "ETH", "SOL", "XRP"),
    20: ("DOGE", "SUI", "WLD", "LTC", "LINK", "AVAX", "HYPE", "TIA", "APT", "NEAR"),
    10: ("OP", "ARB", "LDO", "TON", "JUP", "SEI", "BNB", "DOT"),
    3: ("USDC", "USDT", "STABLE", "MON", "LIT", "XPL"),
}
DEFAULT_LEVERAGE_LIMIT = 3

_QUOTE_SUFFIXES = ("-PERP", "USDT", "USDC", "USD", "-")


def base_asset(symbol: str) -> str:
    """Strip quote/perp suffixes: "BTCUSDT" -> "BTC", "ETH-PERP" -> "ETH"."""
    asset = symbol.upper()
    for suffix in _QUOTE_SUFFIXES:
        if asset.endswith(suffix) and len(asset) > len(suffix):
            asset = asset[: -len(suffix)]
    return asset


def get_leverage_limit(symbol: str) -> int:
    """Maximum leverage allowed for a symbol's tier."""
    asset = base_asset(symbol)
    for limit, assets in LEVERAGE_LIMITS.items():
        if asset in assets:
            return limit
    return DEFAULT_LEVERAGE_LIMIT


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class GridConfig:
    """
    Hamburger bot configuration.

    Immutable for the life of a bot instance; changing it requires
    stop -> reconfigure -> initialize. Every ``*_pct`` field is a fraction
    (0.01 == 1%).

    Attributes:
        symbol: Trading symbol (e.g. "BTC", "BTCUSDT")
        total_investment: USD capital assigned to the bot
        leverage: Requested leverage, capped by the symbol's tier

        # Grid
        grid_spacing_pct: Geometric spacing between virtual levels
        levels_per_side: Levels generated above and below the center

        # Position limits
        min_positions / max_positions: Position-count bounds
        max_active_positions: Hard cap on concurrently open real positions

        # Sizing
        position_sizing: PERCENTAGE of active capital or FIXED USD
        position_size: Size value (None = 1 / max_positions of active capital)
        active_capital_pct: Share of investment available for trading
        min_position_usd: Minimum margin per position

        # Risk
        stop_loss_pct / take_profit_pct: Fixed-percentage exits
        rebalance_threshold_pct: Tick move that triggers an AI evaluation
        max_capital_utilization: Cap on margin in use / investment
        max_position_bias_pct: Bias that triggers an AI evaluation

        # Filters
        use_trend_filter: Only admit levels on the predictive trend side
        min_volume_multiplier: Minimum volume spike multiplier to admit
        use_reversal_confirmation: Reserved, never rejects

        # Reactive mode
        use_reactive_mode: Use price-action bias instead of predictive trend
        reaction_lookback: Reported only, bias uses single-step deltas
        reaction_threshold_pct: Tick move that flips the reactive bias

        # Exits
        use_trailing_stop / use_dynamic_sltp / sl_atr_multiplier /
        tp_atr_multiplier / use_break_even_stop / break_even_threshold_pct

        # Adaptive grid
        use_adaptive_grid / adaptive_spacing_min / adaptive_spacing_max

        # AI
        ai_confidence_threshold: Minimum confidence (0-100) to execute
        ai_aggressiveness: Confidence scaling

        level_cooldown_seconds: Cooldown before a closed level re-arms
        fee_rate: Taker fee per side

    Example:
        >>> config = GridConfig(
        ...     symbol="BTC",
        ...     total_investment=Decimal("1000"),
        ...     leverage=5,
        ...     grid_spacing_pct=Decimal("0.01"),
        ... )
    """

    symbol: str
    total_investment: Decimal
    leverage: int = 5

    # Grid
    grid_spacing_pct: Decimal = Decimal("0.01")
    levels_per_side: int = 25

    # Position limits
    min_positions: int = 2
    max_positions: int = 4
    max_active_positions: int = 1

    # Sizing
    position_sizing: PositionSizing = PositionSizing.PERCENTAGE
    position_size: Optional[Decimal] = None
    active_capital_pct: Decimal = Decimal("0.5")
    min_position_usd: Decimal = Decimal("10")

    # Risk
    stop_loss_pct: Decimal = Decimal("0.02")
    take_profit_pct: Decimal = Decimal("0.04")
    rebalance_threshold_pct: Decimal = Decimal("0.005")
    max_capital_utilization: Decimal = Decimal("0.95")
    max_position_bias_pct: Decimal = Decimal("0.6")

    # Filters
    use_trend_filter: bool = True
    min_volume_multiplier: Decimal = Decimal("1.0")
    use_reversal_confirmation: bool = False

    # Reactive mode
    use_reactive_mode: bool = False
    reaction_lookback: int = 10
    reaction_threshold_pct: Decimal = Decimal("0.001")

    # Exits
    use_trailing_stop: bool = True
    use_dynamic_sltp: bool = False
    sl_atr_multiplier: Decimal = Decimal("2.0")
    tp_atr_multiplier: Decimal = Decimal("4.0")
    use_break_even_stop: bool = False
    break_even_threshold_pct: Decimal = Decimal("0.5")

    # Adaptive grid
    use_adaptive_grid: bool = False
    adaptive_spacing_min: Decimal = Decimal("0.5")
    adaptive_spacing_max: Decimal = Decimal("2.0")

    # AI
    ai_confidence_threshold: int = 75
    ai_aggressiveness: Aggressiveness = Aggressiveness.MEDIUM

    level_cooldown_seconds: int = 300
    fee_rate: Decimal = Decimal("0.0005")

    def __post_init__(self):
        """Normalize types and validate."""
        decimal_fields = [
            "total_investment", "grid_spacing_pct", "active_capital_pct",
            "min_position_usd", "stop_loss_pct", "take_profit_pct",
            "rebalance_threshold_pct", "max_capital_utilization",
            "max_position_bias_pct", "min_volume_multiplier",
            "reaction_threshold_pct", "sl_atr_multiplier", "tp_atr_multiplier",
            "break_even_threshold_pct", "adaptive_spacing_min",
            "adaptive_spacing_max", "fee_rate",
        ]
        for field_name in decimal_fields:
            object.__setattr__(self, field_name, _to_decimal(getattr(self, field_name)))

        if self.position_size is not None:
            object.__setattr__(self, "position_size", _to_decimal(self.position_size))
        if isinstance(self.position_sizing, str):
            object.__setattr__(self, "position_sizing", PositionSizing(self.position_sizing))
        if isinstance(self.ai_aggressiveness, str):
            object.__setattr__(self, "ai_aggressiveness", Aggressiveness(self.ai_aggressiveness))

        self._validate()

    def _validate(self) -> None:
        if not self.symbol:
            raise ConfigError("symbol is required")

        if self.total_investment <= 0:
            raise ConfigError(f"total_investment must be positive, got {self.total_investment}")

        if self.leverage < 1 or self.leverage > 125:
            raise ConfigError(f"leverage must be 1-125, got {self.leverage}")

        if not (Decimal("0") < self.grid_spacing_pct < Decimal("0.5")):
            raise ConfigError(f"grid_spacing_pct must be in (0, 0.5), got {self.grid_spacing_pct}")

        if self.levels_per_side < 1 or self.levels_per_side > 500:
            raise ConfigError(f"levels_per_side must be 1-500, got {self.levels_per_side}")

        if self.min_positions < 0 or self.min_positions > self.max_positions:
            raise ConfigError(
                f"min_positions must be 0-{self.max_positions}, got {self.min_positions}"
            )

        if self.max_active_positions < 1 or self.max_active_positions > self.max_positions:
            raise ConfigError(
                f"max_active_positions must be 1-{self.max_positions}, "
                f"got {self.max_active_positions}"
            )

        if self.position_size is not None and self.position_size <= 0:
            raise ConfigError(f"position_size must be positive, got {self.position_size}")

        for name in ("active_capital_pct", "max_capital_utilization", "max_position_bias_pct"):
            value = getattr(self, name)
            if not (Decimal("0") < value <= Decimal("1")):
                raise ConfigError(f"{name} must be in (0, 1], got {value}")

        for name in ("stop_loss_pct", "take_profit_pct", "reaction_threshold_pct"):
            value = getattr(self, name)
            if not (Decimal("0") < value < Decimal("1")):
                raise ConfigError(f"{name} must be in (0, 1), got {value}")

        if self.rebalance_threshold_pct < 0:
            raise ConfigError("rebalance_threshold_pct must be non-negative")

        if self.min_volume_multiplier < 0:
            raise ConfigError("min_volume_multiplier must be non-negative")

        if self.reaction_lookback < 1:
            raise ConfigError(f"reaction_lookback must be >= 1, got {self.reaction_lookback}")

        if not (Decimal("0") < self.break_even_threshold_pct <= Decimal("1")):
            raise ConfigError("break_even_threshold_pct must be in (0, 1]")

        if not (Decimal("0") < self.adaptive_spacing_min <= self.adaptive_spacing_max):
            raise ConfigError("adaptive spacing bounds must satisfy 0 < min <= max")

        if not (0 <= self.ai_confidence_threshold <= 100):
            raise ConfigError(
                f"ai_confidence_threshold must be 0-100, got {self.ai_confidence_threshold}"
            )

        if self.level_cooldown_seconds < 0:
            raise ConfigError("level_cooldown_seconds must be non-negative")

        if self.fee_rate < 0 or self.fee_rate >= Decimal("0.1"):
            raise ConfigError(f"fee_rate must be in [0, 0.1), got {self.fee_rate}")

    @property
    def effective_leverage(self) -> int:
        """Leverage after applying the symbol's tier cap."""
        return min(self.leverage, get_leverage_limit(self.symbol))

    @property
    def active_capital(self) -> Decimal:
        return self.total_investment * self.active_capital_pct

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "total_investment": str(self.total_investment),
            "leverage": self.leverage,
            "effective_leverage": self.effective_leverage,
            "grid_spacing_pct": str(self.grid_spacing_pct),
            "levels_per_side": self.levels_per_side,
            "max_positions": self.max_positions,
            "max_active_positions": self.max_active_positions,
            "use_trend_filter": self.use_trend_filter,
            "use_reactive_mode": self.use_reactive_mode,
            "reaction_lookback": self.reaction_lookback,
            "use_trailing_stop": self.use_trailing_stop,
            "use_dynamic_sltp": self.use_dynamic_sltp,
            "ai_confidence_threshold": self.ai_confidence_threshold,
            "ai_aggressiveness": self.ai_aggressiveness.value,
        }


# =============================================================================
# Grid Data
# =============================================================================


@dataclass
class VirtualLevel:
    """A price point of the virtual ladder, with no capital behind it."""

    id: str
    price: Decimal
    side: PositionSide
    distance_from_center: int  # +i for shorts above center, -i for longs below
    status: LevelStatus = LevelStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    last_closed_at: Optional[datetime] = None

    def __post_init__(self):
        self.price = _to_decimal(self.price)

    def mark_cooldown(self, now: datetime) -> None:
        self.status = LevelStatus.COOLDOWN
        self.last_closed_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "price": str(self.price),
            "side": self.side.value,
            "distance_from_center": self.distance_from_center,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "last_closed_at": self.last_closed_at.isoformat() if self.last_closed_at else None,
        }


# =============================================================================
# Position
# =============================================================================


@dataclass
class GridPosition:
    """Real, capital-backed position opened from an admitted level."""

    id: str
    symbol: str
    side: PositionSide
    size: Decimal          # Coin quantity
    size_usd: Decimal      # Margin committed
    entry_price: Decimal
    current_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    leverage: int
    unrealized_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    unrealized_pnl_pct: Decimal = field(default_factory=lambda: Decimal("0"))
    highest_price: Optional[Decimal] = None
    lowest_price: Optional[Decimal] = None
    level_id: Optional[str] = None
    entry_time: datetime = field(default_factory=_utcnow)
    trailing_active: bool = False

    def __post_init__(self):
        for attr in ["size", "size_usd", "entry_price", "current_price",
                     "stop_loss", "take_profit", "unrealized_pnl", "unrealized_pnl_pct"]:
            setattr(self, attr, _to_decimal(getattr(self, attr)))
        if self.highest_price is None:
            self.highest_price = self.entry_price
        if self.lowest_price is None:
            self.lowest_price = self.entry_price

    @property
    def is_long(self) -> bool:
        return self.side == PositionSide.LONG

    def calculate_pnl(self, price: Decimal) -> Decimal:
        """Unrealized PnL in USD at the given price."""
        if self.is_long:
            return (price - self.entry_price) * self.size
        return (self.entry_price - price) * self.size

    def calculate_pnl_pct(self, price: Decimal) -> Decimal:
        """Price move in the position's favour, in percent (unleveraged)."""
        if self.entry_price <= 0:
            return Decimal("0")
        move = (price - self.entry_price) / self.entry_price * Decimal("100")
        return move if self.is_long else -move

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "size": str(self.size),
            "size_usd": str(self.size_usd),
            "entry_price": str(self.entry_price),
            "current_price": str(self.current_price),
            "stop_loss": str(self.stop_loss),
            "take_profit": str(self.take_profit),
            "leverage": self.leverage,
            "unrealized_pnl": str(self.unrealized_pnl),
            "unrealized_pnl_pct": str(self.unrealized_pnl_pct),
            "highest_price": str(self.highest_price),
            "lowest_price": str(self.lowest_price),
            "level_id": self.level_id,
            "entry_time": self.entry_time.isoformat(),
        }


# =============================================================================
# Signals
# =============================================================================


@dataclass(frozen=True)
class TrendSignal:
    """Predictive trend (e.g. Parabolic SAR)."""

    value: Decimal
    is_uptrend: bool

    def __post_init__(self):
        object.__setattr__(self, "value", _to_decimal(self.value))


@dataclass(frozen=True)
class VolatilitySignal:
    """ATR value and ATR as a percentage of price."""

    value: Decimal
    multiplier: Decimal

    def __post_init__(self):
        object.__setattr__(self, "value", _to_decimal(self.value))
        object.__setattr__(self, "multiplier", _to_decimal(self.multiplier))


@dataclass(frozen=True)
class VolumeSignal:
    current: Decimal
    average: Decimal
    spike_multiplier: Decimal
    is_spike: bool

    def __post_init__(self):
        for attr in ["current", "average", "spike_multiplier"]:
            object.__setattr__(self, attr, _to_decimal(getattr(self, attr)))


@dataclass(frozen=True)
class RateOfChangeSignal:
    """Rate of change in percent, with the panic threshold that produced is_panic."""

    value: Decimal
    is_panic: bool
    panic_threshold: Decimal = Decimal("5.0")

    def __post_init__(self):
        object.__setattr__(self, "value", _to_decimal(self.value))
        object.__setattr__(self, "panic_threshold", _to_decimal(self.panic_threshold))


@dataclass(frozen=True)
class GridSignals:
    """Per-tick signal snapshot computed outside the core. Read-only."""

    trend: TrendSignal
    volatility: VolatilitySignal
    volume: VolumeSignal
    roc: RateOfChangeSignal

    def to_dict(self) -> dict:
        return {
            "trend": {"value": str(self.trend.value), "is_uptrend": self.trend.is_uptrend},
            "volatility": {
                "value": str(self.volatility.value),
                "multiplier": str(self.volatility.multiplier),
            },
            "volume": {
                "current": str(self.volume.current),
                "average": str(self.volume.average),
                "spike_multiplier": str(self.volume.spike_multiplier),
                "is_spike": self.volume.is_spike,
            },
            "roc": {
                "value": str(self.roc.value),
                "panic_threshold": str(self.roc.panic_threshold),
                "is_panic": self.roc.is_panic,
            },
        }


# =============================================================================
# AI Decision
# =============================================================================


@dataclass(frozen=True)
class AIDecision:
    """One evaluation of the AI layer. Never mutated."""

    action: GridAction
    confidence: int
    reasoning: str
    signals: GridSignals
    expected_outcome: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "expected_outcome": self.expected_outcome,
            "timestamp": self.timestamp.isoformat(),
            "signals": self.signals.to_dict(),
        }


# =============================================================================
# Trade Record / Performance
# =============================================================================


@dataclass
class ClosedTrade:
    """Completed real position."""

    position_id: str
    level_id: Optional[str]
    side: PositionSide
    entry_price: Decimal
    exit_price: Decimal
    size: Decimal
    size_usd: Decimal
    leverage: int
    pnl: Decimal
    fee: Decimal
    entry_time: datetime
    exit_time: datetime
    exit_reason: ExitReason

    @property
    def net_pnl(self) -> Decimal:
        return self.pnl - self.fee

    @property
    def return_pct(self) -> Decimal:
        """Net PnL as a percentage of committed margin."""
        if self.size_usd <= 0:
            return Decimal("0")
        return self.net_pnl / self.size_usd * Decimal("100")

    @property
    def hold_seconds(self) -> Decimal:
        return _to_decimal((self.exit_time - self.entry_time).total_seconds())

    def to_dict(self) -> dict:
        return {
            "position_id": self.position_id,
            "level_id": self.level_id,
            "side": self.side.value,
            "entry_price": str(self.entry_price),
            "exit_price": str(self.exit_price),
            "size": str(self.size),
            "pnl": str(self.pnl),
            "fee": str(self.fee),
            "net_pnl": str(self.net_pnl),
            "exit_reason": self.exit_reason.value,
            "exit_time": self.exit_time.isoformat(),
        }


@dataclass
class GridPerformance:
    """Performance counters, updated on every confirmed close."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: Decimal = field(default_factory=lambda: Decimal("0"))
    total_pnl: Decimal = field(default_factory=lambda: Decimal("0"))
    total_fees: Decimal = field(default_factory=lambda: Decimal("0"))
    capital_efficiency: Decimal = field(default_factory=lambda: Decimal("0"))
    max_drawdown: Decimal = field(default_factory=lambda: Decimal("0"))
    sharpe_ratio: Decimal = field(default_factory=lambda: Decimal("0"))
    avg_hold_time: Decimal = field(default_factory=lambda: Decimal("0"))
    long_trades: int = 0
    short_trades: int = 0

    # Internal tracking
    _peak_equity: Decimal = field(default_factory=lambda: Decimal("0"), repr=False)
    _total_hold_seconds: Decimal = field(default_factory=lambda: Decimal("0"), repr=False)
    _returns: List[float] = field(default_factory=list, repr=False)

    def record_trade(self, trade: ClosedTrade) -> None:
        """Record a completed trade."""
        self.total_trades += 1
        self.total_pnl += trade.net_pnl
        self.total_fees += trade.fee

        if trade.side == PositionSide.LONG:
            self.long_trades += 1
        else:
            self.short_trades += 1

        if trade.net_pnl > 0:
            self.winning_trades += 1
        else:
            self.losing_trades += 1

        self.win_rate = (
            Decimal(self.winning_trades) / Decimal(self.total_trades) * Decimal("100")
        )

        self._total_hold_seconds += trade.hold_seconds
        self.avg_hold_time = self._total_hold_seconds / Decimal(self.total_trades)

        self._returns.append(float(trade.return_pct))
        self.sharpe_ratio = self._calculate_sharpe()

    def _calculate_sharpe(self) -> Decimal:
        if len(self._returns) < 2:
            return Decimal("0")
        stdev = statistics.stdev(self._returns)
        if stdev == 0:
            return Decimal("0")
        sharpe = statistics.mean(self._returns) / stdev * (len(self._returns) ** 0.5)
        return Decimal(str(round(sharpe, 4)))

    def update_equity(
        self,
        equity: Decimal,
        margin_in_use: Decimal,
        total_investment: Decimal,
    ) -> None:
        """Update drawdown and capital efficiency tracking."""
        if equity > self._peak_equity:
            self._peak_equity = equity

        if self._peak_equity > 0:
            drawdown = (self._peak_equity - equity) / self._peak_equity * Decimal("100")
            if drawdown > self.max_drawdown:
                self.max_drawdown = drawdown

        if total_investment > 0:
            self.capital_efficiency = margin_in_use / total_investment * Decimal("100")

    def to_dict(self) -> dict:
        return {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": f"{self.win_rate:.1f}",
            "total_pnl": str(self.total_pnl),
            "total_fees": str(self.total_fees),
            "capital_efficiency": f"{self.capital_efficiency:.1f}",
            "max_drawdown": f"{self.max_drawdown:.2f}",
            "sharpe_ratio": str(self.sharpe_ratio),
            "avg_hold_time": f"{self.avg_hold_time:.0f}",
            "positions": {"long": self.long_trades, "short": self.short_trades},
        }


# =============================================================================
# Aggregate State
# =============================================================================


@dataclass
class GridState:
    """
    Aggregate bot state. The orchestrator is the only writer; every other
    component receives it read-only and returns proposed changes.
    """

    config: GridConfig
    real_positions: List[GridPosition] = field(default_factory=list)
    virtual_levels: List[VirtualLevel] = field(default_factory=list)
    current_price: Decimal = field(default_factory=lambda: Decimal("0"))
    last_rebalance: Optional[datetime] = None
    performance: GridPerformance = field(default_factory=GridPerformance)
    is_running: bool = False
    is_stale: bool = False
    last_error: Optional[str] = None

    def find_level(self, level_id: Optional[str]) -> Optional[VirtualLevel]:
        if level_id is None:
            return None
        for level in self.virtual_levels:
            if level.id == level_id:
                return level
        return None

    def positions_by_side(self, side: PositionSide) -> List[GridPosition]:
        return [p for p in self.real_positions if p.side == side]

    @property
    def margin_in_use(self) -> Decimal:
        return sum((p.size_usd for p in self.real_positions), Decimal("0"))

    @property
    def unrealized_pnl(self) -> Decimal:
        return sum((p.unrealized_pnl for p in self.real_positions), Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "real_positions": [p.to_dict() for p in self.real_positions],
            "virtual_levels": [level.to_dict() for level in self.virtual_levels],
            "current_price": str(self.current_price),
            "last_rebalance": self.last_rebalance.isoformat() if self.last_rebalance else None,
            "performance": self.performance.to_dict(),
            "is_running": self.is_running,
            "is_stale": self.is_stale,
            "last_error": self.last_error,
        }


# =============================================================================
# Tick Result
# =============================================================================


@dataclass
class TickResult:
    """Outcome of one on_price_update call."""

    processed: bool
    price: Optional[Decimal] = None
    skip_reason: Optional[str] = None
    crossed_level_ids: List[str] = field(default_factory=list)
    opened_position_ids: List[str] = field(default_factory=list)
    rejected_levels: Dict[str, RejectReason] = field(default_factory=dict)
    decision: Optional[AIDecision] = None
    decision_executed: bool = False
    closed_position_ids: List[str] = field(default_factory=list)

    @classmethod
    def skipped(cls, reason: str, price: Optional[Decimal] = None) -> "TickResult":
        return cls(processed=False, price=price, skip_reason=reason)
