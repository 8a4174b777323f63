"""
Grid AI Engine.

Risk layer of the hamburger bot. Entries are handled by grid crossings and
the admission gate; the engine only decides whether to prune exposure.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional

from hamburger_bot.core import get_logger

from .models import (
    AIDecision,
    GridAction,
    GridConfig,
    GridSignals,
    GridState,
    PositionSide,
    TrendDirection,
    VirtualLevel,
    VolatilityLevel,
)
from .position_manager import max_position_distance, position_bias

logger = get_logger(__name__)


# Decision thresholds
EMERGENCY_BIAS_PCT = Decimal("50")
CUT_BIAS_PCT = Decimal("30")
CUT_VOLATILITY_MULTIPLIER = Decimal("0.1")
OUTER_DISTANCE_SPACINGS = Decimal("3")

# Confidence scoring
BASE_CONFIDENCE = Decimal("50")
PANIC_BONUS = Decimal("30")
SPIKE_BONUS = Decimal("20")
STRENGTH_SCALE = Decimal("20")
TREND_ALIGNMENT_BONUS = Decimal("15")

EXPECTED_OUTCOMES = {
    GridAction.CUT_LONG: "Closing underperforming long positions to protect capital during downtrend",
    GridAction.CUT_SHORT: "Closing underperforming short positions to protect capital during uptrend",
    GridAction.EMERGENCY_REBALANCE: "Extreme panic detected, aggressively rebalancing to neutral state",
    GridAction.CLOSE_ALL: "Panic detected, exiting all positions",
    GridAction.HOLD: "Market conditions within grid parameters, monitoring execution",
}


def volatility_level(multiplier: Decimal) -> VolatilityLevel:
    """Bucket an ATR-percent multiplier."""
    if multiplier < Decimal("1"):
        return VolatilityLevel.LOW
    if multiplier < Decimal("2.5"):
        return VolatilityLevel.MEDIUM
    return VolatilityLevel.HIGH


def signal_strength(signals: GridSignals) -> Decimal:
    """Composite 0-1: trend presence 0.25, volume spike 0.30, panic 0.45."""
    # A trend reading is always present (up or down)
    strength = Decimal("0.25")
    if signals.volume.is_spike:
        strength += Decimal("0.30")
    if signals.roc.is_panic:
        strength += Decimal("0.45")
    return min(strength, Decimal("1"))


@dataclass(frozen=True)
class DecisionContext:
    """Everything one evaluation looks at."""

    signals: GridSignals
    crossed_count: int
    position_count: int
    has_long: bool
    has_short: bool
    position_bias: Decimal          # percent
    max_position_distance: Decimal  # percent
    spacing_pct: Decimal            # percent
    trend_direction: TrendDirection
    volatility_level: VolatilityLevel
    is_panic_condition: bool


class GridAIEngine:
    """
    Ordered decision hierarchy, first matching rule wins.

    1. Panic: ROC panic -> EMERGENCY_REBALANCE when bias > 50%, else CLOSE_ALL
    2. Trend mismatch: downtrend with longs open -> CUT_LONG, uptrend with
       shorts open -> CUT_SHORT, when volatility multiplier > 0.1 or
       bias > 30%
    3. HOLD

    The engine is pure: it reads the state and returns a decision, and the
    orchestrator decides whether to execute it.
    """

    def __init__(
        self,
        config: GridConfig,
        bot_id: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._config = config
        self._bot_id = bot_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def make_decision(
        self,
        state: GridState,
        signals: GridSignals,
        crossed_levels: List[VirtualLevel],
        spacing: Optional[Decimal] = None,
    ) -> AIDecision:
        """
        Evaluate the current state.

        Args:
            state: Bot state (read-only)
            signals: Signal snapshot of this tick
            crossed_levels: Levels crossed this tick
            spacing: Spacing fraction of the live ladder (defaults to config)

        Returns:
            Fresh AIDecision
        """
        context = self.build_context(state, signals, crossed_levels, spacing)
        action = self.select_action(context)
        decision = AIDecision(
            action=action,
            confidence=self.calculate_confidence(action, context),
            reasoning=self.generate_reasoning(context),
            signals=signals,
            expected_outcome=EXPECTED_OUTCOMES[action],
            timestamp=self._clock(),
        )

        logger.info(
            f"[{self._bot_id}] AI decision: {decision.action.value} "
            f"({decision.confidence}% confidence) - {decision.reasoning}"
        )
        return decision

    def build_context(
        self,
        state: GridState,
        signals: GridSignals,
        crossed_levels: List[VirtualLevel],
        spacing: Optional[Decimal] = None,
    ) -> DecisionContext:
        positions = state.real_positions
        spacing = spacing if spacing is not None else self._config.grid_spacing_pct
        return DecisionContext(
            signals=signals,
            crossed_count=len(crossed_levels),
            position_count=len(positions),
            has_long=any(p.side == PositionSide.LONG for p in positions),
            has_short=any(p.side == PositionSide.SHORT for p in positions),
            position_bias=position_bias(positions),
            max_position_distance=max_position_distance(positions, state.current_price),
            spacing_pct=spacing * Decimal("100"),
            trend_direction=(
                TrendDirection.BULLISH if signals.trend.is_uptrend else TrendDirection.BEARISH
            ),
            volatility_level=volatility_level(signals.volatility.multiplier),
            # Either a ROC panic or a volume spike counts as a panic condition
            is_panic_condition=signals.roc.is_panic or signals.volume.is_spike,
        )

    # =========================================================================
    # Decision Hierarchy
    # =========================================================================

    @staticmethod
    def select_action(context: DecisionContext) -> GridAction:
        signals = context.signals

        # 1. ROC panic -> emergency protocol
        if signals.roc.is_panic:
            if context.is_panic_condition and context.position_bias > EMERGENCY_BIAS_PCT:
                return GridAction.EMERGENCY_REBALANCE
            return GridAction.CLOSE_ALL

        # 2. Trend mismatch -> cut the wrong side
        stressed = (
            signals.volatility.multiplier > CUT_VOLATILITY_MULTIPLIER
            or context.position_bias > CUT_BIAS_PCT
        )
        if not signals.trend.is_uptrend and context.has_long and stressed:
            return GridAction.CUT_LONG
        if signals.trend.is_uptrend and context.has_short and stressed:
            return GridAction.CUT_SHORT

        # 3. Grid crossings handle entries
        return GridAction.HOLD

    # =========================================================================
    # Confidence / Reasoning
    # =========================================================================

    def calculate_confidence(self, action: GridAction, context: DecisionContext) -> int:
        """
        Confidence score 0-100.

        Base 50, +30 panic condition, +20 volume spike, up to +20 signal
        strength, +15 when a cut agrees with the trend, then scaled by
        aggressiveness, rounded and clamped.
        """
        confidence = BASE_CONFIDENCE

        if context.is_panic_condition:
            confidence += PANIC_BONUS

        if context.signals.volume.is_spike:
            confidence += SPIKE_BONUS

        confidence += signal_strength(context.signals) * STRENGTH_SCALE

        if (
            (action == GridAction.CUT_LONG and context.trend_direction == TrendDirection.BEARISH)
            or (action == GridAction.CUT_SHORT and context.trend_direction == TrendDirection.BULLISH)
        ):
            confidence += TREND_ALIGNMENT_BONUS

        confidence *= self._config.ai_aggressiveness.factor
        rounded = int(confidence.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return max(0, min(rounded, 100))

    @staticmethod
    def generate_reasoning(context: DecisionContext) -> str:
        signals = context.signals
        reasons = []

        if signals.roc.is_panic:
            reasons.append(f"Panic condition detected (ROC: {signals.roc.value:.2f}%)")

        if signals.volume.is_spike:
            reasons.append(
                f"Volume spike detected ({signals.volume.spike_multiplier:.1f}x average)"
            )

        if signals.trend.is_uptrend:
            reasons.append("Parabolic SAR indicates uptrend")
        else:
            reasons.append("Parabolic SAR indicates downtrend")

        if context.max_position_distance > context.spacing_pct * OUTER_DISTANCE_SPACINGS:
            reasons.append(
                f"Outer positions too far from price ({context.max_position_distance:.2f}%)"
            )

        if context.crossed_count > 0:
            reasons.append(f"{context.crossed_count} virtual levels crossed")

        if context.volatility_level == VolatilityLevel.HIGH:
            reasons.append("High volatility detected")

        return "; ".join(reasons)
