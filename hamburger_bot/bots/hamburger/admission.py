"""
Position Admission Gate.

Decides, per crossed level, whether it may become a real position. The gate
never mutates state; it returns the rejection reason and the orchestrator
applies it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Set

from hamburger_bot.core import get_logger

from .models import (
    GridConfig,
    GridSignals,
    GridState,
    PositionSide,
    ReactiveBias,
    RejectReason,
    VirtualLevel,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of one admission check."""

    level_id: str
    admitted: bool
    reason: Optional[RejectReason] = None
    detail: str = ""

    @classmethod
    def accept(cls, level: VirtualLevel) -> "AdmissionResult":
        return cls(level_id=level.id, admitted=True)

    @classmethod
    def reject(cls, level: VirtualLevel, reason: RejectReason, detail: str) -> "AdmissionResult":
        return cls(level_id=level.id, admitted=False, reason=reason, detail=detail)


class AdmissionGate:
    """
    Ordered admission filters.

    Filters run in a fixed order and the first failing one rejects the level:

    1. Volume: spike multiplier must reach min_volume_multiplier (only when > 1)
    2. Trend: reactive bias when reactive mode is on, else predictive trend
       when use_trend_filter is on
    3. Reversal confirmation: not implemented yet, never rejects
    4. Capacity: open positions must stay below max_active_positions
    5. Capital utilization: margin in use plus the new margin must stay
       within total_investment * max_capital_utilization
    """

    def __init__(self, config: GridConfig, bot_id: str = ""):
        self._config = config
        self._bot_id = bot_id
        self._reversal_logged: Set[str] = set()

    def evaluate(
        self,
        level: VirtualLevel,
        state: GridState,
        signals: GridSignals,
        reactive_bias: ReactiveBias = ReactiveBias.NEUTRAL,
        new_margin: Decimal = Decimal("0"),
    ) -> AdmissionResult:
        """
        Check one crossed level against all filters.

        Args:
            level: Crossed virtual level
            state: Current bot state (read-only)
            signals: Signal snapshot of this tick
            reactive_bias: Current reactive bias (used in reactive mode)
            new_margin: Margin the position would commit

        Returns:
            AdmissionResult with the first failing filter, if any
        """
        config = self._config

        # 1. Volume filter
        if config.min_volume_multiplier > Decimal("1.0"):
            spike = signals.volume.spike_multiplier
            if spike < config.min_volume_multiplier:
                return AdmissionResult.reject(
                    level,
                    RejectReason.VOLUME_FILTER,
                    f"volume multiplier {spike} < {config.min_volume_multiplier}",
                )

        # 2. Trend filter
        if config.use_reactive_mode:
            wanted = ReactiveBias.LONG if level.side == PositionSide.LONG else ReactiveBias.SHORT
            if reactive_bias != wanted:
                return AdmissionResult.reject(
                    level,
                    RejectReason.REACTIVE_FILTER,
                    f"reactive bias {reactive_bias.value} does not match {level.side.value}",
                )
        elif config.use_trend_filter:
            is_uptrend = signals.trend.is_uptrend
            if level.side == PositionSide.LONG and not is_uptrend:
                return AdmissionResult.reject(
                    level, RejectReason.TREND_FILTER, "long level requires uptrend"
                )
            if level.side == PositionSide.SHORT and is_uptrend:
                return AdmissionResult.reject(
                    level, RejectReason.TREND_FILTER, "short level requires downtrend"
                )

        # 3. Reversal confirmation
        if config.use_reversal_confirmation and level.id not in self._reversal_logged:
            self._reversal_logged.add(level.id)
            logger.debug(
                f"[{self._bot_id}] Reversal confirmation not implemented, "
                f"admitting {level.id} without it"
            )

        # 4. Capacity
        open_count = len(state.real_positions)
        if open_count >= config.max_active_positions:
            return AdmissionResult.reject(
                level,
                RejectReason.CAPACITY,
                f"max active positions reached ({open_count}/{config.max_active_positions})",
            )

        # 5. Capital utilization
        limit = config.total_investment * config.max_capital_utilization
        committed = state.margin_in_use + new_margin
        if committed > limit:
            return AdmissionResult.reject(
                level,
                RejectReason.CAPITAL_UTILIZATION,
                f"margin {committed} would exceed utilization limit {limit}",
            )

        return AdmissionResult.accept(level)

    def reset(self) -> None:
        self._reversal_logged.clear()
