"""
Virtual Grid.

Generates and tracks the unbounded ladder of virtual levels. Virtual levels
carry no capital; they only detect when price reaches a grid point.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from hamburger_bot.core import get_logger

from .models import GridConfig, LevelStatus, PositionSide, VirtualLevel

logger = get_logger(__name__)

# Price within this many spacings of the outermost level extends the ladder
EXTENSION_TRIGGER_SPACINGS = 2
NEAREST_LEVELS_COUNT = 5


def level_id(side: PositionSide, distance: int) -> str:
    """Stable id for the level owning (side, |distance|)."""
    return f"virtual_{side.value}_{abs(distance)}"


class VirtualGrid:
    """
    Virtual level generator and crossing tracker.

    Levels above the center are short levels at ``C * (1 + s) ** i``, levels
    below are long levels at ``C * (1 - s) ** i``. Every ladder this class
    returns is sorted by price, descending.

    Example:
        >>> grid = VirtualGrid(config)
        >>> levels = grid.generate_grid(Decimal("50000"))
        >>> crossed = grid.check_crossings(levels, Decimal("50600"))
    """

    def __init__(
        self,
        config: GridConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._spacing: Decimal = config.grid_spacing_pct
        self._center: Optional[Decimal] = None

    @property
    def spacing(self) -> Decimal:
        """Spacing fraction used by the current ladder."""
        return self._spacing

    @property
    def center(self) -> Optional[Decimal]:
        return self._center

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_grid(
        self,
        center_price: Decimal,
        spacing: Optional[Decimal] = None,
    ) -> List[VirtualLevel]:
        """
        Build a fresh ladder around center_price.

        Regeneration fully replaces any previous ladder; open positions are
        not migrated, callers close them first.

        Args:
            center_price: Grid center
            spacing: Spacing fraction override (adaptive grid)

        Returns:
            2 * levels_per_side levels sorted descending by price
        """
        center_price = Decimal(str(center_price))
        if center_price <= 0:
            raise ValueError(f"center_price must be positive, got {center_price}")

        self._center = center_price
        self._spacing = spacing if spacing is not None else self._config.grid_spacing_pct

        now = self._clock()
        levels: List[VirtualLevel] = []
        for i in range(1, self._config.levels_per_side + 1):
            levels.append(self._make_level(PositionSide.SHORT, i, now))
            levels.append(self._make_level(PositionSide.LONG, -i, now))

        levels.sort(key=lambda level: level.price, reverse=True)

        logger.debug(
            f"Generated {len(levels)} virtual levels around {center_price} "
            f"(spacing {self._spacing * 100}%)"
        )
        return levels

    def _make_level(self, side: PositionSide, distance: int, now: datetime) -> VirtualLevel:
        if side == PositionSide.SHORT:
            price = self._center * (Decimal("1") + self._spacing) ** abs(distance)
        else:
            price = self._center * (Decimal("1") - self._spacing) ** abs(distance)
        return VirtualLevel(
            id=level_id(side, distance),
            price=price,
            side=side,
            distance_from_center=distance,
            status=LevelStatus.PENDING,
            created_at=now,
        )

    def adaptive_spacing(self, volatility_multiplier: Decimal) -> Decimal:
        """
        Spacing scaled by volatility, clamped to the configured bounds.

        Returns the base spacing unchanged when the adaptive grid is disabled.
        """
        base = self._config.grid_spacing_pct
        if not self._config.use_adaptive_grid:
            return base
        factor = max(
            self._config.adaptive_spacing_min,
            min(self._config.adaptive_spacing_max, Decimal(str(volatility_multiplier))),
        )
        return base * factor

    def extend_grid(
        self,
        levels: List[VirtualLevel],
        current_price: Decimal,
    ) -> List[VirtualLevel]:
        """
        Append levels when price nears either end of the ladder.

        New levels continue the outermost distance on that side, so the
        (side, distance) ownership stays unique.

        Returns:
            New ladder (sorted descending), or the input list if no
            extension was needed
        """
        if not levels or self._center is None:
            return levels

        shorts = [level for level in levels if level.side == PositionSide.SHORT]
        longs = [level for level in levels if level.side == PositionSide.LONG]
        added: List[VirtualLevel] = []
        now = self._clock()
        trigger = (Decimal("1") + self._spacing) ** EXTENSION_TRIGGER_SPACINGS

        if shorts:
            top = max(shorts, key=lambda level: level.price)
            if current_price * trigger >= top.price:
                start = abs(top.distance_from_center) + 1
                for i in range(start, start + self._config.levels_per_side):
                    added.append(self._make_level(PositionSide.SHORT, i, now))

        if longs:
            bottom = min(longs, key=lambda level: level.price)
            if current_price <= bottom.price * trigger:
                start = abs(bottom.distance_from_center) + 1
                for i in range(start, start + self._config.levels_per_side):
                    added.append(self._make_level(PositionSide.LONG, -i, now))

        if not added:
            return levels

        logger.debug(f"Extended virtual grid by {len(added)} levels at price {current_price}")
        extended = levels + added
        extended.sort(key=lambda level: level.price, reverse=True)
        return extended

    # =========================================================================
    # Crossing Detection
    # =========================================================================

    def release_cooldowns(self, levels: List[VirtualLevel]) -> List[VirtualLevel]:
        """
        Return levels whose cooldown window has elapsed to pending.

        Returns:
            Levels released this call
        """
        now = self._clock()
        window = timedelta(seconds=self._config.level_cooldown_seconds)
        released = []
        for level in levels:
            if level.status != LevelStatus.COOLDOWN:
                continue
            if level.last_closed_at is None or now - level.last_closed_at >= window:
                level.status = LevelStatus.PENDING
                released.append(level)
        return released

    def check_crossings(
        self,
        levels: List[VirtualLevel],
        current_price: Decimal,
    ) -> List[VirtualLevel]:
        """
        Find pending levels that price has reached.

        A short level is crossed once price is at or above it, a long level
        once price is at or below it. Does not change level status.

        Returns:
            Crossed levels, nearest to the center first
        """
        crossed = [
            level for level in levels
            if level.status == LevelStatus.PENDING and (
                (level.side == PositionSide.SHORT and current_price >= level.price)
                or (level.side == PositionSide.LONG and current_price <= level.price)
            )
        ]
        crossed.sort(key=lambda level: abs(level.distance_from_center))

        if crossed:
            logger.debug(f"Price {current_price} crossed {len(crossed)} virtual levels")
        return crossed

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def get_nearest_levels(
        levels: List[VirtualLevel],
        current_price: Decimal,
        count: int = NEAREST_LEVELS_COUNT,
    ) -> Dict[str, List[VirtualLevel]]:
        """Nearest pending levels above and below price, closest first."""
        above = sorted(
            (lv for lv in levels if lv.price > current_price and lv.status == LevelStatus.PENDING),
            key=lambda level: level.price,
        )[:count]
        below = sorted(
            (lv for lv in levels if lv.price < current_price and lv.status == LevelStatus.PENDING),
            key=lambda level: level.price,
            reverse=True,
        )[:count]
        return {"above": above, "below": below}

    @staticmethod
    def grid_stats(levels: List[VirtualLevel]) -> Dict[str, int]:
        stats = {"total": len(levels)}
        for status in LevelStatus:
            stats[status.value] = sum(1 for level in levels if level.status == status)
        return stats
