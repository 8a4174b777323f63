"""
Unit tests for Virtual Grid.

Tests ladder generation, crossings, cooldown release, extension and queries.
"""

from decimal import Decimal

import pytest

from hamburger_bot.bots.hamburger import (
    GridConfig,
    LevelStatus,
    PositionSide,
    VirtualGrid,
)
from tests.mocks import FakeClock


def _config(**overrides) -> GridConfig:
    params = dict(
        symbol="BTC",
        total_investment=Decimal("1000"),
        grid_spacing_pct=Decimal("0.01"),
        levels_per_side=2,
    )
    params.update(overrides)
    return GridConfig(**params)


class TestGridGeneration:
    """Tests for generate_grid."""

    def test_two_levels_per_side(self):
        """Center 50000, spacing 1%, n=2 follows C * (1 +/- s) ** i."""
        grid = VirtualGrid(_config())
        levels = grid.generate_grid(Decimal("50000"))

        assert [level.price for level in levels] == [
            Decimal("51005"),
            Decimal("50500"),
            Decimal("49500"),
            Decimal("49005"),
        ]
        assert [level.side for level in levels] == [
            PositionSide.SHORT,
            PositionSide.SHORT,
            PositionSide.LONG,
            PositionSide.LONG,
        ]
        assert [level.distance_from_center for level in levels] == [2, 1, -1, -2]
        assert [level.id for level in levels] == [
            "virtual_short_2",
            "virtual_short_1",
            "virtual_long_1",
            "virtual_long_2",
        ]

    @pytest.mark.parametrize("levels_per_side", [1, 3, 25, 60])
    def test_symmetry_and_sort(self, levels_per_side):
        """Shorts strictly above center, longs strictly below, sorted descending."""
        center = Decimal("123.45")
        grid = VirtualGrid(_config(levels_per_side=levels_per_side, grid_spacing_pct="0.005"))
        levels = grid.generate_grid(center)

        assert len(levels) == 2 * levels_per_side
        for level in levels:
            if level.side == PositionSide.SHORT:
                assert level.price > center
                assert level.distance_from_center > 0
            else:
                assert level.price < center
                assert level.distance_from_center < 0

        prices = [level.price for level in levels]
        assert prices == sorted(prices, reverse=True)

    def test_side_distance_unique(self):
        grid = VirtualGrid(_config(levels_per_side=10))
        levels = grid.generate_grid(Decimal("50000"))

        keys = [(level.side, level.distance_from_center) for level in levels]
        assert len(keys) == len(set(keys))
        assert len({level.id for level in levels}) == len(levels)

    def test_all_levels_start_pending(self):
        clock = FakeClock()
        grid = VirtualGrid(_config(), clock=clock)
        levels = grid.generate_grid(Decimal("50000"))

        assert all(level.status == LevelStatus.PENDING for level in levels)
        assert all(level.created_at == clock.now for level in levels)
        assert all(level.last_closed_at is None for level in levels)

    def test_spacing_override(self):
        grid = VirtualGrid(_config())
        levels = grid.generate_grid(Decimal("50000"), spacing=Decimal("0.02"))

        assert grid.spacing == Decimal("0.02")
        assert levels[1].price == Decimal("51000")

    def test_regeneration_replaces_ladder(self):
        grid = VirtualGrid(_config())
        first = grid.generate_grid(Decimal("50000"))
        first[0].status = LevelStatus.FILLED

        second = grid.generate_grid(Decimal("60000"))

        assert grid.center == Decimal("60000")
        assert all(level.status == LevelStatus.PENDING for level in second)
        assert second[1].price == Decimal("60600")

    def test_non_positive_center_rejected(self):
        grid = VirtualGrid(_config())
        with pytest.raises(ValueError):
            grid.generate_grid(Decimal("0"))


class TestCrossings:
    """Tests for check_crossings and release_cooldowns."""

    def setup_method(self):
        self.clock = FakeClock()
        self.grid = VirtualGrid(_config(levels_per_side=3), clock=self.clock)
        self.levels = self.grid.generate_grid(Decimal("50000"))

    def test_no_crossing_at_center(self):
        assert self.grid.check_crossings(self.levels, Decimal("50000")) == []

    def test_short_crossed_at_or_above(self):
        crossed = self.grid.check_crossings(self.levels, Decimal("50500"))
        assert [level.id for level in crossed] == ["virtual_short_1"]

    def test_long_crossed_at_or_below(self):
        crossed = self.grid.check_crossings(self.levels, Decimal("49400"))
        assert [level.id for level in crossed] == ["virtual_long_1"]

    def test_multiple_crossings_nearest_first(self):
        crossed = self.grid.check_crossings(self.levels, Decimal("48900"))
        assert [level.id for level in crossed] == ["virtual_long_1", "virtual_long_2"]

    def test_crossing_does_not_change_status(self):
        crossed = self.grid.check_crossings(self.levels, Decimal("49400"))
        assert crossed[0].status == LevelStatus.PENDING

    def test_filled_and_cooldown_levels_skipped(self):
        long_1 = next(level for level in self.levels if level.id == "virtual_long_1")
        long_1.status = LevelStatus.FILLED
        assert self.grid.check_crossings(self.levels, Decimal("49400")) == []

        long_1.mark_cooldown(self.clock.now)
        assert self.grid.check_crossings(self.levels, Decimal("49400")) == []

    def test_cooldown_released_after_window(self):
        long_1 = next(level for level in self.levels if level.id == "virtual_long_1")
        long_1.mark_cooldown(self.clock.now)

        self.clock.advance(299)
        assert self.grid.release_cooldowns(self.levels) == []
        assert long_1.status == LevelStatus.COOLDOWN

        self.clock.advance(1)
        assert self.grid.release_cooldowns(self.levels) == [long_1]
        assert long_1.status == LevelStatus.PENDING
        assert self.grid.check_crossings(self.levels, Decimal("49400")) == [long_1]

    def test_custom_cooldown_window(self):
        grid = VirtualGrid(_config(level_cooldown_seconds=10), clock=self.clock)
        levels = grid.generate_grid(Decimal("50000"))
        levels[0].mark_cooldown(self.clock.now)

        self.clock.advance(10)
        assert grid.release_cooldowns(levels) == [levels[0]]


class TestExtension:
    """Tests for extend_grid."""

    def setup_method(self):
        self.grid = VirtualGrid(_config(levels_per_side=5))
        self.levels = self.grid.generate_grid(Decimal("50000"))

    def test_no_extension_near_center(self):
        assert self.grid.extend_grid(self.levels, Decimal("50000")) is self.levels

    def test_extends_above_near_top(self):
        # Top short is 50000 * 1.01^5 ~= 52550.5
        extended = self.grid.extend_grid(self.levels, Decimal("52000"))

        shorts = [level for level in extended if level.side == PositionSide.SHORT]
        assert len(shorts) == 10
        assert max(level.distance_from_center for level in shorts) == 10
        assert len([level for level in extended if level.side == PositionSide.LONG]) == 5

    def test_extends_below_near_bottom(self):
        # Bottom long is 50000 * 0.99^5 ~= 47549.5
        extended = self.grid.extend_grid(self.levels, Decimal("48000"))

        longs = [level for level in extended if level.side == PositionSide.LONG]
        assert len(longs) == 10
        assert min(level.distance_from_center for level in longs) == -10

    def test_extension_keeps_invariants(self):
        extended = self.grid.extend_grid(self.levels, Decimal("52000"))

        prices = [level.price for level in extended]
        assert prices == sorted(prices, reverse=True)
        keys = [(level.side, level.distance_from_center) for level in extended]
        assert len(keys) == len(set(keys))
        assert expected_next_price(self.levels) == next(
            level.price for level in extended if level.id == "virtual_short_6"
        )

    def test_extension_preserves_existing_levels(self):
        self.levels[0].status = LevelStatus.FILLED
        extended = self.grid.extend_grid(self.levels, Decimal("52000"))
        assert self.levels[0] in extended
        assert self.levels[0].status == LevelStatus.FILLED


def expected_next_price(levels):
    top = max(levels, key=lambda level: level.price)
    return Decimal("50000") * Decimal("1.01") ** (top.distance_from_center + 1)


class TestAdaptiveSpacing:
    """Tests for adaptive_spacing."""

    def test_disabled_returns_base(self):
        grid = VirtualGrid(_config())
        assert grid.adaptive_spacing(Decimal("5")) == Decimal("0.01")

    @pytest.mark.parametrize(
        "multiplier,expected",
        [
            ("0.2", "0.005"),   # clamped to min 0.5
            ("1.5", "0.015"),
            ("3", "0.02"),      # clamped to max 2.0
        ],
    )
    def test_clamped_scaling(self, multiplier, expected):
        grid = VirtualGrid(_config(use_adaptive_grid=True))
        assert grid.adaptive_spacing(Decimal(multiplier)) == Decimal(expected)


class TestQueries:
    """Tests for nearest levels and stats."""

    def test_nearest_levels(self):
        grid = VirtualGrid(_config(levels_per_side=10))
        levels = grid.generate_grid(Decimal("50000"))

        nearest = grid.get_nearest_levels(levels, Decimal("50000"))

        assert len(nearest["above"]) == 5
        assert len(nearest["below"]) == 5
        assert nearest["above"][0].price == Decimal("50500")
        assert nearest["below"][0].price == Decimal("49500")

    def test_nearest_skips_non_pending(self):
        grid = VirtualGrid(_config(levels_per_side=3))
        levels = grid.generate_grid(Decimal("50000"))
        next(level for level in levels if level.id == "virtual_short_1").status = LevelStatus.FILLED

        nearest = grid.get_nearest_levels(levels, Decimal("50000"))

        assert nearest["above"][0].id == "virtual_short_2"

    def test_grid_stats(self):
        grid = VirtualGrid(_config(levels_per_side=3))
        levels = grid.generate_grid(Decimal("50000"))
        levels[0].status = LevelStatus.FILLED
        levels[1].status = LevelStatus.COOLDOWN

        stats = grid.grid_stats(levels)

        assert stats == {"total": 6, "pending": 4, "filled": 1, "cooldown": 1}
