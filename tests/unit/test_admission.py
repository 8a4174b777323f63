"""
Unit tests for the Position Admission Gate.

Tests filter ordering, trend/reactive filters, capacity and capital limits.
"""

from decimal import Decimal

from hamburger_bot.bots.hamburger import (
    AdmissionGate,
    GridConfig,
    GridPosition,
    GridState,
    LevelStatus,
    PositionSide,
    ReactiveBias,
    RejectReason,
    VirtualLevel,
)
from tests.mocks import make_signals


def _config(**overrides) -> GridConfig:
    params = dict(symbol="BTC", total_investment=Decimal("1000"), levels_per_side=5)
    params.update(overrides)
    return GridConfig(**params)


def _level(side: PositionSide = PositionSide.LONG) -> VirtualLevel:
    if side == PositionSide.LONG:
        return VirtualLevel(id="virtual_long_1", price=Decimal("49500"), side=side, distance_from_center=-1)
    return VirtualLevel(id="virtual_short_1", price=Decimal("50500"), side=side, distance_from_center=1)


def _position(side: PositionSide, size_usd: str = "125") -> GridPosition:
    return GridPosition(
        id=f"pos_{side.value}",
        symbol="BTC",
        side=side,
        size=Decimal("0.01"),
        size_usd=Decimal(size_usd),
        entry_price=Decimal("50000"),
        current_price=Decimal("50000"),
        stop_loss=Decimal("49000"),
        take_profit=Decimal("52000"),
        leverage=5,
    )


class TestFilters:
    """Tests for the volume and trend filters."""

    def test_calm_uptrend_admits_long(self):
        config = _config()
        gate = AdmissionGate(config)
        result = gate.evaluate(_level(), GridState(config=config), make_signals(is_uptrend=True))

        assert result.admitted
        assert result.reason is None

    def test_volume_filter_rejects_low_multiplier(self):
        config = _config(min_volume_multiplier=Decimal("1.5"))
        gate = AdmissionGate(config)
        result = gate.evaluate(
            _level(), GridState(config=config), make_signals(spike_multiplier="1.2")
        )

        assert not result.admitted
        assert result.reason == RejectReason.VOLUME_FILTER

    def test_volume_filter_inactive_at_one(self):
        config = _config(min_volume_multiplier=Decimal("1.0"))
        gate = AdmissionGate(config)
        result = gate.evaluate(
            _level(), GridState(config=config), make_signals(spike_multiplier="0.3")
        )
        assert result.admitted

    def test_volume_filter_runs_before_trend(self):
        """Both filters fail, the volume filter is reported."""
        config = _config(min_volume_multiplier=Decimal("2"))
        gate = AdmissionGate(config)
        result = gate.evaluate(
            _level(PositionSide.LONG),
            GridState(config=config),
            make_signals(is_uptrend=False, spike_multiplier="1.0"),
        )
        assert result.reason == RejectReason.VOLUME_FILTER

    def test_long_requires_uptrend(self):
        config = _config()
        gate = AdmissionGate(config)
        result = gate.evaluate(
            _level(PositionSide.LONG), GridState(config=config), make_signals(is_uptrend=False)
        )
        assert result.reason == RejectReason.TREND_FILTER

    def test_short_requires_downtrend(self):
        config = _config()
        gate = AdmissionGate(config)
        state = GridState(config=config)

        assert gate.evaluate(
            _level(PositionSide.SHORT), state, make_signals(is_uptrend=True)
        ).reason == RejectReason.TREND_FILTER
        assert gate.evaluate(
            _level(PositionSide.SHORT), state, make_signals(is_uptrend=False)
        ).admitted

    def test_trend_filter_disabled(self):
        config = _config(use_trend_filter=False)
        gate = AdmissionGate(config)
        result = gate.evaluate(
            _level(PositionSide.LONG), GridState(config=config), make_signals(is_uptrend=False)
        )
        assert result.admitted


class TestReactiveMode:
    """Tests for the reactive bias filter."""

    def setup_method(self):
        self.config = _config(use_reactive_mode=True)
        self.gate = AdmissionGate(self.config)
        self.state = GridState(config=self.config)

    def test_neutral_bias_rejects_both_sides(self):
        for side in (PositionSide.LONG, PositionSide.SHORT):
            result = self.gate.evaluate(
                _level(side), self.state, make_signals(), reactive_bias=ReactiveBias.NEUTRAL
            )
            assert result.reason == RejectReason.REACTIVE_FILTER

    def test_matching_bias_admits(self):
        assert self.gate.evaluate(
            _level(PositionSide.LONG), self.state, make_signals(), reactive_bias=ReactiveBias.LONG
        ).admitted
        assert self.gate.evaluate(
            _level(PositionSide.SHORT), self.state, make_signals(), reactive_bias=ReactiveBias.SHORT
        ).admitted

    def test_reactive_mode_overrides_predictive_trend(self):
        """A downtrend reading does not block a long when the reactive bias is LONG."""
        result = self.gate.evaluate(
            _level(PositionSide.LONG),
            self.state,
            make_signals(is_uptrend=False),
            reactive_bias=ReactiveBias.LONG,
        )
        assert result.admitted


class TestLimits:
    """Tests for reversal placeholder, capacity and capital utilization."""

    def test_reversal_confirmation_never_rejects(self):
        config = _config(use_reversal_confirmation=True)
        gate = AdmissionGate(config)
        state = GridState(config=config)

        for _ in range(3):
            assert gate.evaluate(_level(), state, make_signals()).admitted

    def test_capacity_rejects_at_limit(self):
        config = _config(max_active_positions=1)
        gate = AdmissionGate(config)
        state = GridState(config=config, real_positions=[_position(PositionSide.LONG)])

        result = gate.evaluate(_level(), state, make_signals())

        assert result.reason == RejectReason.CAPACITY
        assert "1/1" in result.detail

    def test_capacity_allows_below_limit(self):
        config = _config(max_active_positions=2)
        gate = AdmissionGate(config)
        state = GridState(config=config, real_positions=[_position(PositionSide.LONG)])

        assert gate.evaluate(_level(), state, make_signals(), new_margin=Decimal("125")).admitted

    def test_capital_utilization_rejects(self):
        config = _config(max_active_positions=2, max_capital_utilization=Decimal("0.2"))
        gate = AdmissionGate(config)
        state = GridState(config=config, real_positions=[_position(PositionSide.LONG)])

        result = gate.evaluate(_level(), state, make_signals(), new_margin=Decimal("125"))

        assert result.reason == RejectReason.CAPITAL_UTILIZATION

    def test_capacity_checked_before_capital(self):
        config = _config(max_active_positions=1, max_capital_utilization=Decimal("0.1"))
        gate = AdmissionGate(config)
        state = GridState(config=config, real_positions=[_position(PositionSide.LONG)])

        result = gate.evaluate(_level(), state, make_signals(), new_margin=Decimal("125"))

        assert result.reason == RejectReason.CAPACITY

    def test_gate_does_not_mutate(self):
        config = _config()
        gate = AdmissionGate(config)
        level = _level()
        level.status = LevelStatus.FILLED
        state = GridState(config=config, real_positions=[_position(PositionSide.LONG)])

        gate.evaluate(level, state, make_signals())

        assert level.status == LevelStatus.FILLED
        assert len(state.real_positions) == 1
