"""
Pytest configuration and fixtures for hamburger bot tests.
"""

from decimal import Decimal

import pytest

from hamburger_bot.bots.hamburger import GridConfig, HamburgerBot
from tests.mocks import FakeClock, MockGridExchange, make_signals


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def grid_config() -> GridConfig:
    """
    Small BTC grid.

    Center 50000, spacing 1%, 5 levels per side, one active position,
    margin 125 USD (1000 * 0.5 / 4) at 5x.
    """
    return GridConfig(
        symbol="BTC",
        total_investment=Decimal("1000"),
        leverage=5,
        grid_spacing_pct=Decimal("0.01"),
        levels_per_side=5,
    )


@pytest.fixture
def two_slot_config() -> GridConfig:
    """Two active positions, no trend filter, so longs and shorts can coexist."""
    return GridConfig(
        symbol="BTC",
        total_investment=Decimal("1000"),
        leverage=5,
        grid_spacing_pct=Decimal("0.01"),
        levels_per_side=5,
        max_active_positions=2,
        use_trend_filter=False,
    )


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def exchange() -> MockGridExchange:
    mock = MockGridExchange()
    mock.set_price("BTC", 50000)
    return mock


@pytest.fixture
def calm_signals():
    """Calm uptrend: no spike, no panic, low volatility."""
    return make_signals()


@pytest.fixture
def bot(grid_config, exchange, clock) -> HamburgerBot:
    """Bot that has not been initialized yet."""
    return HamburgerBot("test-bot", grid_config, exchange, clock=clock)
