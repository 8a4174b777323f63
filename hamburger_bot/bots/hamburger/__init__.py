"""
Hamburger Grid Bot Module.

Provides the virtual-grid perpetual futures bot: an unbounded ladder of
virtual levels, a capped admission gate and an AI risk layer.
"""

from .admission import AdmissionGate, AdmissionResult
from .ai_engine import GridAIEngine
from .bot import HamburgerBot
from .feed import PriceFeed
from .models import (
    AIDecision,
    Aggressiveness,
    ClosedTrade,
    ExitReason,
    GridAction,
    GridConfig,
    GridPerformance,
    GridPosition,
    GridSignals,
    GridState,
    LevelStatus,
    PositionSide,
    PositionSizing,
    RateOfChangeSignal,
    ReactiveBias,
    RejectReason,
    TickResult,
    TrendSignal,
    VirtualLevel,
    VolatilitySignal,
    VolumeSignal,
    get_leverage_limit,
)
from .position_manager import GridPositionManager
from .reactive import ReactiveBiasTracker
from .stops import StopCalculator
from .virtual_grid import VirtualGrid

__all__ = [
    "HamburgerBot",
    "PriceFeed",
    "VirtualGrid",
    "AdmissionGate",
    "AdmissionResult",
    "ReactiveBiasTracker",
    "GridAIEngine",
    "GridPositionManager",
    "StopCalculator",
    "GridConfig",
    "GridState",
    "GridPosition",
    "GridPerformance",
    "ClosedTrade",
    "VirtualLevel",
    "GridSignals",
    "TrendSignal",
    "VolatilitySignal",
    "VolumeSignal",
    "RateOfChangeSignal",
    "AIDecision",
    "TickResult",
    "GridAction",
    "Aggressiveness",
    "ExitReason",
    "LevelStatus",
    "PositionSide",
    "PositionSizing",
    "ReactiveBias",
    "RejectReason",
    "get_leverage_limit",
]
