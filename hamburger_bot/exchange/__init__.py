"""Exchange collaborator interfaces."""

from .base import CandleSource, GridExchange, SignalCalculator

__all__ = [
    "GridExchange",
    "CandleSource",
    "SignalCalculator",
]
