"""
Bots Module.

Contains the trading bot strategies.
"""

from .hamburger import HamburgerBot, PriceFeed

__all__ = [
    "HamburgerBot",
    "PriceFeed",
]
