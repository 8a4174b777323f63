"""
Hamburger Grid Bot.

Virtual-grid perpetual futures trading bot with an AI risk layer.
"""

__version__ = "0.1.0"
