"""
Market data models for Hamburger Grid Bot.

Candles fetched by a CandleSource and consumed by a SignalCalculator.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field


class KlineInterval(str, Enum):
    """Candle width."""

    m1 = "1m"
    m5 = "5m"
    m15 = "15m"
    m30 = "30m"
    h1 = "1h"
    h4 = "4h"
    d1 = "1d"


class MarketDataModel(BaseModel):
    """Immutable market data record; enums are stored as their values."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, from_attributes=True)


def ms_to_utc(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


class Kline(MarketDataModel):
    """One OHLCV candle."""

    symbol: str
    interval: KlineInterval
    open_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    close_time: datetime

    @computed_field
    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @computed_field
    @property
    def change_pct(self) -> Decimal:
        """Open-to-close change in percent."""
        if self.open == 0:
            return Decimal("0")
        return (self.close - self.open) / self.open * 100

    def true_range(self, previous_close: Optional[Decimal] = None) -> Decimal:
        """
        True range against the previous candle's close (ATR input).

        Without a previous close this is the plain high-low range.
        """
        span = self.high - self.low
        if previous_close is None:
            return span
        return max(span, abs(self.high - previous_close), abs(self.low - previous_close))

    @classmethod
    def from_ohlcv(
        cls,
        data: dict,
        symbol: str,
        interval: KlineInterval = KlineInterval.m1,
    ) -> "Kline":
        """
        Build a candle from a venue payload.

        Args:
            data: Mapping with t (open ms), optional T (close ms), o, h, l, c, v
            symbol: Symbol the candle belongs to
            interval: Candle width
        """
        return cls(
            symbol=symbol,
            interval=interval,
            open_time=ms_to_utc(int(data["t"])),
            open=Decimal(str(data["o"])),
            high=Decimal(str(data["h"])),
            low=Decimal(str(data["l"])),
            close=Decimal(str(data["c"])),
            volume=Decimal(str(data["v"])),
            close_time=ms_to_utc(int(data.get("T", data["t"]))),
        )
