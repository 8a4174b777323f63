"""
Unit tests for core utilities: logging, exceptions and candle models.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from hamburger_bot.core import (
    ConfigError,
    ExchangeError,
    HamburgerBotError,
    Kline,
    KlineInterval,
    OrderError,
    set_log_level,
    setup_logger,
)


class TestLogger:
    """Tests for logger setup."""

    def test_file_and_console_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "bot.log"
        logger = setup_logger("tests.core.logger_setup", level="DEBUG", log_file=log_file)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert logger.propagate is False

        logger.info("[test-bot] hello")
        for handler in logger.handlers:
            handler.flush()
        assert "[test-bot] hello" in log_file.read_text(encoding="utf-8")

        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_no_duplicate_handlers(self, tmp_path):
        log_file = tmp_path / "bot.log"
        first = setup_logger("tests.core.logger_dup", log_file=log_file)
        second = setup_logger("tests.core.logger_dup", log_file=log_file)

        assert first is second
        assert len(second.handlers) == 2

        for handler in list(second.handlers):
            handler.close()
            second.removeHandler(handler)

    def test_set_log_level_applies_to_package_loggers(self, tmp_path):
        package_logger = setup_logger("hamburger_bot.tests_level", level="INFO", log_file=tmp_path / "a.log")
        outside = setup_logger("tests.core.outside_level", level="INFO", log_file=tmp_path / "b.log")

        try:
            assert set_log_level("error") == logging.ERROR
            assert package_logger.level == logging.ERROR
            assert all(h.level == logging.ERROR for h in package_logger.handlers)
            assert outside.level == logging.INFO
        finally:
            set_log_level("INFO")
            for logger in (package_logger, outside):
                for handler in list(logger.handlers):
                    handler.close()
                    logger.removeHandler(handler)


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_str_includes_code_and_details(self):
        error = ExchangeError("Ticker unavailable", code="TIMEOUT", details={"symbol": "BTC"})
        assert str(error) == "Ticker unavailable [TIMEOUT] Details: {'symbol': 'BTC'}"

    def test_default_message(self):
        assert ConfigError().message

    def test_order_error_is_exchange_error(self):
        error = OrderError("Insufficient margin", symbol="BTC", side="long")
        assert isinstance(error, ExchangeError)
        assert isinstance(error, HamburgerBotError)


class TestKline:
    """Tests for the candle model."""

    def test_from_ohlcv(self):
        kline = Kline.from_ohlcv(
            {"t": 1735689600000, "T": 1735689659999, "o": "100", "h": "110", "l": "95", "c": "105", "v": 3},
            symbol="BTC",
            interval=KlineInterval.m1,
        )

        assert kline.open_time == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert kline.close == Decimal("105")
        assert kline.volume == Decimal("3")
        assert kline.is_bullish is True
        assert kline.change_pct == Decimal("5")
        assert kline.true_range() == Decimal("15")
        assert kline.true_range(Decimal("120")) == Decimal("25")
        assert kline.interval == "1m"
