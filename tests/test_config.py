"""
Tests for configuration loading and structured logging
"""

import io
import json
import logging

from atabank.config import AtaBankConfig, get_config, reload_config
from atabank.logging_config import JSONFormatter, setup_logging, get_logger, log_action


class TestConfig:
    """Test environment-based configuration"""

    def test_defaults(self, monkeypatch):
        """Test default values"""
        for name in ["ATABANK_DATABASE_PATH", "ATABANK_RATE_CACHE_TTL_SECONDS",
                     "ATABANK_RECORD_EXCHANGE_IN_LEDGER"]:
            monkeypatch.delenv(name, raising=False)

        config = AtaBankConfig()

        assert config.database_path == "atabank.db"
        assert config.rate_cache_ttl_seconds == 60
        assert config.buy_spread == "0.985"
        assert config.sell_spread == "1.015"
        assert config.record_exchange_in_ledger is True
        assert config.rate_feed_url.endswith("/latest/TRY")

    def test_environment_overrides(self, monkeypatch):
        """Test ATABANK_-prefixed variables override defaults"""
        monkeypatch.setenv("ATABANK_RATE_CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("ATABANK_RECORD_EXCHANGE_IN_LEDGER", "false")
        monkeypatch.setenv("ATABANK_DATABASE_PATH", "/tmp/other.db")

        config = AtaBankConfig()

        assert config.rate_cache_ttl_seconds == 30
        assert config.record_exchange_in_ledger is False
        assert config.database_path == "/tmp/other.db"

    def test_reload_config(self, monkeypatch):
        """Test reload_config replaces the global instance"""
        monkeypatch.setenv("ATABANK_HISTORY_LIMIT", "25")
        try:
            reloaded = reload_config()
            assert reloaded is get_config()
            assert get_config().history_limit == 25
        finally:
            monkeypatch.delenv("ATABANK_HISTORY_LIMIT")
            reload_config()


class TestLogging:
    """Test JSON log formatting"""

    def setup_method(self):
        """Set up test fixtures"""
        self.logger = logging.getLogger("atabank.test")
        self.stream = io.StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.handler.setFormatter(JSONFormatter())
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

    def teardown_method(self):
        self.logger.removeHandler(self.handler)

    def test_log_action_fields(self):
        """Test structured fields appear in the JSON record"""
        log_action(self.logger, "info", "Deposit of 10.00 TRY", user_id=7,
                   action="deposit", resource="transactions", extra={"balance_after": "10.00"})

        record = json.loads(self.stream.getvalue().strip())
        assert record["level"] == "INFO"
        assert record["logger"] == "atabank.test"
        assert record["message"] == "Deposit of 10.00 TRY"
        assert record["user_id"] == 7
        assert record["action"] == "deposit"
        assert record["resource"] == "transactions"
        assert record["extra"] == {"balance_after": "10.00"}

    def test_none_fields_omitted(self):
        """Test absent structured fields are dropped"""
        self.logger.warning("plain message")

        record = json.loads(self.stream.getvalue().strip())
        assert record["message"] == "plain message"
        assert "user_id" not in record
        assert "action" not in record

    def test_setup_logging_replaces_handlers(self, tmp_path):
        """Test repeated setup keeps a single handler"""
        log_file = tmp_path / "atabank.log"
        try:
            setup_logging("WARNING", logger_name="atabank.setup", log_file=str(log_file))
            logger = setup_logging("INFO", logger_name="atabank.setup", log_format="text",
                                   log_file=str(log_file))

            assert len(logger.handlers) == 1
            assert logger.level == logging.INFO
            assert get_logger("atabank.setup") is logger

            logger.info("hello")
            logger.handlers[0].flush()
            assert "hello" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in logging.getLogger("atabank.setup").handlers[:]:
                logging.getLogger("atabank.setup").removeHandler(handler)
                handler.close()
