"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class AtaBankConfig(BaseSettings):
    """AtaBank console banking configuration"""

    # Database configuration
    database_path: str = "atabank.db"

    # Exchange rate feed configuration
    rate_feed_url: str = "https://api.exchangerate-api.com/v4/latest/TRY"
    rate_cache_ttl_seconds: int = 60
    rate_request_timeout: float = 10.0
    buy_spread: str = "0.985"   # Bank buys foreign currency below mid
    sell_spread: str = "1.015"  # Bank sells foreign currency above mid

    # Business rules configuration
    record_exchange_in_ledger: bool = True
    history_limit: int = 10

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = "atabank.log"  # If None, logs to stderr

    class Config:
        env_prefix = "ATABANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = AtaBankConfig()


def get_config() -> AtaBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> AtaBankConfig:
    """Reload configuration from environment"""
    global config
    config = AtaBankConfig()
    return config
