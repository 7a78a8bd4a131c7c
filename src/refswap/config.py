"""Application configuration using pydantic-settings.

Settings are read once per process. Quote sessions never look them up
directly: they receive a SessionConfig built from the settings.
"""

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level for the runner")

    # ======================
    # NEAR / Ref Finance endpoints
    # ======================
    near_rpc_url: str = Field(
        default="https://rpc.mainnet.near.org", description="NEAR JSON-RPC URL"
    )
    ref_indexer_url: str = Field(
        default="https://indexer.ref.finance", description="Ref Finance indexer URL"
    )
    wallet_url: str = Field(
        default="https://app.mynearwallet.com", description="Wallet used to sign transactions"
    )
    ref_exchange_contract_id: str = Field(
        default="v2.ref-finance.near", description="Ref exchange contract account"
    )
    wrap_near_contract_id: str = Field(
        default="wrap.near", description="Wrapped NEAR contract account"
    )
    account_id: str = Field(default="", description="Signer account id")
    public_key: str = Field(
        default="", description="Signer access key, ed25519:<base58>, used to build wallet payloads"
    )
    app_url: str = Field(
        default="https://app.ref.finance", description="Base URL used for wallet callbacks"
    )

    # ======================
    # Quoting
    # ======================
    pool_token_refresh_interval: int = Field(
        default=10, description="Seconds between background quote refreshes"
    )
    default_slippage: float = Field(
        default=0.5, description="Default slippage tolerance in percent"
    )
    stable_pool_id: int = Field(default=1910, description="Ref stable pool id")
    stable_token_ids: str = Field(
        default=(
            "usdt.tether-token.near,"
            "17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1,"
            "dac17f958d2ee523a2206206994597c13d831ec7.factory.bridge.near,"
            "a0b86991c6218b36c1d19d4a2e9eb0ce3606eb48.factory.bridge.near,"
            "6b175474e89094c44da98b954eedeac495271d0f.factory.bridge.near"
        ),
        description="Comma-separated token ids traded on the stable pool",
    )
    http_timeout: float = Field(default=15.0, description="Timeout for RPC/indexer calls")

    # ======================
    # Notifications
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")
    notify_chat_id: Optional[int] = Field(
        default=None, description="Chat that receives swap notifications"
    )
    explorer_url: str = Field(
        default="https://nearblocks.io/txns", description="Transaction explorer base URL"
    )

    @property
    def stable_token_id_set(self) -> frozenset[str]:
        """Parse stable token ids into a set."""
        return frozenset(t.strip() for t in self.stable_token_ids.split(",") if t.strip())

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "near_rpc_url": self.near_rpc_url,
            "ref_indexer_url": self.ref_indexer_url,
            "exchange": self.ref_exchange_contract_id,
            "account_id": self.account_id or "(not set)",
            "refresh_interval": self.pool_token_refresh_interval,
            "slippage": self.default_slippage,
            "stable_pool_id": self.stable_pool_id,
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
        }


@dataclass(frozen=True)
class SessionConfig:
    """Configuration injected into quote sessions at construction."""

    refresh_interval: float = 10.0
    default_slippage: Decimal = Decimal("0.5")
    stable_pool_ids: frozenset[int] = frozenset()
    stable_token_ids: frozenset[str] = frozenset()
    callback_path: str = "/"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SessionConfig":
        settings = settings or get_settings()
        return cls(
            refresh_interval=float(settings.pool_token_refresh_interval),
            default_slippage=Decimal(str(settings.default_slippage)),
            stable_pool_ids=frozenset({settings.stable_pool_id}),
            stable_token_ids=settings.stable_token_id_set,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
