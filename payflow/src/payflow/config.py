"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payflow.constants import DEFAULT_MAX_MATURATION_ATTEMPTS
from payflow.payment import validate_amount


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    rpc_url: str = "http://127.0.0.1:18443"
    rpc_user: str = "alice"
    rpc_password: str = "password"
    # None blocks until the node answers
    rpc_timeout: float | None = Field(default=None, gt=0)

    miner_wallet: str = "Miner"
    trader_wallet: str = "Trader"
    mining_label: str = "Mining Reward"
    receive_label: str = "Received"

    payment_amount: Decimal = Decimal("20.0")
    payment_memo: str = "Payment to Trader"
    max_maturation_attempts: int = Field(default=DEFAULT_MAX_MATURATION_ATTEMPTS, ge=1)

    output_path: Path = Path("out.txt")
    log_level: str = "INFO"

    @field_validator("payment_amount")
    @classmethod
    def check_payment_amount(cls, v: Decimal) -> Decimal:
        return validate_amount(v)

    @field_validator("trader_wallet")
    @classmethod
    def wallets_differ(cls, v: str, info: ValidationInfo) -> str:
        if v == info.data.get("miner_wallet"):
            raise ValueError("miner_wallet and trader_wallet must be different wallets")
        return v


def get_settings() -> Settings:
    return Settings()
