"""
Central configuration for the guardrail engine.
Uses pydantic-settings to load from environment with sane defaults.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # LTV / TACOS economics
    tmax_cap_global: float = Field(default=0.7, alias="TMAX_CAP_GLOBAL")
    global_loss_budget_rate: float = Field(default=0.15, alias="GLOBAL_LOSS_BUDGET_RATE")
    tacos_delta_epsilon: float = Field(default=0.01, alias="TACOS_DELTA_EPSILON")

    # Sale calendar defaults for keyword guardrails
    default_sale_phase: str = Field(default="NORMAL", alias="SALE_PHASE")
    default_presale_type: str = Field(default="NONE", alias="PRESALE_TYPE")

    # Behavior
    timezone: str = Field(default="Asia/Tokyo", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        populate_by_name = True
        case_sensitive = False


# Single settings instance
settings = Settings()

__all__ = ["settings", "Settings"]
