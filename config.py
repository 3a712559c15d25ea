"""
Runtime configuration for the storefront backend.

Every value comes from the environment, with a development default.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    jwt_secret: str = "dev-secret-change-me"
    frontend_origin: str = "http://localhost:3000"
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    currency: str = "usd"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            frontend_origin=os.getenv("FRONTEND_ORIGIN", "http://localhost:3000"),
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            currency=os.getenv("CURRENCY", "usd"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
