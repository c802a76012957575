"""Runtime configuration for the app, read from the environment (and .env)."""
import os
from typing import NamedTuple

from dotenv import load_dotenv


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    braintree_environment: str
    braintree_merchant_id: str
    braintree_public_key: str
    braintree_private_key: str
    log_level: str


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./storefront.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        braintree_environment=os.getenv("BRAINTREE_ENVIRONMENT", "sandbox"),
        braintree_merchant_id=os.getenv("BRAINTREE_MERCHANT_ID", ""),
        braintree_public_key=os.getenv("BRAINTREE_PUBLIC_KEY", ""),
        braintree_private_key=os.getenv("BRAINTREE_PRIVATE_KEY", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


state = load_settings()


def set_settings(settings: Settings):
    global state
    state = settings


def get_settings() -> Settings:
    return state
