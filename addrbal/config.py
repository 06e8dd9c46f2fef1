# addrbal/config.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BALANCE_URL = "https://blockchain.info/address/{address}?format=json&limit=10"


class Settings(BaseSettings):
    # DB: sqlite file path or full SQLAlchemy URL
    PAYMENTS_DB: str = "payproc.db"

    # Loop
    LOOP_DELAY: int = Field(default=1000, ge=0)  # milliseconds between lookups

    # Balance service
    BALANCE_URL: str = DEFAULT_BALANCE_URL
    REQUEST_TIMEOUT: float = Field(default=10.0, gt=0)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_prefix="ADDRBAL_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        return to_database_url(self.PAYMENTS_DB)


def to_database_url(location: str) -> str:
    """Turn a bare sqlite file path into a SQLAlchemy URL; pass URLs through."""
    if not location:
        raise ValueError("PAYMENTS_DB must not be empty")
    if "://" in location:
        return location
    if location == ":memory:":
        return "sqlite://"
    return f"sqlite:///{location}"


def get_settings(**overrides) -> Settings:
    """Load settings from the environment, applying non-None overrides."""
    values = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**values)
