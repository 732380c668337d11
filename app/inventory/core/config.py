from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "Inventory Ledger"
    DATABASE_URL: str = "sqlite+pysqlite:///./inventory.db"
    QTY_DECIMAL_PLACES: int = 4
    MONEY_DECIMAL_PLACES: int = 2
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 200
    BUSINESS_HEADER: str = "X-Business-ID"
    USER_HEADER: str = "X-User-ID"
    OPS_ENABLE_INTEGRITY_SCAN: bool = True
    METRICS_ENABLED: bool = True

settings = Settings()
