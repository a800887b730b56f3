from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    STAYDIRECTLY_DB_URL: str = "sqlite+aiosqlite:///./staydirectly.db"
    LOG_LEVEL: str = "INFO"

    # --- Minimal B2B Auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Hospitable Connect (single platform-level bearer token) ---
    HOSPITABLE_PLATFORM_TOKEN: str | None = None
    HOSPITABLE_BASE_URL: str = "https://connect.hospitable.com/api/v1"
    # listings/customers/auth-codes speak the newer version, images + details the older one
    HOSPITABLE_CONNECT_VERSION: str = "2024-01"
    HOSPITABLE_IMAGES_CONNECT_VERSION: str = "2022-11-01"
    HOSPITABLE_AUTH_REDIRECT_URL: str = "http://localhost:8000/auth/callback"

    # --- Outbound HTTP resilience ---
    HTTP_TIMEOUT_S: float = 30.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 5
    HTTP_CIRCUIT_RESET_S: float = 60.0

    # --- Image fetch guard (per customer/listing key) ---
    IMAGE_RATE_MIN_SPACING_S: float = 5.0
    IMAGE_RATE_WINDOW_S: float = 60.0
    IMAGE_RATE_MAX_PER_WINDOW: int = 5
    IMAGE_CACHE_TTL_S: float = 24 * 60 * 60
    # how long past the TTL an entry may still be served stale before it is evicted
    IMAGE_CACHE_STALE_GRACE_S: float = 7 * 24 * 60 * 60

    # --- Publish batching ---
    PUBLISH_BATCH_SIZE: int = 2
    PUBLISH_BATCH_DELAY_S: float = 10.0
    PUBLISH_ITEM_DELAY_S: float = 2.0
    DETAILS_FALLBACK_DELAY_S: float = 1.0

    # --- Scheduler tuning ---
    SCHED_IMPORT_CUSTOMER_IDS: str = ""  # comma-separated upstream customer ids
    SCHED_IMPORT_INTERVAL_MINUTES: int = 1440  # daily

    def scheduled_customer_ids(self) -> list[str]:
        return [c.strip() for c in self.SCHED_IMPORT_CUSTOMER_IDS.split(",") if c.strip()]


settings = Settings()
