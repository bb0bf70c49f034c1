from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    CAL_COM_API_KEY: str | None = None
    CAL_COM_BASE_URL: str = "https://api.cal.com/v2"
    CAL_COM_API_VERSION: str = "2024-08-13"
    CAL_COM_TIMEOUT_SECONDS: float = 10.0

    SCHEDULE_STORE_PATH: str = "./data/schedules.json"
    DEFAULT_VIEWER_TIMEZONE: str = "UTC"

    BOOKING_WINDOW_DAYS: int = 15
    SLOT_STEP_MINUTES: int = 30
    BUSY_TIMES_SPAN_DAYS: int = 31
    BOOKING_CACHE_TTL_MINUTES: int = 30
    RESCHEDULE_CACHE_TTL_MINUTES: int = 15
    CALENDAR_FAIL_OPEN: bool = True


settings = Settings()
