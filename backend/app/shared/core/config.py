from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Matchday Content Automation"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"  # production | development | test
    CORS_ORIGIN: str = "http://localhost:3000"
    DATABASE_URL: str = ""

    # Trigger authentication (external cron -> our endpoints)
    CRON_SECRET: str = ""

    # Wall-clock used for rule evaluation and daily windows
    TIMEZONE: str = "UTC"

    # Content generation service (text/image generation, black box)
    CONTENT_SERVICE_URL: str = "http://localhost:8080"
    CONTENT_SERVICE_TOKEN: str = ""

    # Telegram Bot API (messaging gateway)
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_BOT_TOKEN: str = ""

    # Fixtures provider used by the daily discovery cycle
    FIXTURES_API_URL: str = "https://v3.football.api-sports.io"
    FIXTURES_API_KEY: str = ""

    # Rule evaluator windows
    SCHEDULED_WINDOW_MINUTES_PRODUCTION: int = 60
    SCHEDULED_WINDOW_MINUTES_DEFAULT: int = 30
    ACTIVE_HOURS_START: int = 6
    ACTIVE_HOURS_END: int = 23

    # Spam guard
    SPAM_EMERGENCY_BRAKE: int = 15
    SPAM_TYPE_LIMITS: str = ""  # Optional JSON override, e.g. {"news": 5}
    SPAM_MAX_PER_HOUR: int = 2       # Per channel, per clock hour (0 disables)
    SPAM_MIN_GAP_MINUTES: int = 30   # Per channel, between two sends (0 disables)

    # Run bounds
    RUN_DEADLINE_SECONDS: float = 240.0
    ITEM_TIMEOUT_SECONDS: float = 45.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

settings = Settings()
