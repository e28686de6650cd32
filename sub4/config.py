from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    STRAVA_CLIENT_ID: str
    STRAVA_CLIENT_SECRET: str
    STRAVA_VERIFY_TOKEN: str
    STRAVA_REDIRECT_URI: str
    STRAVA_HTTP_TIMEOUT: float = 30.0

    # base64 of 32 random bytes
    TOKEN_ENCRYPTION_KEY: str
    TOKEN_REFRESH_BUFFER_SECONDS: int = 300

    CRON_SECRET: str
    QUEUE_BATCH_SIZE: int = 10
    QUEUE_MAX_ATTEMPTS: int = 3
    PROCESSING_STALE_MINUTES: int = 15

    CHALLENGE_TZ: str = "Australia/Brisbane"

settings = Settings()
