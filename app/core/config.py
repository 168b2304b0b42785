from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None

    OPENAI_MODEL_REPLY: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE_REPLY: float = 0.2

    META_VERIFY_TOKEN: str = ""
    META_APP_SECRET: str | None = None
    META_PAGE_ACCESS_TOKEN: str | None = None
    META_SEND_ENDPOINT: str = "https://graph.facebook.com/v19.0/me/messages"

    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    GOOGLE_CALENDAR_ID: str | None = None
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REFRESH_TOKEN: str | None = None
    GOOGLE_TIMEZONE: str = "America/Denver"

    RESEND_API_KEY: str | None = None
    NOTIFY_FROM: str = "Bookings <bookings@example.com>"
    NOTIFY_TO: str | None = None

    SERVICE_NAME: str = "Full Detail"
    SERVICE_PRICE: str = "$200"
    SERVICE_AREA: str = "Northern Utah"
    SERVICE_DURATION: str = "2-3 hours"
    SERVICE_INCLUDED: str = (
        "Interior — thorough vacuuming, door and seat jams cleaned, plastics and rubber treated, "
        "floor mats cleaned, and windows streak-free.\n\n"
        "Exterior — Foam cannon pre-wash, hand wash, towel dry, wheels and tires cleaned and dressed."
    )

    # Comma separated HH:MM-HH:MM windows in GOOGLE_TIMEZONE
    SLOT_WINDOWS: str = "12:00-15:00,15:00-18:00"
    SLOT_DAYS_PRIMARY: int = 7
    SLOT_DAYS_FALLBACK: int = 14
    SLOT_START_OFFSET_DAYS: int = 3
    PENDING_CLAIM_TTL_MINUTES: int = 15

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    AUTO_REPLY_ENABLED: bool = False


settings = Settings()
