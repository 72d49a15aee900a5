from pydantic_settings import BaseSettings, SettingsConfigDict
import os

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))


def normalize_db_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL non configurée.")

    # Heroku/Railway: postgres://...
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)

    # postgresql://... sans driver
    if url.startswith("postgresql://") and "+psycopg2" not in url:
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)

    return url


class Settings(BaseSettings):
    DATABASE_URL: str

    # fenêtres d'échéances (en jours)
    DUE_SOON_DAYS: int = 7
    UPCOMING_WINDOW_DAYS: int = 30
    CRITICAL_LATE_DAYS: int = 30

    WHATSAPP_DEFAULT_COUNTRY_CODE: str = "221"
    CURRENCY_LABEL: str = "F CFA"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    def __init__(self, **values):
        super().__init__(**values)
        self.DATABASE_URL = normalize_db_url(self.DATABASE_URL)


settings = Settings()
