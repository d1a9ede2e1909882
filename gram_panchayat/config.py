# gram_panchayat/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    APP_NAME: str = "Digital E Gram Panchayat API"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DB_URL: str = os.getenv("DB_URL", "sqlite:///./gram_panchayat.db")
    API_V1_STR: str = os.getenv("API_V1_STR", "/v1")
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # bearer tokens
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # unassigned principals are citizens unless this is on
    STRICT_ROLES: bool = _flag("STRICT_ROLES", "false")

    SEED_DEFAULT_SERVICES: bool = _flag("SEED_DEFAULT_SERVICES", "true")
    ADMIN_EMAIL: str | None = os.getenv("ADMIN_EMAIL")
    ADMIN_PASSWORD: str | None = os.getenv("ADMIN_PASSWORD")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str | None = os.getenv("LOG_FILE")


settings = Settings()
