"""
Settings for the EstateDesk API, read from the environment or ``.env``
"""
from typing import List
import warnings

from pydantic_settings import BaseSettings, SettingsConfigDict

INSECURE_SECRET_KEYS = {"change-me", "secret-key", "estatedesk-dev-secret-key-replace-before-deploying"}
DEFAULT_ADMIN_PASSWORD = "admin@12345#"


def _split(value: str, lower: bool = False) -> List[str]:
    items = [item.strip() for item in value.split(",") if item.strip()]
    return [item.lower() for item in items] if lower else items


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "EstateDesk API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # sqlite:///path, any SQLAlchemy URL, or file:path as a shorthand for SQLite
    DATABASE_URL: str = "sqlite:///./estatedesk.db"

    # JWT
    SECRET_KEY: str = "estatedesk-dev-secret-key-replace-before-deploying"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # Seeded on first start as role #1 / user #1
    SUPER_ADMIN_NAME: str = "Super Admin"
    SUPER_ADMIN_EMAIL: str = "admin@estatedesk.in"
    SUPER_ADMIN_PASSWORD: str = DEFAULT_ADMIN_PASSWORD
    # Given to accounts registered without a password
    DEFAULT_USER_PASSWORD: str = "user@12345#"

    RATE_LIMIT_ENABLED: bool = True
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Receipts, KYC scans and property documents
    UPLOAD_DIR: str = "./uploads"
    MAX_UPLOAD_MB: int = 5
    ALLOWED_UPLOAD_EXTENSIONS: str = "jpg,jpeg,png,pdf"

    @property
    def cors_origins_list(self) -> List[str]:
        return _split(self.CORS_ORIGINS)

    @property
    def allowed_extensions(self) -> List[str]:
        return _split(self.ALLOWED_UPLOAD_EXTENSIONS, lower=True)

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL.startswith("file:"):
            return "sqlite:///" + self.DATABASE_URL[len("file:"):]
        return self.DATABASE_URL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def security_problems(self) -> List[str]:
        problems = []
        if self.SECRET_KEY in INSECURE_SECRET_KEYS:
            problems.append("SECRET_KEY is a well-known default")
        elif len(self.SECRET_KEY) < 32:
            problems.append("SECRET_KEY is shorter than 32 characters")
        if self.SUPER_ADMIN_PASSWORD == DEFAULT_ADMIN_PASSWORD:
            problems.append("SUPER_ADMIN_PASSWORD is the default")
        if self.DEBUG and self.is_production:
            problems.append("DEBUG is enabled")
        return problems

    def validate_security_settings(self) -> bool:
        """Refuse insecure settings in production, warn about them elsewhere"""
        problems = self.security_problems()
        if problems and self.is_production:
            raise ValueError("Insecure production settings: " + "; ".join(problems))
        for problem in problems:
            warnings.warn(problem, UserWarning)
        return not problems


settings = Settings()
settings.validate_security_settings()
