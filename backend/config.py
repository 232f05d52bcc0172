from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "Daily Operator"
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 72
    AUTH_COOKIE_NAME: str = "operator_session"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    SECURITY_HEADERS_ENABLED: bool = True
    SECURITY_CSP: str = "default-src 'self'; frame-ancestors 'none'; base-uri 'self'"
    STORAGE_BACKEND: str = "local"  # local | database
    DATA_DIR: Path = Path("data")
    LOCAL_STORE_PATH: Path = Path("data/store.json")
    LOCAL_KEY_PREFIX: str = "p01:"
    DATABASE_URL: str = "sqlite:///data/operator.db"
    DEFAULT_CURRENCY: str = "GBP"
    TASK_SCORE_CAP: int = 5  # tasks beyond this count don't raise the combined score

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    @property
    def storage_backend(self) -> str:
        backend = (self.STORAGE_BACKEND or "").strip().lower()
        return backend if backend in {"local", "database"} else "local"

    @property
    def database_configured(self) -> bool:
        return bool((self.DATABASE_URL or "").strip())

    def validate_security_configuration(self) -> None:
        if not self.is_production_like:
            return

        errors: list[str] = []
        if self.SECRET_KEY == "change-me-in-production":
            errors.append("SECRET_KEY must be changed from the default value")
        if len((self.SECRET_KEY or "").strip()) < 16:
            errors.append("SECRET_KEY must be at least 16 characters")
        if self.storage_backend == "database" and not self.database_configured:
            errors.append("DATABASE_URL is required when STORAGE_BACKEND=database")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Insecure production configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
