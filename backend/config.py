from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "Daily Tracker"
    DATABASE_URL: str = "sqlite:///data/tracker.db"
    DATA_DIR: Path = Path("data")
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8050",
        "https://localhost:8050",
    ]
    LOG_LEVEL: str = "INFO"
    USER_ID_HEADER: str = "X-User-Id"
    ADMIN_API_TOKEN: str | None = None  # unset disables /api/admin
    STREAK_WINDOW_DAYS: int = 400
    HABIT_SUCCESS_PERCENT: int = 75
    HABIT_MILESTONES: list[int] = [30, 50, 75, 100, 150, 200, 250, 300, 365]
    PRAYER_MILESTONES: list[int] = [7, 30, 50, 75, 100, 150, 200, 365]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    def validate_runtime_configuration(self) -> None:
        errors: list[str] = []
        if self.STREAK_WINDOW_DAYS < 1:
            errors.append("STREAK_WINDOW_DAYS must be at least 1")
        if not 1 <= self.HABIT_SUCCESS_PERCENT <= 100:
            errors.append("HABIT_SUCCESS_PERCENT must be between 1 and 100")
        for name in ("HABIT_MILESTONES", "PRAYER_MILESTONES"):
            values = getattr(self, name)
            if not values:
                errors.append(f"{name} must not be empty")
            elif any(v <= 0 for v in values) or list(values) != sorted(set(values)):
                errors.append(f"{name} must be strictly ascending positive integers")
        if not (self.USER_ID_HEADER or "").strip():
            errors.append("USER_ID_HEADER must be set")
        if self.is_production_like and self.ADMIN_API_TOKEN and len(self.ADMIN_API_TOKEN.strip()) < 16:
            errors.append("ADMIN_API_TOKEN must be at least 16 characters in production-like environments")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Invalid tracker configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
