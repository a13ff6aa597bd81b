from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Settlement Engine"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/settlements.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Settlement lifecycle
    SETTLEMENT_DUE_DAYS: int = 7
    SETTLEMENT_LOCK_TIMEOUT_SECONDS: float = 5.0
    SETTLEMENT_TIMEZONE: str = "Africa/Cairo"  # local day boundaries for the daily run

    # Dashboard read cache (0 disables caching)
    SUMMARY_CACHE_TTL_SECONDS: int = 30

    # Roles allowed to waive or delete settlements
    ADMIN_ROLES: str = "admin,super_admin"

    @property
    def admin_roles(self) -> set[str]:
        return {r.strip() for r in self.ADMIN_ROLES.split(",") if r.strip()}


settings = Settings()
