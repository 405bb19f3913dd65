from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=os.getenv("ENV_FILE", ".env"), extra="ignore")

    APP_NAME: str = "tradebook"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "please-change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    DATABASE_URL: str = "sqlite+aiosqlite:///./tradebook.db"

    REDIS_URL: str = "redis://localhost:6379/0"

    # local: one asyncio lock per account inside this process
    # redis: SET NX EX lock shared by every worker
    LEDGER_LOCK_BACKEND: str = "local"
    LEDGER_LOCK_TTL_SECONDS: int = 60
    LEDGER_LOCK_WAIT_SECONDS: float = 30.0

    LEDGER_AUDIT_SECONDS: int = 3600
    LEDGER_AUDIT_REPAIR: bool = False

    CORS_ORIGINS: str = ""  # comma separated

    @property
    def cors_origins_list(self) -> List[str]:
        if not self.CORS_ORIGINS:
            return []
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
