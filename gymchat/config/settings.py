from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "gymchat"

    # identity the gym staff answers under
    ADMIN_ID: str = "admin"

    REDIS_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
