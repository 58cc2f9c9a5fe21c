from __future__ import annotations
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Bounded read size used when draining a payload stream (bytes)
    chunk_size: int = Field(default=8192, gt=0, alias="DETACHED_JWS_CHUNK_SIZE")

    log_level: str = Field(default="INFO", alias="DETACHED_JWS_LOG_LEVEL")


settings = Settings()  # load at import
