from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "academic-registrar"

    JWT_SECRET: str = "change_me_registrar"
    JWT_TTL_MINUTES: int = 1440

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
