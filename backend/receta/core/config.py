import os
import logging
from pydantic_settings import BaseSettings
from typing import List

logger = logging.getLogger(__name__)


ENV_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"

STORAGE_BACKENDS = ("memory", "mongo")
SEED_MODES = ("never", "if_empty", "always")


class Settings(BaseSettings):

    environment: str = "development"
    server_host: str = "0.0.0.0"
    port: int = 8001


    storage_backend: str = "memory"
    storage_key_prefix: str = "@receta_segura:"
    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "receta_segura"


    default_horizon_days: int = 30
    seed_max_days: int = 30
    seed_on_startup: str = "never"


    cors_origins: str = "http://localhost:8081,http://localhost:19006"

    @property
    def cors_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_settings()

    def _validate_settings(self):
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {self.storage_backend!r}"
            )
        if self.seed_on_startup not in SEED_MODES:
            raise ValueError(
                f"SEED_ON_STARTUP must be one of {', '.join(SEED_MODES)}, got {self.seed_on_startup!r}"
            )
        if self.default_horizon_days < 1:
            raise ValueError("DEFAULT_HORIZON_DAYS must be at least 1")

        if ENV_PRODUCTION or self.environment == "production":
            if self.storage_backend != "mongo":
                raise ValueError(
                    "STORAGE_BACKEND must be 'mongo' in production. "
                    "The in-memory store loses every treatment and dose on restart."
                )
            if self.seed_on_startup != "never":
                logger.warning(
                    "SEED_ON_STARTUP is enabled in production. Existing data may be replaced by demo data."
                )

    class Config:
        env_file = ".env"


settings = Settings()
