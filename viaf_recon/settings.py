from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VIAF_RECON_",
        env_file=".env",
        extra="ignore",
    )

    service_name: str = "VIAF Reconciliation Service"

    #registry endpoint, search is appended
    viaf_base_url: str = "https://viaf.org/viaf"

    #VIAF allows about 6 simultaneous requests, stay well under it
    pool_size: int = Field(default=3, ge=1)

    #ceiling on the whole batch wait, in seconds
    batch_timeout: float = Field(default=10.0, gt=0)

    #per request timeout for a single lookup
    http_timeout: float = Field(default=8.0, gt=0)

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
