from typing import List, Union
from pydantic import AnyHttpUrl, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    PROJECT_NAME: str = "Commerce Sync"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/commerce_sync"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Outbound platform calls
    PLATFORM_TIMEOUT_SECONDS: float = 30.0
    PLATFORM_USER_AGENT: str = "Warehouse-Commerce-Sync/1.0"
    STOREFRONT_API_VERSION: str = "wc/v3"

    # Pipelines
    ORDER_IMPORT_PAGE_SIZE: int = 100
    PRODUCT_PAGE_SIZE: int = 100
    WEBHOOK_BATCH_SIZE: int = 10
    MAX_STATUS_SYNC_RETRIES: int = 5
    SYNC_ERROR_LIMIT: int = 50

    # API keys
    API_KEY_PREFIX: str = "cs_"
    BOOTSTRAP_API_KEY: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
