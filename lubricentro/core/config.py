from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DB_URL: Optional[str] = None
    LOCAL_STORE_URL: str = "sqlite:///./lubricentro_local.db"

    REMOTE_TIMEOUT: float = 10.0
    PRODUCTS_PAGE_SIZE: int = 1000

    SCANNER_PORT: Optional[str] = None
    SCANNER_BAUDRATE: int = 9600
    SCANNER_CONNECT_TIMEOUT: float = 5.0

    SYNC_INTERVAL: float = 300.0
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def demo_mode(self) -> bool:
        """True when no remote backend is configured."""
        return not self.DB_URL


settings = Settings()
