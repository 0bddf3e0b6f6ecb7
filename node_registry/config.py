from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class Settings(BaseSettings):
    """
    Application Configuration.
    Reads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # Functionality
    ENVIRONMENT: Literal["development", "production", "testing"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # Database (MySQL coordinates, required unless DATABASE_URL is given)
    MYSQL_USER: str = ""
    MYSQL_PASSWORD: str = ""
    MYSQL_HOST: str = ""
    MYSQL_PORT: str = ""
    MYSQL_DB: str = ""
    DB_DRIVER: str = "mysql+aiomysql"
    DATABASE_URL: Optional[str] = None

    # Pool tuning
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    @model_validator(mode="after")
    def check_store_coordinates(self):
        if self.DATABASE_URL:
            return self
        missing = [
            name for name in ("MYSQL_USER", "MYSQL_PASSWORD", "MYSQL_HOST", "MYSQL_PORT", "MYSQL_DB")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing required MySQL environment variables: {', '.join(missing)}")
        if not self.MYSQL_PORT.isdigit():
            raise ValueError(f"MYSQL_PORT must be a port number, got {self.MYSQL_PORT!r}")
        return self

    @property
    def database_url(self) -> URL:
        """Connection URL for the registry database."""
        if self.DATABASE_URL:
            return make_url(self.DATABASE_URL)
        return URL.create(
            self.DB_DRIVER,
            username=self.MYSQL_USER,
            password=self.MYSQL_PASSWORD,
            host=self.MYSQL_HOST,
            port=int(self.MYSQL_PORT),
            database=self.MYSQL_DB,
        )

    @property
    def server_url(self) -> URL:
        """Same coordinates without a database, used to create the database itself."""
        url = self.database_url
        # URL.set() ignores None, so the database has to be dropped by rebuilding
        return URL.create(
            url.drivername,
            username=url.username,
            password=url.password,
            host=url.host,
            port=url.port,
            query=url.query,
        )
