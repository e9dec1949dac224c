import os
from typing import List, Union, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, ValidationInfo


class Settings(BaseSettings):
    API_V1_STR: str = "/v1"
    PROJECT_NAME: str = "Helpdesk Rules API"

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database Configuration
    MYSQL_HOST: Optional[str] = None
    MYSQL_USER: Optional[str] = None
    MYSQL_PASSWORD: Optional[str] = None
    MYSQL_DATABASE: Optional[str] = None
    MYSQL_PORT: Optional[str] = None

    DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URI", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v:
            return v

        database_url = os.getenv("DATABASE_URL")
        if database_url:
            return database_url

        values = info.data
        db_params = ['MYSQL_USER', 'MYSQL_PASSWORD', 'MYSQL_HOST', 'MYSQL_PORT', 'MYSQL_DATABASE']
        if all(values.get(x) for x in db_params):
            connection_string = "mysql+pymysql://"
            connection_string += f"{values.get('MYSQL_USER')}:{values.get('MYSQL_PASSWORD')}"
            connection_string += f"@{values.get('MYSQL_HOST')}:{values.get('MYSQL_PORT')}/{values.get('MYSQL_DATABASE')}"
            return connection_string

        return None

    # Database Connection Pool
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour

    # Ticket API (mutation surface used by the action executor)
    TICKET_API_BASE_URL: str = "http://localhost:8000/v1"
    TICKET_API_TOKEN: Optional[str] = None

    @property
    def clean_ticket_api_base_url(self) -> str:
        """Return TICKET_API_BASE_URL without trailing slash"""
        return self.TICKET_API_BASE_URL.rstrip('/')

    # Action execution
    ACTION_TIMEOUT_SECONDS: float = 5.0  # per mutation call
    ACTION_MAX_RETRIES: int = 1  # retries on transient errors only

    # Content analysis
    DEFAULT_MIN_CONFIDENCE: float = 0.7

    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)


settings = Settings()
