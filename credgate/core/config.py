"""Application configuration."""

import secrets
import warnings
from typing import Annotated, Any, Literal, Self

from pydantic import (
    AnyUrl,
    BeforeValidator,
    HttpUrl,
    computed_field,
    model_validator,
)
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",")]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "credgate"
    SERVER_PORT: int = 8000
    ROOTPATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    CORS_ALLOW_METHODS: list[str] = ["GET", "POST", "PATCH", "DELETE"]
    CORS_ALLOW_HEADERS: list[str] = [
        "Authorization",
        "Content-Type",
        "X-API-Key",
        "X-API-Secret",
    ]

    @computed_field
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Client IP
    TRUST_PROXY_HEADERS: bool = False  # 开启后读取 X-Forwarded-For / X-Real-IP，仅用于可信反向代理之后

    # Sentry
    SENTRY_DSN: HttpUrl | None = None

    # Token signing
    SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "credgate"
    JWT_AUDIENCE: str = "credgate"

    # Access / refresh token lifetimes
    ACCESS_TOKEN_DEFAULT_TTL_SECONDS: int = 3600  # 1 hour
    ACCESS_TOKEN_MIN_TTL_SECONDS: int = 300  # 5 minutes
    ACCESS_TOKEN_MAX_TTL_SECONDS: int = 86400  # 24 hours
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    REFRESH_TOKEN_BYTES: int = 32  # 随机字节数，十六进制后 64 字符

    # API keys
    API_KEY_DEFAULT_SCOPES: list[str] = ["read", "write"]  # 创建时未指定 scopes 的默认值
    API_KEY_DEFAULT_RATE_LIMIT: int = 1000  # 仅存储，不做限流
    API_KEY_GENERATION_ATTEMPTS: int = 5  # access_key 冲突重试次数

    # Scope policy: granted scopes that satisfy every requirement
    SCOPE_OVERRIDES: list[str] = ["*", "admin"]

    # Listing
    TOKEN_LIST_PAGE_SIZE: int = 20
    TOKEN_LIST_MAX_PAGE_SIZE: int = 100  # 分页上限

    # PostgreSQL
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "credgate"

    @computed_field
    @property
    def database_url_object(self) -> MultiHostUrl:
        return MultiHostUrl.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return str(self.database_url_object)

    @model_validator(mode="after")
    def _check_ttl_bounds(self) -> Self:
        if self.ACCESS_TOKEN_MIN_TTL_SECONDS > self.ACCESS_TOKEN_MAX_TTL_SECONDS:
            raise ValueError(
                "ACCESS_TOKEN_MIN_TTL_SECONDS must not exceed "
                "ACCESS_TOKEN_MAX_TTL_SECONDS"
            )
        return self

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        return self


settings = Settings()
