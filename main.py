"""credgate - API credential exchange and token authorization service."""

from collections.abc import Callable
from typing import Any, cast

import sentry_sdk
from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.routing import APIRoute
from loguru import logger
from starlette.middleware.cors import CORSMiddleware

from credgate.core.application import dependencies as core_app_deps
from credgate.core.application import security as app_security
from credgate.core.application.telemetry import drain_pending
from credgate.core.config import settings
from credgate.core.domain.exceptions import DomainException
from credgate.core.infrastructure import usage_recorder as infra_usage
from credgate.core.infrastructure.database.session import check_db_health, init_db
from credgate.core.infrastructure.health import HealthStatus
from credgate.core.infrastructure.logging import setup_logging
from credgate.core.infrastructure.security import dispatcher as infra_dispatcher
from credgate.core.infrastructure.security import jwt as infra_jwt
from credgate.core.interfaces.http.exceptions import (
    domain_exception_handler,
    global_exception_handler,
)
from credgate.core.interfaces.http.routers import api_router
from credgate.modules.api_keys.application import dependencies as api_keys_app_deps
from credgate.modules.api_keys.infrastructure import dependencies as api_keys_infra_deps
from credgate.modules.tokens.application import dependencies as tokens_app_deps
from credgate.modules.tokens.infrastructure import dependencies as tokens_infra_deps
from credgate.modules.users.application import dependencies as users_app_deps
from credgate.modules.users.infrastructure import dependencies as users_infra_deps

VERSION = "0.1.0"


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate unique operation IDs for OpenAPI."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


# OpenAPI security scheme definitions for the two request auth schemes
openapi_security_schemes = {
    "BearerAuth": {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "Access token from /oauth/token, or an account session token",
    },
    "ApiKeyAuth": {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Key",
        "description": "API access key (prefix: ak_), sent with X-API-Secret",
    },
    "ApiSecretAuth": {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Secret",
        "description": "API secret (prefix: sk_)",
    },
}


def custom_openapi():
    """Customize OpenAPI schema to include the auth schemes."""
    if app.openapi_schema:
        return app.openapi_schema
    from fastapi.openapi.utils import get_openapi

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema["components"] = schema.get("components", {})
    schema["components"]["securitySchemes"] = openapi_security_schemes
    app.openapi_schema = schema
    return schema


# Initialize Sentry if configured
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        enable_tracing=True,
        environment=settings.ENVIRONMENT,
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting credgate...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    logger.info("Initializing database connection...")
    await init_db()

    yield

    # 关闭前等待未完成的使用记录写入
    logger.info("Shutting down credgate, flushing usage telemetry...")
    await drain_pending()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=(
        "Exchanges API keys for short-lived, scope-limited access tokens "
        "and authorizes requests against them.\n\n"
        "## Authentication\n\n"
        "- **API key**: `X-API-Key` + `X-API-Secret` headers\n"
        "- **Bearer**: `Authorization: Bearer <access token>`"
    ),
    version=VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    root_path=settings.ROOTPATH,
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)
app.openapi = cast(Callable[[], dict[str, Any]], custom_openapi)

# Dependency overrides (application -> infrastructure)
# application 层只声明依赖，具体实现在此注入
app.dependency_overrides[app_security.get_current_auth] = (
    infra_dispatcher.get_current_auth
)
app.dependency_overrides[core_app_deps.get_usage_recorder] = (
    infra_usage.get_usage_recorder
)

# Users module
app.dependency_overrides[users_app_deps.get_user_directory] = (
    users_infra_deps.get_user_directory
)

# API Keys module
app.dependency_overrides[api_keys_app_deps.get_api_key_repository] = (
    api_keys_infra_deps.get_api_key_repository
)
app.dependency_overrides[api_keys_app_deps.get_token_revoker] = (
    tokens_app_deps.get_revocation_service
)

# Tokens module
app.dependency_overrides[tokens_app_deps.get_access_token_repository] = (
    tokens_infra_deps.get_access_token_repository
)
app.dependency_overrides[tokens_app_deps.get_token_signer] = infra_jwt.get_token_signer

# Exception handlers
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# CORS middleware
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get(f"{settings.API_V1_STR}/health", tags=["health"])
async def health_check():
    """Health check endpoint.

    The service cannot verify anything without its database, so a failed
    database check makes the whole service unhealthy.
    """
    db_health_result = await check_db_health()
    overall_status = (
        "healthy" if db_health_result.status is HealthStatus.OK else "unhealthy"
    )

    return {
        "status": overall_status,
        "environment": settings.ENVIRONMENT,
        "version": VERSION,
        "components": {"database": db_health_result.to_dict()},
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to credgate",
        "docs": f"{settings.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "local",
    )
