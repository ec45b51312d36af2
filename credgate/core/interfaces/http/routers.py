"""API router configuration."""

from fastapi import APIRouter

from credgate.modules.api_keys.interfaces.router import router as api_keys_router
from credgate.modules.tokens.interfaces.router import router as tokens_router

api_router = APIRouter()

# Token exchange, refresh, revocation
api_router.include_router(tokens_router)

# Credential management
api_router.include_router(api_keys_router)
