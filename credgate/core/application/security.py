"""Application-level security dependencies.

Defines auth dependencies without importing infrastructure.
The actual implementations are injected via FastAPI dependency_overrides in main.py.
Routes of the surrounding system depend on ``get_current_auth`` (the
dispatcher) and on the scope guard factories below before their own logic.
"""

from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, NoReturn

from fastapi import Depends

from credgate.core.config import settings
from credgate.core.domain.exceptions import SessionRequiredError
from credgate.core.domain.scopes import ScopeGuard


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


class AuthType(StrEnum):
    """How the current request was authenticated."""

    API_KEY = "api_key"
    ACCESS_TOKEN = "access_token"
    LEGACY = "legacy"


@dataclass(frozen=True)
class AuthContext:
    """Authentication context for the current request."""

    principal_id: str
    auth_type: AuthType
    scopes: frozenset[str]
    api_key_id: str | None = None
    token_id: str | None = None


def get_scope_guard() -> ScopeGuard:
    """Scope guard built from the configured override set."""
    return ScopeGuard(overrides=frozenset(settings.SCOPE_OVERRIDES))


async def get_current_auth() -> AuthContext:
    """Get the current auth context (API key, access token or legacy token)."""
    _missing_dependency("get_current_auth")


async def get_current_session_auth(
    auth: AuthContext = Depends(get_current_auth),
) -> AuthContext:
    """Require an account session (legacy self-contained) token.

    Credential management must not be reachable with a credential or with the
    tokens minted from it, otherwise a key could widen its own grant.
    """
    if auth.auth_type is not AuthType.LEGACY:
        raise SessionRequiredError()
    return auth


def _scope_dependency(
    scopes: tuple[str, ...], *, match_all: bool
) -> Callable[..., Coroutine[Any, Any, AuthContext]]:
    async def _check_scope(
        auth: AuthContext = Depends(get_current_auth),
        guard: ScopeGuard = Depends(get_scope_guard),
    ) -> AuthContext:
        if match_all:
            guard.require_all(scopes, auth.scopes)
        else:
            guard.require_any(scopes, auth.scopes)
        return auth

    mode = "all" if match_all else "any"
    suffix = "_".join(s.replace(".", "_").replace(":", "_").replace("*", "x") for s in scopes)
    _check_scope.__name__ = f"require_{mode}_scope_{suffix}"
    _check_scope.__qualname__ = _check_scope.__name__
    return _check_scope


def require_any_scope(*scopes: str) -> Callable[..., Coroutine[Any, Any, AuthContext]]:
    """FastAPI dependency factory passing when any of *scopes* is granted."""
    return _scope_dependency(scopes, match_all=False)


def require_all_scopes(*scopes: str) -> Callable[..., Coroutine[Any, Any, AuthContext]]:
    """FastAPI dependency factory passing only when every scope is granted."""
    return _scope_dependency(scopes, match_all=True)
