"""Scope grammar, negotiation and matching.

A scope is a permission string such as ``marketplace.read``. A required scope
ending in ``*`` is a prefix wildcard: ``marketplace.*`` is satisfied by any
granted scope starting with ``marketplace.``. Override scopes (``*`` and
``admin`` by default) satisfy every requirement; they are passed in
explicitly rather than read from module state.
"""

import re
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from credgate.core.domain.exceptions import (
    InsufficientScopeError,
    InvalidScopeFormatError,
    MissingScopeError,
)

SCOPE_PATTERN = re.compile(r"^[A-Za-z0-9_.:*-]+$")


def validate_scopes(scopes: Iterable[str]) -> list[str]:
    """Return *scopes* de-duplicated in order, rejecting malformed entries."""
    cleaned: list[str] = []
    invalid: list[str] = []
    for scope in scopes:
        if not SCOPE_PATTERN.match(scope):
            invalid.append(scope)
        elif scope not in cleaned:
            cleaned.append(scope)
    if invalid:
        raise InvalidScopeFormatError(invalid)
    return cleaned


def parse_scope_string(scope: str | None) -> list[str]:
    """解析并校验空格分隔的 scope 字符串，None 或空串返回空列表。"""
    if not scope:
        return []
    return validate_scopes(scope.split())


def intersect_scopes(requested: Iterable[str], *allowed: Collection[str]) -> list[str]:
    """Keep the requested scopes present in every *allowed* set, in request order."""
    return [
        scope
        for scope in requested
        if all(scope in allowed_set for allowed_set in allowed)
    ]


def scope_matches(required: str, granted: Collection[str]) -> bool:
    """Check one required scope against the granted set."""
    if required.endswith("*"):
        prefix = required[:-1]
        return any(scope.startswith(prefix) for scope in granted)
    return required in granted


@dataclass(frozen=True)
class ScopeGuard:
    """Post-authentication scope check."""

    overrides: frozenset[str]

    def is_overridden(self, granted: Collection[str]) -> bool:
        return any(scope in self.overrides for scope in granted)

    def require_any(self, required: Collection[str], granted: Collection[str]) -> None:
        """Pass when at least one required scope matches."""
        self._check(required, granted, match_all=False)

    def require_all(self, required: Collection[str], granted: Collection[str]) -> None:
        """Pass only when every required scope matches."""
        self._check(required, granted, match_all=True)

    def _check(
        self,
        required: Collection[str],
        granted: Collection[str],
        *,
        match_all: bool,
    ) -> None:
        # 令牌没有任何 scope
        if not granted:
            raise MissingScopeError(required=list(required))
        # 持有 override scope（默认 * 与 admin）直接放行
        if self.is_overridden(granted):
            return

        matches = (scope_matches(scope, granted) for scope in required)
        satisfied = all(matches) if match_all else any(matches)
        if not satisfied:
            raise InsufficientScopeError(
                required=list(required),
                granted=sorted(granted),
            )
