"""User module application dependencies."""

from typing import NoReturn

from credgate.modules.users.domain.repository import UserDirectory


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_user_directory() -> UserDirectory:
    _missing_dependency("UserDirectory")
