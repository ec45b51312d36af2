"""Credential verifier: authenticates a request carrying key + secret."""

from credgate.core.application.security import AuthContext, AuthType
from credgate.modules.api_keys.application.service import ApiKeyService


class CredentialVerifier:
    def __init__(self, service: ApiKeyService) -> None:
        self._service = service

    async def verify(
        self,
        access_key: str | None,
        secret_key: str | None,
        client_ip: str | None,
    ) -> AuthContext:
        authenticated = await self._service.authenticate(
            access_key, secret_key, client_ip
        )
        api_key = authenticated.api_key
        self._service.touch(api_key, client_ip)

        return AuthContext(
            principal_id=api_key.user_id,
            auth_type=AuthType.API_KEY,
            scopes=frozenset(api_key.scopes),
            api_key_id=api_key.id,
        )
