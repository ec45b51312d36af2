"""Access token entity-model mappers."""

from credgate.core.infrastructure.database.mapper import BaseMapper
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.infrastructure.models import AccessTokenModel


class AccessTokenMapper(BaseMapper[AccessToken, AccessTokenModel]):
    def to_domain(self, model: AccessTokenModel) -> AccessToken:
        return AccessToken(
            id=model.id,
            token_hash=model.token_hash,
            refresh_token_hash=model.refresh_token_hash,
            api_key_id=model.api_key_id,
            user_id=model.user_id,
            scopes=list(model.scopes or []),
            is_active=model.is_active,
            expires_at=model.expires_at,
            refresh_token_expires_at=model.refresh_token_expires_at,
            last_used_at=model.last_used_at,
            last_used_ip=model.last_used_ip,
            labels=dict(model.labels or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: AccessToken) -> AccessTokenModel:
        return AccessTokenModel(
            id=entity.id,
            token_hash=entity.token_hash,
            refresh_token_hash=entity.refresh_token_hash,
            api_key_id=entity.api_key_id,
            user_id=entity.user_id,
            scopes=entity.scopes,
            is_active=entity.is_active,
            expires_at=entity.expires_at,
            refresh_token_expires_at=entity.refresh_token_expires_at,
            last_used_at=entity.last_used_at,
            last_used_ip=entity.last_used_ip,
            labels=entity.labels,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
