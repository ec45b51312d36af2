"""API Key entity-model mappers."""

from credgate.core.infrastructure.database.mapper import BaseMapper
from credgate.modules.api_keys.domain.entities import ApiKey
from credgate.modules.api_keys.infrastructure.models import ApiKeyModel


class ApiKeyMapper(BaseMapper[ApiKey, ApiKeyModel]):
    """API Key entity-model mapper."""

    def to_domain(self, model: ApiKeyModel) -> ApiKey:
        return ApiKey(
            id=model.id,
            user_id=model.user_id,
            name=model.name,
            description=model.description,
            access_key=model.access_key,
            secret_key_hash=model.secret_key_hash,
            scopes=list(model.scopes or []),
            allowed_ips=list(model.allowed_ips or []),
            rate_limit=model.rate_limit,
            expires_at=model.expires_at,
            last_used_at=model.last_used_at,
            last_used_ip=model.last_used_ip,
            is_active=model.is_active,
            labels=dict(model.labels or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: ApiKey) -> ApiKeyModel:
        return ApiKeyModel(
            id=entity.id,
            user_id=entity.user_id,
            name=entity.name,
            description=entity.description,
            access_key=entity.access_key,
            secret_key_hash=entity.secret_key_hash,
            scopes=entity.scopes,
            allowed_ips=entity.allowed_ips,
            rate_limit=entity.rate_limit,
            expires_at=entity.expires_at,
            last_used_at=entity.last_used_at,
            last_used_ip=entity.last_used_ip,
            is_active=entity.is_active,
            labels=entity.labels,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
