"""Credential generation, hashing and usage telemetry.

Secrets are never stored: only their SHA-256 hex digest is persisted, and
comparison runs in constant time over the digests.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime

from credgate.core.application.telemetry import fire_and_forget
from credgate.core.domain.ports.usage import UsageRecorder
from credgate.modules.api_keys.domain.entities import ApiKey

ACCESS_KEY_PREFIX = "ak_"
SECRET_KEY_PREFIX = "sk_"


@dataclass(frozen=True)
class GeneratedCredentials:
    access_key: str
    secret_key: str
    secret_key_hash: str


def hash_secret(secret: str) -> str:
    """计算明文 secret 的 SHA-256 十六进制摘要。"""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def generate_secret() -> tuple[str, str]:
    """Return a fresh ``(secret, secret_hash)`` pair."""
    secret = f"{SECRET_KEY_PREFIX}{secrets.token_hex(32)}"
    return secret, hash_secret(secret)


def generate_credentials() -> GeneratedCredentials:
    """生成 access key（ak_ + 32 位十六进制）和 secret（sk_ + 64 位十六进制）。"""
    secret, secret_hash = generate_secret()
    return GeneratedCredentials(
        access_key=f"{ACCESS_KEY_PREFIX}{secrets.token_hex(16)}",
        secret_key=secret,
        secret_key_hash=secret_hash,
    )


def verify_secret(candidate: str, stored_hash: str) -> bool:
    # 常量时间比较
    return hmac.compare_digest(hash_secret(candidate), stored_hash)


def touch(
    recorder: UsageRecorder,
    api_key: ApiKey,
    ip_address: str | None,
    now: datetime,
) -> None:
    """Schedule a best-effort ``last_used_at`` / ``last_used_ip`` write."""
    api_key.record_usage(ip_address, now)
    fire_and_forget(
        recorder.record_api_key_usage(api_key.id, ip_address, now),
        operation="api_key_touch",
        key_id=api_key.id,
    )
