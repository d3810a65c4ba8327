from __future__ import annotations

import hashlib
import secrets
from uuid import uuid4


ROLE_TECHNICIAN = "technician"
ROLE_ADMIN = "admin"

ROLE_ORDER: dict[str, int] = {
    ROLE_TECHNICIAN: 1,
    ROLE_ADMIN: 2,
}


def normalize_role(role: str) -> str:
    # Enforce a stable, lowercased role vocabulary for RBAC checks.
    normalized = role.strip().lower()
    if normalized not in ROLE_ORDER:
        raise ValueError(f"Unsupported role: {role}")
    return normalized


def coerce_account_role(role: str | None) -> str:
    # Account creation only grants admin when asked for explicitly.
    return ROLE_ADMIN if (role or "").strip().lower() == ROLE_ADMIN else ROLE_TECHNICIAN


def role_allows(*, role: str, minimum_role: str) -> bool:
    # Compare roles using numeric ordering for least-privilege enforcement.
    return ROLE_ORDER.get(role, 0) >= ROLE_ORDER.get(minimum_role, 0)


def hash_api_key(raw_key: str) -> str:
    # Use SHA-256 for deterministic, non-reversible key storage.
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key(*, key_id: str | None = None) -> tuple[str, str, str, str]:
    # Embed the key id in the token so operators can trace secrets safely.
    resolved_id = key_id or uuid4().hex
    secret = secrets.token_urlsafe(32)
    raw_key = f"dtk_{resolved_id}_{secret}"
    key_prefix = raw_key[:12]
    return resolved_id, raw_key, key_prefix, hash_api_key(raw_key)


def key_id_from_token(raw_key: str) -> str | None:
    # dtk_<key id>_<secret>; the secret itself may contain underscores.
    prefix, _, rest = raw_key.partition("_")
    key_id, sep, secret = rest.partition("_")
    if prefix != "dtk" or not sep or not key_id or not secret:
        return None
    return key_id
