import base64
import json
import logging

from supabase import create_client, Client

from tesouraria.config import settings

_client: Client | None = None

logger = logging.getLogger(__name__)

SERVICE_ROLE = "service_role"


def key_role(key: str) -> str | None:
    """Role carried by a Supabase API key, or None when it can't be told.

    sb_secret_/sb_publishable_ keys say it in the prefix; legacy keys are
    JWTs with a "role" claim.
    """
    if key.startswith("sb_secret_"):
        return SERVICE_ROLE
    if key.startswith(("sb_publishable_", "sbp_")):
        return "anon"

    parts = key.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    role = claims.get("role") if isinstance(claims, dict) else None
    return role if isinstance(role, str) else None


def backend_key() -> str:
    """Service role key when configured; baixas write under RLS otherwise."""
    return settings.supabase_service_role_key or settings.supabase_key


def get_db() -> Client:
    global _client
    if _client is None:
        key = backend_key()
        role = key_role(key)
        if role != SERVICE_ROLE:
            logger.warning(
                f"Supabase key role is {role or 'unknown'}, not {SERVICE_ROLE}. "
                "Baixas may fail to insert movimentos or update lancamentos under RLS. "
                "Configure SUPABASE_SERVICE_ROLE_KEY."
            )
        _client = create_client(settings.supabase_url, key)
    return _client
