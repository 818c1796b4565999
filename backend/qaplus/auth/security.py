from typing import Any, Dict

from jose import JWTError, jwt

from qaplus.core.config import settings

ENV = settings.ENV
AUTH_JWT_SECRET = settings.AUTH_JWT_SECRET
if not AUTH_JWT_SECRET and ENV != "dev":
    raise RuntimeError("AUTH_JWT_SECRET is not set")
if not AUTH_JWT_SECRET:
    AUTH_JWT_SECRET = "dev-change-me"


def decode_operator_token(token: str) -> Dict[str, Any]:
    """Verify an access token issued by the identity provider."""
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    return jwt.decode(
        token,
        AUTH_JWT_SECRET,
        algorithms=[settings.AUTH_JWT_ALGORITHM],
        audience=settings.AUTH_JWT_AUDIENCE,
        options=options,
    )


def tenant_claim(payload: Dict[str, Any]) -> str | None:
    app_metadata = payload.get("app_metadata") or {}
    return payload.get("tenant_id") or app_metadata.get("tenant_id")


__all__ = ["JWTError", "decode_operator_token", "tenant_claim"]
