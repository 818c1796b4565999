from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from qaplus.auth.security import JWTError, decode_operator_token, tenant_claim

bearer = HTTPBearer(auto_error=False)


@dataclass
class Operator:
    user_id: str
    tenant_id: str
    role: str


def get_current_operator(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Operator:
    if not creds:
        raise HTTPException(status_code=401, detail="Missing token")

    try:
        payload = decode_operator_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    tenant_id = tenant_claim(payload)
    if not user_id or not tenant_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return Operator(user_id=user_id, tenant_id=tenant_id, role=payload.get("role") or "authenticated")
