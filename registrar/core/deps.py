from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from registrar.core.config import settings
from registrar.core.security import decode_jwt

ACTOR_ROLES = {"admin", "teacher", "student"}

bearer = HTTPBearer(auto_error=False)

def get_current_actor(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="User not authenticated")
    try:
        payload = decode_jwt(creds.credentials, settings.JWT_SECRET)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    role = str(payload.get("role") or "").strip().lower()
    sub = str(payload.get("sub") or "").strip()
    if not sub or role not in ACTOR_ROLES:
        raise HTTPException(status_code=401, detail="Invalid token")
    return {"sub": sub, "role": role}
