from fastapi import Depends, HTTPException, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from autoentrepreneur.auth_utils import decode_access_token
from autoentrepreneur.repository import OwnedRepository

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(creds: HTTPAuthorizationCredentials | None = Depends(_bearer)):
    if creds is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_access_token(creds.credentials)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    sub = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return {"id": int(sub), "email": payload.get("email")}


def owned(model):
    """Dépendance : dépôt du modèle, limité à l'utilisateur authentifié."""
    def _repo(user=Depends(get_current_user)) -> OwnedRepository:
        return OwnedRepository(model, user["id"])
    return _repo


async def idempotency_key(key: str | None = Header(default=None, alias="Idempotency-Key", max_length=200)):
    return key
