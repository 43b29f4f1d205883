from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext
from jose import jwt, JWTError

from autoentrepreneur import config

# --- Password hashing ---
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def get_password_hash(password: str) -> str:
    return _pwd.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    try:
        return _pwd.verify(plain, hashed)
    except (ValueError, TypeError):
        return False

# --- JWT ---
def create_access_token(user_id: int, email: str, ttl_seconds: int | None = None) -> str:
    ttl = ttl_seconds if ttl_seconds is not None else config.ACCESS_TOKEN_TTL
    exp = int((datetime.now(timezone.utc) + timedelta(seconds=ttl)).timestamp())
    payload = {"sub": str(user_id), "email": email, "exp": exp}
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGO)

def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGO])
    except JWTError as e:
        raise ValueError(f"invalid token: {e}")
