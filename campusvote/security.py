from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from campusvote.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY


class Principal(BaseModel):
    """Authenticated caller, passed explicitly into every service call."""
    user_id: str
    display_name: Optional[str] = None
    is_admin: bool = False

    @property
    def voter_name(self) -> str:
        return self.display_name or self.user_id


# Create JWT access token (used by tooling and tests; production tokens come from the IdP)
def create_access_token(data: dict, expires_delta: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_delta)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def token_for(principal: Principal, expires_delta: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    claims = {"sub": principal.user_id, "is_admin": principal.is_admin}
    if principal.display_name:
        claims["name"] = principal.display_name
    return create_access_token(claims, expires_delta)


# Decode a bearer token into a Principal; raises JWTError on bad or expired tokens
def decode_access_token(token: str) -> Principal:
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("token has no subject")
    return Principal(
        user_id=str(user_id),
        display_name=payload.get("name"),
        is_admin=bool(payload.get("is_admin", False)),
    )
