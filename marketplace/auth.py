from datetime import timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, Header, Request
from jose import JWTError, jwt

from marketplace.domain import User, utcnow
from marketplace.errors import Unauthorized


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))


def issue_token(user_id: str, settings) -> str:
    claims = {
        "sub": user_id,
        "exp": utcnow() + timedelta(minutes=settings.jwt_expiry_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """Return the user id carried by a bearer token."""
    settings = request.app.state.settings
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("not a bearer token")
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except (AttributeError, ValueError, JWTError):
        raise Unauthorized("Please authenticate")
    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Please authenticate")
    return user_id


def current_user(request: Request, user_id: str = Depends(verify_token)) -> User:
    user = request.app.state.storage.users.get(user_id)
    if user is None:
        raise Unauthorized("User not found")
    return user
