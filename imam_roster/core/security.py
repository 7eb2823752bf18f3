import secrets
from typing import Optional

import bcrypt
from fastapi import Header

from imam_roster.core.exceptions import AuthenticationError

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the table
        return False

def new_session_token() -> str:
    return secrets.token_hex(32)

def generate_access_code() -> str:
    """Random 6-digit numeric code, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))

async def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract the admin token from an `Authorization: Bearer <token>` header.
    Fails closed when the header is missing or malformed.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Authentication required")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationError("Authentication required")
    return token
