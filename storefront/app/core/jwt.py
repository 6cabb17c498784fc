"""
JWT token utilities for authentication.

Tokens are minted by the identity service with the shared secret; this
module only verifies them.
"""

from typing import Optional, Dict, Any
from jose import JWTError, jwt
from storefront.app.core.config import settings


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token claims, or None when the signature or expiry is invalid."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
