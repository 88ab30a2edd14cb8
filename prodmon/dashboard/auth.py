"""
Cognito ID token helpers

Tokens are only decoded here, never verified: AppSync verifies every call.
"""

import base64
import json
from typing import Any, Dict, Optional

from prodmon.core.config import settings
from prodmon.core.errors import AuthenticationRequired


def decode_claims(token: Optional[str]) -> Dict[str, Any]:
    """Payload of a JWT; empty when the token is malformed"""
    if not token:
        return {}
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeError):
        return {}
    return claims if isinstance(claims, dict) else {}


def subject(token: str) -> Optional[str]:
    return decode_claims(token).get("sub")


def is_admin(token: Optional[str], group: Optional[str] = None) -> bool:
    """Membership of the admin group in ``cognito:groups``"""
    groups = decode_claims(token).get("cognito:groups") or []
    return isinstance(groups, list) and (group or settings.admin_group) in groups


def resolve_token(authorization: Optional[str], fallback: Optional[str] = None) -> str:
    """
    Pick the caller's ID token.

    The ``Authorization`` header wins (with or without a ``Bearer`` prefix);
    otherwise the configured fallback token is used.

    Raises:
        AuthenticationRequired: Neither is available
    """
    token = (authorization or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    token = token or (fallback or "").strip()
    if not token:
        raise AuthenticationRequired()
    return token
